# store_config.py
from __future__ import annotations

import configparser
import os
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

from controller import DEFAULT_DUPLEX_PROFILE, DEFAULT_STEREO_PROFILE
from errors import ConfigError

# WEBRTC VoiceEngine is Google Chat/Meet. Chrome and Zoom sometimes keep the
# speaker open outside of a call, so they are persistent speakers.
DEFAULT_CONFIG_TEXT = f"""\
[Clients]
# One regular expression per line, matched against the whole
# application.name of the stream (case-sensitive).
tracked =
    Skype
    ZOOM VoiceEngine
    WEBRTC VoiceEngine
    Google Chrome
    Google Chrome input
# Clients allowed to keep only the speaker open after a call.
persistent_speakers =
    Google Chrome
    ZOOM VoiceEngine

[Aliases]
# Name a client uses for its microphone = name it uses for its speaker
Google Chrome input = Google Chrome

[Switching]
mute_on_duplex = yes
debounce_seconds = 1.0
startup_wait_seconds = 30
stereo_profile = {DEFAULT_STEREO_PROFILE}
duplex_profile = {DEFAULT_DUPLEX_PROFILE}

[Logging]
verbose = no
log_file =
"""


def _linux_xdg_config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".config"


def user_config_dir(app_name: str) -> Path:
    sysname = (platform.system() or "").lower()
    if sysname.startswith("linux"):
        return _linux_xdg_config_dir() / app_name
    return Path.home() / ".config" / app_name


def _new_parser() -> configparser.ConfigParser:
    # Client names are option names in [Aliases]: keep their case, and only
    # split on "=" since names may contain ":".
    cfg = configparser.ConfigParser(delimiters=("=",), interpolation=None)
    cfg.optionxform = str  # type: ignore[assignment]
    return cfg


def _lines(value: str) -> Tuple[str, ...]:
    return tuple(s.strip() for s in (value or "").splitlines() if s.strip())


@dataclass(frozen=True)
class Settings:
    tracked: Tuple[str, ...] = ()
    persistent_speakers: Tuple[str, ...] = ()
    aliases: Dict[str, str] = field(default_factory=dict)
    mute_on_duplex: bool = True
    debounce_seconds: float = 1.0
    startup_wait_seconds: float = 30.0
    stereo_profile: str = DEFAULT_STEREO_PROFILE
    duplex_profile: str = DEFAULT_DUPLEX_PROFILE
    verbose: bool = False
    log_file: str = ""


def settings_from_parser(cfg: configparser.ConfigParser) -> Settings:
    try:
        aliases = dict(cfg.items("Aliases")) if cfg.has_section("Aliases") else {}
        s = Settings(
            tracked=_lines(cfg.get("Clients", "tracked", fallback="")),
            persistent_speakers=_lines(cfg.get("Clients", "persistent_speakers", fallback="")),
            aliases={k.strip(): v.strip() for k, v in aliases.items() if k.strip() and v.strip()},
            mute_on_duplex=cfg.getboolean("Switching", "mute_on_duplex", fallback=True),
            debounce_seconds=cfg.getfloat("Switching", "debounce_seconds", fallback=1.0),
            startup_wait_seconds=cfg.getfloat("Switching", "startup_wait_seconds", fallback=30.0),
            stereo_profile=cfg.get("Switching", "stereo_profile", fallback=DEFAULT_STEREO_PROFILE).strip(),
            duplex_profile=cfg.get("Switching", "duplex_profile", fallback=DEFAULT_DUPLEX_PROFILE).strip(),
            verbose=cfg.getboolean("Logging", "verbose", fallback=False),
            log_file=cfg.get("Logging", "log_file", fallback="").strip(),
        )
    except ValueError as e:
        raise ConfigError(f"Invalid configuration value: {e}") from e

    if s.debounce_seconds < 0 or s.startup_wait_seconds < 0:
        raise ConfigError("debounce_seconds and startup_wait_seconds must not be negative")
    if not s.stereo_profile or not s.duplex_profile or s.stereo_profile == s.duplex_profile:
        raise ConfigError("stereo_profile and duplex_profile must be two different profile names")
    return s


def default_settings() -> Settings:
    cfg = _new_parser()
    cfg.read_string(DEFAULT_CONFIG_TEXT)
    return settings_from_parser(cfg)


@dataclass(frozen=True)
class ConfigStore:
    app_name: str = "hsp-autoswitch"
    filename: str = "hsp-autoswitch.cfg"
    path: Optional[Path] = None

    @property
    def dir_path(self) -> Path:
        if self.path is not None:
            return self.path.parent
        return user_config_dir(self.app_name)

    @property
    def file_path(self) -> Path:
        if self.path is not None:
            return self.path
        return self.dir_path / self.filename

    def ensure_exists(self) -> bool:
        """Writes the default config if there is none. Returns True if it did."""
        if self.file_path.exists():
            return False
        self.dir_path.mkdir(parents=True, exist_ok=True)
        self.file_path.write_text(DEFAULT_CONFIG_TEXT, encoding="utf-8")
        return True

    def load(self) -> configparser.ConfigParser:
        cfg = _new_parser()
        cfg.read_string(DEFAULT_CONFIG_TEXT)
        if not self.file_path.exists():
            return cfg

        # Lists from the file replace the defaults instead of merging with them.
        user = _new_parser()
        try:
            user.read(self.file_path, encoding="utf-8")
        except (configparser.Error, OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Cannot read {self.file_path}: {e}") from e

        for section in user.sections():
            if section == "Aliases" and cfg.has_section("Aliases"):
                cfg.remove_section("Aliases")
            if not cfg.has_section(section):
                cfg.add_section(section)
            for k, v in user.items(section):
                cfg.set(section, k, v)
        return cfg

    def load_settings(self) -> Settings:
        return settings_from_parser(self.load())
