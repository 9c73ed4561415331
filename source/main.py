# main.py
from __future__ import annotations

import argparse
import dataclasses
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from PySide6.QtCore import QCoreApplication, QTimer

from backend import PulseBackend
from errors import ConfigError
from log_setup import setup_logging
from service import SwitcherService
from store_config import ConfigStore, Settings

log = logging.getLogger(__name__)

APP_NAME = "hsp-autoswitch"
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog=APP_NAME,
        description=(
            "Switch a Bluetooth headset between A2DP (stereo) and HSP/HFP "
            "(duplex) when a call application opens or closes the microphone."
        ),
    )
    p.add_argument("--config", type=Path, default=None, help="config file (default: XDG config dir)")
    p.add_argument("-v", "--verbose", action="store_true", help="log every audio server command")
    p.add_argument("--no-mute", action="store_true", help="do not mute other outputs during calls")
    p.add_argument("--write-config", action="store_true", help="write the default config file and exit")
    return p


def load_settings(store: ConfigStore) -> Settings:
    """Settings for a normal run. A missing config file is written with the defaults first."""
    try:
        store.ensure_exists()
    except OSError as e:
        # Still usable with the built-in defaults.
        print(f"{APP_NAME}: cannot write {store.file_path}: {e}", file=sys.stderr)
    return store.load_settings()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    store = ConfigStore(app_name=APP_NAME, path=args.config)

    if args.write_config:
        store.ensure_exists()
        print(store.file_path)
        return 0

    try:
        settings = load_settings(store)
    except ConfigError as e:
        print(f"{APP_NAME}: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if args.verbose:
        settings = dataclasses.replace(settings, verbose=True)
    if args.no_mute:
        settings = dataclasses.replace(settings, mute_on_duplex=False)

    setup_logging(verbose=settings.verbose, log_file=settings.log_file or None)
    log.info("Using config %s", store.file_path if store.file_path.exists() else "defaults")

    app = QCoreApplication(sys.argv[:1])
    app.setApplicationName(APP_NAME)

    controller = PulseBackend(
        pulse_client_name=APP_NAME,
        stereo_profile=settings.stereo_profile,
        duplex_profile=settings.duplex_profile,
    )
    service = SwitcherService(settings, controller)

    signal.signal(signal.SIGINT, lambda *_: app.quit())
    signal.signal(signal.SIGTERM, lambda *_: app.quit())
    # Python signal handlers only run when the interpreter gets control.
    wakeup = QTimer()
    wakeup.timeout.connect(lambda: None)
    wakeup.start(500)

    service.start()
    code = app.exec()
    service.stop()
    log.info("Exiting with code %d", code)
    return int(code)


if __name__ == "__main__":
    sys.exit(main())
