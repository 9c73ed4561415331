# controller.py
from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional

from models import DUPLEX, STEREO, Device, Endpoints, StreamInfo

# bluez_sink.XX_XX_XX_XX_XX_XX.a2dp_sink (PulseAudio)
# bluez_output.XX_XX_XX_XX_XX_XX.1       (PipeWire)
_BLUEZ_SINK_RE = re.compile(r"^bluez_(?:sink|output)\.([^.]+)\.(.+)$")

DEFAULT_STEREO_PROFILE = "a2dp_sink"
DEFAULT_DUPLEX_PROFILE = "headset_head_unit"


def device_from_sink_name(name: Optional[str]) -> Optional[Device]:
    m = _BLUEZ_SINK_RE.match(name or "")
    if not m:
        return None
    return Device(address=m.group(1), profile=m.group(2), output=name or "")


class AudioController:
    """
    What the switcher needs from the audio server.

    Every call may raise CommandFailed. Subclasses implement the queries and
    commands; profile/endpoint naming lives here.
    """

    def __init__(
        self,
        stereo_profile: str = DEFAULT_STEREO_PROFILE,
        duplex_profile: str = DEFAULT_DUPLEX_PROFILE,
    ) -> None:
        self.profiles: Dict[str, str] = {STEREO: stereo_profile, DUPLEX: duplex_profile}

    def profile_name(self, mode: str) -> str:
        try:
            return self.profiles[mode]
        except KeyError:
            raise ValueError(f"Unknown device mode: {mode!r}") from None

    def mode_for_profile(self, profile: Optional[str]) -> Optional[str]:
        for mode, name in self.profiles.items():
            if profile and profile == name:
                return mode
        return None

    def endpoints(self, device: Device, mode: str) -> Endpoints:
        p = self.profile_name(mode)
        return Endpoints(output=device.sink_name(p), input=device.source_name(p))

    # Queries

    def get_active_device(self) -> Optional[Device]:
        raise NotImplementedError

    def get_current_mode(self, device: Device) -> Optional[str]:
        raise NotImplementedError

    def get_output_volume(self, endpoint: str) -> Optional[int]:
        raise NotImplementedError

    def list_unmuted_output_streams(self, excluding: Iterable[int] = ()) -> List[StreamInfo]:
        raise NotImplementedError

    def enumerate_live_streams(self, kind: str) -> List[StreamInfo]:
        raise NotImplementedError

    def stream_application_name(self, kind: str, index: int) -> Optional[str]:
        raise NotImplementedError

    # Commands

    def set_output_volume(self, endpoint: str, level: int) -> None:
        raise NotImplementedError

    def set_profile(self, device: Device, mode: str) -> None:
        raise NotImplementedError

    def set_default_output(self, endpoint: str) -> None:
        raise NotImplementedError

    def set_default_input(self, endpoint: str) -> None:
        raise NotImplementedError

    def move_stream(self, kind: str, index: int, endpoint: str) -> None:
        raise NotImplementedError

    def set_mute(self, index: int, muted: bool) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass
