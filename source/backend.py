# backend.py
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, List, Optional, Set

import pulsectl

from controller import DEFAULT_DUPLEX_PROFILE, DEFAULT_STEREO_PROFILE, AudioController, device_from_sink_name
from errors import CommandFailed, ServerUnavailable, StaleReference
from models import INPUT, OUTPUT, Device, StreamInfo
from pa_cli import start_corked_sink_inputs

log = logging.getLogger(__name__)


def _app_name(obj: Any) -> str:
    props = getattr(obj, "proplist", None) or {}
    return str(props.get("application.name") or "")


class PulseBackend(AudioController):
    """AudioController on top of a single pulsectl connection."""

    LOOKUP_ATTEMPTS = 5
    LOOKUP_DELAY = 0.2

    def __init__(
        self,
        pulse_client_name: str = "hsp-autoswitch",
        stereo_profile: str = DEFAULT_STEREO_PROFILE,
        duplex_profile: str = DEFAULT_DUPLEX_PROFILE,
    ) -> None:
        super().__init__(stereo_profile=stereo_profile, duplex_profile=duplex_profile)
        self._pulse_client_name = pulse_client_name
        self._pulse: Optional[pulsectl.Pulse] = None

    def _pulse_connect(self) -> pulsectl.Pulse:
        if self._pulse is None:
            try:
                self._pulse = pulsectl.Pulse(self._pulse_client_name)
            except pulsectl.PulseError as e:
                raise ServerUnavailable(f"Cannot connect to the audio server: {e}") from e
        return self._pulse

    def close(self) -> None:
        if self._pulse is not None:
            try:
                self._pulse.close()
            except Exception:
                pass
        self._pulse = None

    def _call(self, what: str, fn: Callable[[pulsectl.Pulse], Any]) -> Any:
        pulse = self._pulse_connect()
        log.debug("pulse: %s", what)
        try:
            return fn(pulse)
        except pulsectl.PulseDisconnected as e:
            # Reconnect on the next call.
            self.close()
            raise ServerUnavailable(f"{what}: disconnected from the audio server") from e
        except pulsectl.PulseIndexError as e:
            raise StaleReference(f"{what}: no such object") from e
        except pulsectl.PulseError as e:
            raise CommandFailed(f"{what} failed: {e}") from e

    # Queries

    def get_active_device(self) -> Optional[Device]:
        name = self._call("server-info", lambda p: p.server_info().default_sink_name)
        device = device_from_sink_name(name)
        if device is None:
            log.debug("Default sink %r is not a Bluetooth sink", name)
        return device

    def get_current_mode(self, device: Device) -> Optional[str]:
        def active_profile(p: pulsectl.Pulse) -> Optional[str]:
            card = p.get_card_by_name(device.card)
            prof = getattr(card, "profile_active", None)
            return prof.name if prof is not None else None

        profile = self._call(f"active-profile {device.card}", active_profile)
        return self.mode_for_profile(profile)

    def get_output_volume(self, endpoint: str) -> Optional[int]:
        def volume(p: pulsectl.Pulse) -> float:
            return p.volume_get_all_chans(p.get_sink_by_name(endpoint))

        v = self._call(f"get-sink-volume {endpoint}", volume)
        if v is None:
            return None
        level = int(round(float(v) * 100))
        log.info("%s volume: %d%%", endpoint, level)
        return level

    def _resumable_sink_inputs(self) -> Set[int]:
        # The native API does not expose stream creation flags; only pacmd does.
        try:
            return start_corked_sink_inputs()
        except CommandFailed as e:
            log.debug("START_CORKED flags unavailable, nothing counts as resumable: %s", e)
            return set()

    def list_unmuted_output_streams(self, excluding: Iterable[int] = ()) -> List[StreamInfo]:
        skip = {int(i) for i in excluding}
        resumable = self._resumable_sink_inputs()
        out: List[StreamInfo] = []
        for si in self._call("list-sink-inputs", lambda p: p.sink_input_list()):
            if si.index in skip or si.mute:
                continue
            out.append(
                StreamInfo(
                    index=si.index,
                    application_name=_app_name(si),
                    muted=False,
                    resumable=si.index in resumable,
                )
            )
        return out

    def _list_streams(self, kind: str) -> List[Any]:
        if kind == OUTPUT:
            return self._call("list-sink-inputs", lambda p: p.sink_input_list())
        if kind == INPUT:
            return self._call("list-source-outputs", lambda p: p.source_output_list())
        raise ValueError(f"Unknown stream kind: {kind!r}")

    def enumerate_live_streams(self, kind: str) -> List[StreamInfo]:
        return [
            StreamInfo(index=s.index, application_name=_app_name(s), muted=bool(getattr(s, "mute", 0)))
            for s in self._list_streams(kind)
        ]

    def stream_application_name(self, kind: str, index: int) -> Optional[str]:
        """
        A freshly announced stream is not always visible yet, so the lookup
        is retried a few times before giving up.
        """
        getter = {OUTPUT: "sink_input_info", INPUT: "source_output_info"}.get(kind)
        if getter is None:
            raise ValueError(f"Unknown stream kind: {kind!r}")

        for attempt in range(self.LOOKUP_ATTEMPTS):
            if attempt:
                time.sleep(self.LOOKUP_DELAY)
            try:
                obj = self._call(f"{kind}-info #{index}", lambda p: getattr(p, getter)(index))
                return _app_name(obj) or None
            except StaleReference:
                continue
        log.debug("%s #%d disappeared before it could be identified", kind, index)
        return None

    # Commands

    def set_output_volume(self, endpoint: str, level: int) -> None:
        def set_volume(p: pulsectl.Pulse) -> None:
            p.volume_set_all_chans(p.get_sink_by_name(endpoint), max(0, int(level)) / 100.0)

        self._call(f"set-sink-volume {endpoint} {level}%", set_volume)

    def set_profile(self, device: Device, mode: str) -> None:
        profile = self.profile_name(mode)

        def set_card_profile(p: pulsectl.Pulse) -> None:
            p.card_profile_set(p.get_card_by_name(device.card), profile)

        self._call(f"set-card-profile {device.card} {profile}", set_card_profile)

    def set_default_output(self, endpoint: str) -> None:
        self._call(f"set-default-sink {endpoint}", lambda p: p.default_set(p.get_sink_by_name(endpoint)))

    def set_default_input(self, endpoint: str) -> None:
        self._call(f"set-default-source {endpoint}", lambda p: p.default_set(p.get_source_by_name(endpoint)))

    def move_stream(self, kind: str, index: int, endpoint: str) -> None:
        if kind == OUTPUT:
            self._call(
                f"move-sink-input {index} {endpoint}",
                lambda p: p.sink_input_move(index, p.get_sink_by_name(endpoint).index),
            )
        elif kind == INPUT:
            self._call(
                f"move-source-output {index} {endpoint}",
                lambda p: p.source_output_move(index, p.get_source_by_name(endpoint).index),
            )
        else:
            raise ValueError(f"Unknown stream kind: {kind!r}")

    def set_mute(self, index: int, muted: bool) -> None:
        self._call(
            f"set-sink-input-mute {index} {int(bool(muted))}",
            lambda p: p.sink_input_mute(index, bool(muted)),
        )
