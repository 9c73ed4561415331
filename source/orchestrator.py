# orchestrator.py
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from controller import AudioController
from errors import CommandFailed, StaleReference
from models import DUPLEX, INPUT, OUTPUT, STEREO, Device
from registry import ConnectionTable

log = logging.getLogger(__name__)


class SwitchOrchestrator:
    """
    Runs the multi-step profile change in either direction.

    Each step is best effort: a failed command is logged and the next step
    runs. Only a failure to resolve the device aborts a transition, and
    nothing that already happened is rolled back.

    Owns the volume memory (last volume of the endpoint most recently
    switched away from) and the mute ledger (output streams muted for the
    duration of a call).
    """

    def __init__(self, controller: AudioController, mute_on_duplex: bool = True) -> None:
        self.controller = controller
        self.mute_on_duplex = mute_on_duplex
        self.saved_volume: Optional[int] = None
        self.muted: Dict[int, str] = {}

    def _step(self, what: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args)
        except StaleReference as e:
            log.debug("%s skipped, already gone: %s", what, e)
            return None
        except CommandFailed as e:
            log.warning("%s failed, continuing: %s", what, e)
            return None

    def _resolve_device(self) -> Optional[Device]:
        try:
            device = self.controller.get_active_device()
        except CommandFailed as e:
            log.error("Cannot resolve the active device, not switching: %s", e)
            return None
        if device is None:
            log.info("Default output is not a Bluetooth headset, not switching")
        return device

    def _read_volume_if_moving(self, current: str, new: str) -> Optional[int]:
        if current == new:
            return None
        return self._step(f"Reading volume of {current}", self.controller.get_output_volume, current)

    def _restore_volume(self, endpoint: str) -> None:
        if self.saved_volume is None:
            return
        log.info("Resetting volume to %d%%", self.saved_volume)
        self._step(f"Setting volume of {endpoint}", self.controller.set_output_volume, endpoint, self.saved_volume)

    def enter_duplex(self, table: ConnectionTable) -> bool:
        device = self._resolve_device()
        if device is None:
            return False

        new = self.controller.endpoints(device, DUPLEX)
        new_volume = self._read_volume_if_moving(device.output, new.output)

        if self.mute_on_duplex:
            self.mute_others(table)

        log.info("Switching %s to duplex", device.card)
        self._step(f"Setting profile of {device.card}", self.controller.set_profile, device, DUPLEX)
        self._step(f"Setting default source {new.input}", self.controller.set_default_input, new.input)
        self._step(f"Setting default sink {new.output}", self.controller.set_default_output, new.output)

        for index in sorted(table.get(OUTPUT, {})):
            self._step(f"Moving {OUTPUT} #{index}", self.controller.move_stream, OUTPUT, index, new.output)
        for index in sorted(table.get(INPUT, {})):
            self._step(f"Moving {INPUT} #{index}", self.controller.move_stream, INPUT, index, new.input)

        self._restore_volume(new.output)
        self.saved_volume = new_volume
        return True

    def leave_duplex(self) -> bool:
        device = self._resolve_device()
        if device is None:
            return False

        new = self.controller.endpoints(device, STEREO)
        new_volume = self._read_volume_if_moving(device.output, new.output)

        log.info("Switching %s back to stereo", device.card)
        self._step(f"Setting profile of {device.card}", self.controller.set_profile, device, STEREO)
        self._step(f"Setting default sink {new.output}", self.controller.set_default_output, new.output)

        self._restore_volume(new.output)
        self.saved_volume = new_volume
        self.unmute_others()
        return True

    def mute_others(self, table: ConnectionTable) -> Dict[int, str]:
        """
        Mute unmuted output streams that are not tracked connections.

        Only streams flagged as resumable are touched; the others could not
        be reliably brought back afterwards.
        """
        tracked = set(table.get(OUTPUT, {}))
        try:
            streams = self.controller.list_unmuted_output_streams(excluding=tracked)
        except CommandFailed as e:
            log.warning("Listing output streams failed, not muting anything: %s", e)
            return {}

        for s in streams:
            if s.index in tracked or s.muted or not s.resumable:
                continue
            self.muted[s.index] = s.application_name

        if not self.muted:
            return {}

        log.info("Muting %s", " ".join(sorted(set(self.muted.values()))))
        for index in sorted(self.muted):
            self._step(f"Muting {OUTPUT} #{index}", self.controller.set_mute, index, True)
        return dict(self.muted)

    def unmute_others(self) -> Dict[int, str]:
        if not self.muted:
            return {}
        restored = dict(self.muted)
        log.info("Unmuting %s", " ".join(sorted(set(restored.values()))))
        for index in sorted(restored):
            self._step(f"Unmuting {OUTPUT} #{index}", self.controller.set_mute, index, False)
        self.muted.clear()
        return restored
