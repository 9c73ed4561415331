# engine.py
from __future__ import annotations

import logging
from typing import Optional

from classifier import ClientClassifier
from controller import AudioController
from decision import should_enter_duplex, should_leave_duplex
from errors import CommandFailed
from models import DUPLEX, NEW, REMOVE, STEREO, STREAM_KINDS, StreamEvent
from orchestrator import SwitchOrchestrator
from registry import ConnectionRegistry

log = logging.getLogger(__name__)


class SwitchEngine:
    """
    Tracks two-way clients and decides when the headset changes mode.

    All methods are meant to be called from one thread, in event order:
    `handle_event` for each feed event, `reconcile` when the feed is started
    and again when its first output arrives, and `check` once events have
    been quiet for the settle period.
    """

    def __init__(
        self,
        controller: AudioController,
        classifier: ClientClassifier,
        orchestrator: Optional[SwitchOrchestrator] = None,
    ) -> None:
        self.controller = controller
        self.classifier = classifier
        self.orchestrator = orchestrator or SwitchOrchestrator(controller)
        self.registry = ConnectionRegistry()
        self.reconciled = False
        self.checks = 0

    def _new(self, kind: str, index: int, application_name: Optional[str]) -> bool:
        name = self.classifier.classify(kind, application_name)
        if name is None:
            return False
        log.info("NEW: %s / %d / %s", kind, index, name)
        self.registry.insert(kind, index, name)
        return True

    def handle_event(self, event: StreamEvent) -> bool:
        """
        Apply one feed event to the registry.

        Returns True when the registry changed, i.e. when a settle check
        should be scheduled.
        """
        if not self.reconciled:
            self.reconcile()

        if event.event_type == REMOVE:
            name = self.registry.remove(event.kind, event.index)
            if name is None:
                log.debug("Ignoring remove of untracked %s #%d", event.kind, event.index)
                return False
            log.info("REMOVE: %s / %d / %s", event.kind, event.index, name)
            return True

        if event.event_type != NEW:
            return False

        app = event.application_name
        if app is None:
            try:
                app = self.controller.stream_application_name(event.kind, event.index)
            except CommandFailed as e:
                log.warning("Cannot identify %s #%d: %s", event.kind, event.index, e)
                return False
        return self._new(event.kind, event.index, app)

    def reconcile(self) -> int:
        """
        Bring the registry in line with the streams that exist right now.

        Streams not tracked yet are classified as if their 'new' events had
        been seen, and tracked ids that no longer exist are dropped. Returns
        how many entries changed.
        """
        try:
            live = {kind: self.controller.enumerate_live_streams(kind) for kind in STREAM_KINDS}
        except CommandFailed as e:
            log.warning("Cannot list existing streams yet: %s", e)
            return 0

        changed = 0
        for kind, streams in live.items():
            present = {s.index for s in streams}
            for index in self.registry.ids(kind):
                if index in present:
                    continue
                name = self.registry.remove(kind, index)
                log.info("REMOVE: %s / %d / %s (no longer exists)", kind, index, name)
                changed += 1
            for s in streams:
                if self.registry.get(kind, s.index) is not None:
                    continue
                if self._new(kind, s.index, s.application_name):
                    changed += 1
        self.reconciled = True
        return changed

    def current_mode(self) -> Optional[str]:
        try:
            device = self.controller.get_active_device()
            if device is None:
                return None
            return self.controller.get_current_mode(device)
        except CommandFailed as e:
            log.warning("Cannot query the device mode: %s", e)
            return None

    def check(self) -> Optional[str]:
        """
        Settle check: switch if the tracked connections call for it.

        Returns the mode switched to, or None if nothing was done. An
        unknown mode never leads to a switch in either direction.
        """
        self.checks += 1
        log.info("Quiet period elapsed, checking for state change")
        table = self.registry.snapshot()
        mode = self.current_mode()

        result: Optional[str] = None
        if should_enter_duplex(table):
            if mode is None:
                log.info("Device mode unknown, not switching to duplex")
            elif mode != DUPLEX and self.orchestrator.enter_duplex(table):
                result = DUPLEX
        elif should_leave_duplex(table, mode, self.classifier.is_persistent_speaker):
            if self.orchestrator.leave_duplex():
                result = STEREO
        log.debug("Done checking for state change")
        return result
