# service.py
from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import QCoreApplication, QObject

from classifier import ClientClassifier
from controller import AudioController
from debounce import Debouncer
from engine import SwitchEngine
from models import StreamEvent
from orchestrator import SwitchOrchestrator
from store_config import Settings
from subscriber import PactlSubscriber

log = logging.getLogger(__name__)

EXIT_FEED_LOST = 3


class SwitcherService(QObject):
    """
    Wires the event feed, the debouncer and the engine together on the Qt
    event loop. Everything runs on the loop's thread.
    """

    def __init__(
        self,
        settings: Settings,
        controller: AudioController,
        subscriber: Optional[PactlSubscriber] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.settings = settings
        self.controller = controller
        classifier = ClientClassifier(
            tracked=settings.tracked,
            persistent_speakers=settings.persistent_speakers,
            aliases=settings.aliases,
        )
        orchestrator = SwitchOrchestrator(controller, mute_on_duplex=settings.mute_on_duplex)
        self.engine = SwitchEngine(controller, classifier, orchestrator)

        self.debouncer = Debouncer(settings.debounce_seconds, self)
        self.debouncer.settled.connect(self._on_settled)

        self.subscriber = subscriber or PactlSubscriber(startup_wait=settings.startup_wait_seconds, parent=self)
        self.subscriber.connected.connect(self._on_connected)
        self.subscriber.live.connect(self._on_connected)
        self.subscriber.event_received.connect(self._on_event)
        self.subscriber.terminated.connect(self._on_terminated)
        self.exit_code = 0

    def start(self) -> None:
        self.subscriber.start()

    def stop(self) -> None:
        self.debouncer.cancel()
        self.subscriber.stop()
        self.controller.close()

    def _on_connected(self) -> None:
        # Runs on process start and again once the subscription is live;
        # streams can come and go in between.
        if self.engine.reconcile():
            self.debouncer.arm()

    def _on_event(self, event: StreamEvent) -> None:
        if self.engine.handle_event(event):
            self.debouncer.arm()

    def _on_settled(self) -> None:
        self.engine.check()

    def _on_terminated(self, reason: str) -> None:
        log.info("Shutting down: %s", reason)
        self.exit_code = EXIT_FEED_LOST
        self.debouncer.cancel()
        app = QCoreApplication.instance()
        if app is not None:
            app.exit(EXIT_FEED_LOST)
