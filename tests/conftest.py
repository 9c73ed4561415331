import time

import pytest
from PySide6.QtCore import QCoreApplication, QEventLoop

from classifier import ClientClassifier
from tests.fakes import FakeAudioController

TRACKED = ["Skype", "ZOOM VoiceEngine", "WEBRTC VoiceEngine", "Google Chrome", "Google Chrome input"]
PERSISTENT = ["Google Chrome", "ZOOM VoiceEngine"]
ALIASES = {"Google Chrome input": "Google Chrome"}


@pytest.fixture
def classifier():
    return ClientClassifier(tracked=TRACKED, persistent_speakers=PERSISTENT, aliases=ALIASES)


@pytest.fixture
def fake_controller():
    return FakeAudioController()


@pytest.fixture(scope="session")
def qapp():
    """Qt event loop for the timer/process driven parts"""
    return QCoreApplication.instance() or QCoreApplication([])


def wait_until(predicate, timeout=5.0):
    """Process Qt events until predicate() holds or timeout seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        QCoreApplication.processEvents(QEventLoop.ProcessEventsFlag.AllEvents, 20)
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


def spin(seconds):
    wait_until(lambda: False, timeout=seconds)
