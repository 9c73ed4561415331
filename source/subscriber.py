# subscriber.py
from __future__ import annotations

import logging
import time
from typing import Iterator, Optional, Sequence

from PySide6.QtCore import QObject, QProcess, QProcessEnvironment, QTimer, Signal

from pa_cli import SUBSCRIBE_COMMAND
from pa_events import iter_events

log = logging.getLogger(__name__)


class PactlSubscriber(QObject):
    """
    Runs `pactl subscribe` and turns its output into StreamEvents.

    Until the first line of output arrives the server may simply not be up
    yet, so a feed that fails or exits early is respawned every
    `retry_interval` seconds for up to `startup_wait` seconds. Any later
    exit is reported through `terminated` and is not retried.

    `connected` fires each time the process starts; `live` fires once, on
    the first line of output, before any event from that line is emitted.
    """

    connected = Signal()
    live = Signal()
    event_received = Signal(object)
    terminated = Signal(str)

    def __init__(
        self,
        startup_wait: float = 30.0,
        retry_interval: float = 1.0,
        command: Sequence[str] = SUBSCRIBE_COMMAND,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        if not command:
            raise ValueError("Empty feed command.")
        self._program = str(command[0])
        self._args = [str(a) for a in command[1:]]
        self._startup_wait = float(startup_wait)
        self._retry_ms = max(0, int(round(retry_interval * 1000)))
        self._deadline = 0.0
        self._seen_output = False
        self._stopping = False
        self._gone = False
        self._proc: Optional[QProcess] = None

    @property
    def established(self) -> bool:
        return self._seen_output

    def is_running(self) -> bool:
        return self._proc is not None and self._proc.state() != QProcess.ProcessState.NotRunning

    def start(self) -> None:
        self._stopping = False
        self._deadline = time.monotonic() + self._startup_wait
        self._spawn()

    def stop(self) -> None:
        self._stopping = True
        proc = self._proc
        self._proc = None
        if proc is None:
            return
        if proc.state() != QProcess.ProcessState.NotRunning:
            proc.terminate()
            if not proc.waitForFinished(1000):
                proc.kill()
                proc.waitForFinished(1000)
        proc.deleteLater()

    def _spawn(self) -> None:
        if self._stopping:
            return
        proc = QProcess(self)
        env = QProcessEnvironment.systemEnvironment()
        env.insert("LC_ALL", "C")
        proc.setProcessEnvironment(env)
        proc.setProgram(self._program)
        proc.setArguments(self._args)
        proc.started.connect(self._on_started)
        proc.readyReadStandardOutput.connect(self._on_ready_read)
        proc.finished.connect(self._on_finished)
        proc.errorOccurred.connect(self._on_error)
        self._proc = proc
        self._gone = False
        log.info("Spawning %s", " ".join([self._program, *self._args]))
        proc.start()

    def _lines(self) -> Iterator[str]:
        proc = self._proc
        while proc is not None and proc.canReadLine():
            line = bytes(proc.readLine()).decode("utf-8", errors="replace")
            if not self._seen_output:
                self._seen_output = True
                self.live.emit()
            yield line

    def _on_started(self) -> None:
        self.connected.emit()

    def _on_ready_read(self) -> None:
        for ev in iter_events(self._lines()):
            self.event_received.emit(ev)

    def _on_error(self, error: QProcess.ProcessError) -> None:
        if error == QProcess.ProcessError.FailedToStart:
            self._process_gone("could not be started")

    def _on_finished(
        self,
        exit_code: int,
        exit_status: QProcess.ExitStatus = QProcess.ExitStatus.NormalExit,
    ) -> None:
        proc = self._proc
        reason = f"exited with status {exit_code}"
        if proc is not None:
            self._on_ready_read()
            err = bytes(proc.readAllStandardError()).decode("utf-8", errors="replace").strip()
            if err:
                reason = f"{reason}: {err}"
        if exit_status == QProcess.ExitStatus.CrashExit:
            reason = "crashed"
        self._process_gone(reason)

    def _process_gone(self, reason: str) -> None:
        if self._stopping or self._gone:
            return
        self._gone = True
        proc = self._proc
        self._proc = None
        if proc is not None:
            proc.deleteLater()

        if not self._seen_output and time.monotonic() < self._deadline:
            log.info("Event feed not available yet (%s), retrying", reason)
            QTimer.singleShot(self._retry_ms, self._spawn)
            return

        if self._seen_output:
            msg = f"Event feed terminated: {reason}"
        else:
            msg = f"Event feed unavailable after {self._startup_wait:.0f}s: {reason}"
        log.error(msg)
        self.terminated.emit(msg)
