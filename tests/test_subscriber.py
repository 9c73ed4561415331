import sys

from models import NEW, OUTPUT, REMOVE, StreamEvent
from subscriber import PactlSubscriber
from tests.conftest import wait_until

FEED_SCRIPT = "\n".join(
    [
        "print(\"Event 'new' on client #3\")",
        "print(\"Event 'new' on sink-input #5\")",
        "print(\"Event 'change' on sink-input #5\")",
        "print(\"Event 'remove' on sink-input #5\")",
    ]
)


def collect(sub):
    got = {"connected": 0, "live": 0, "events": [], "terminated": []}
    sub.connected.connect(lambda: got.__setitem__("connected", got["connected"] + 1))
    sub.live.connect(lambda: got.__setitem__("live", got["live"] + 1))
    sub.event_received.connect(got["events"].append)
    sub.terminated.connect(got["terminated"].append)
    return got


class TestPactlSubscriber:
    def test_events_then_fatal_termination(self, qapp):
        sub = PactlSubscriber(startup_wait=5.0, command=[sys.executable, "-c", FEED_SCRIPT])
        got = collect(sub)
        sub.start()
        assert wait_until(lambda: got["terminated"], timeout=10.0)

        assert got["connected"] == 1
        assert got["live"] == 1
        assert got["events"] == [StreamEvent(NEW, OUTPUT, 5), StreamEvent(REMOVE, OUTPUT, 5)]
        assert sub.established
        assert got["terminated"][0].startswith("Event feed terminated")

    def test_missing_program_gives_up_after_startup_window(self, qapp):
        sub = PactlSubscriber(
            startup_wait=0.3,
            retry_interval=0.05,
            command=["/nonexistent/pactl-for-tests", "subscribe"],
        )
        got = collect(sub)
        sub.start()
        assert wait_until(lambda: got["terminated"], timeout=10.0)
        assert got["connected"] == 0
        assert got["live"] == 0
        assert "unavailable" in got["terminated"][0]
        assert not sub.established

    def test_early_exit_is_retried_during_startup(self, qapp):
        sub = PactlSubscriber(
            startup_wait=1.0,
            retry_interval=0.05,
            command=[sys.executable, "-c", "import sys; sys.exit(1)"],
        )
        got = collect(sub)
        sub.start()
        assert wait_until(lambda: got["terminated"], timeout=10.0)
        assert got["connected"] >= 2
        assert got["events"] == []

    def test_stop_is_not_reported_as_termination(self, qapp):
        sub = PactlSubscriber(
            startup_wait=5.0,
            command=[sys.executable, "-c", "import time; time.sleep(30)"],
        )
        got = collect(sub)
        sub.start()
        assert wait_until(lambda: got["connected"], timeout=10.0)
        assert sub.is_running()
        sub.stop()
        wait_until(lambda: got["terminated"], timeout=0.3)
        assert got["terminated"] == []
        assert not sub.is_running()

    def test_live_comes_before_the_first_event(self, qapp):
        sub = PactlSubscriber(startup_wait=5.0, command=[sys.executable, "-c", FEED_SCRIPT])
        order = []
        sub.live.connect(lambda: order.append("live"))
        sub.event_received.connect(lambda ev: order.append(ev.event_type))
        sub.terminated.connect(lambda reason: order.append("terminated"))
        sub.start()
        assert wait_until(lambda: "terminated" in order, timeout=10.0)
        assert order == ["live", NEW, REMOVE, "terminated"]
