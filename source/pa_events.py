# pa_events.py
from __future__ import annotations

import re
from typing import Iterable, Iterator, Optional

from models import NEW, REMOVE, STREAM_KINDS, StreamEvent

# Event 'new' on sink-input #42
_EVENT_RE = re.compile(r"^Event '(\w+)' on ([\w-]+) #(\d+)\s*$")


def parse_event(line: str) -> Optional[StreamEvent]:
    """
    Parse one `pactl subscribe` line.

    Only new/remove events on sink-inputs and source-outputs are of interest;
    everything else ('change' events, clients, sinks, cards...) gives None.
    """
    m = _EVENT_RE.match((line or "").strip())
    if not m:
        return None
    event_type, facility, index = m.group(1), m.group(2), int(m.group(3))
    if event_type not in (NEW, REMOVE):
        return None
    if facility not in STREAM_KINDS:
        return None
    return StreamEvent(event_type=event_type, kind=facility, index=index)


def iter_events(lines: Iterable[str]) -> Iterator[StreamEvent]:
    for line in lines:
        ev = parse_event(line)
        if ev is not None:
            yield ev
