# decision.py
from __future__ import annotations

from typing import Callable, Dict, Optional, Set

from models import DUPLEX, OUTPUT, STREAM_KINDS
from registry import ConnectionTable


def should_enter_duplex(table: ConnectionTable) -> bool:
    """At least one tracked output and one tracked input, from any clients."""
    return all(table.get(k) for k in STREAM_KINDS)


def client_holdings(table: ConnectionTable) -> Dict[str, Set[str]]:
    held: Dict[str, Set[str]] = {}
    for kind, conns in table.items():
        for name in conns.values():
            held.setdefault(name, set()).add(kind)
    return held


def should_leave_duplex(
    table: ConnectionTable,
    current_mode: Optional[str],
    is_persistent_speaker: Callable[[str], bool],
) -> bool:
    """
    True when every tracked client is done with the headset.

    A persistent-speaker client may keep the output stream alone open; any
    other stream held by any client keeps the device in duplex mode.
    """
    if current_mode != DUPLEX:
        return False

    for name, kinds in client_holdings(table).items():
        if not kinds:
            continue
        if is_persistent_speaker(name) and kinds == {OUTPUT}:
            continue
        return False
    return True
