# registry.py
from __future__ import annotations

from typing import Dict, List, Optional

from models import STREAM_KINDS

ConnectionTable = Dict[str, Dict[int, str]]


class ConnectionRegistry:
    """Live tracked connections: kind -> stream id -> canonical client name."""

    def __init__(self) -> None:
        self._table: ConnectionTable = {k: {} for k in STREAM_KINDS}

    def insert(self, kind: str, index: int, name: str) -> None:
        if kind not in self._table:
            raise ValueError(f"Unknown stream kind: {kind!r}")
        self._table[kind][int(index)] = name

    def remove(self, kind: str, index: int) -> Optional[str]:
        """Returns the removed client name, or None if the id was not tracked."""
        return self._table.get(kind, {}).pop(int(index), None)

    def get(self, kind: str, index: int) -> Optional[str]:
        return self._table.get(kind, {}).get(int(index))

    def ids(self, kind: str) -> List[int]:
        return sorted(self._table.get(kind, {}))

    def count(self, kind: str) -> int:
        return len(self._table.get(kind, {}))

    def snapshot(self) -> ConnectionTable:
        return {k: dict(v) for k, v in self._table.items()}

    def __len__(self) -> int:
        return sum(len(v) for v in self._table.values())
