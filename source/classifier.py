# classifier.py
from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional, Pattern

log = logging.getLogger(__name__)


def _compile_all(patterns: Iterable[str]) -> List[Pattern[str]]:
    out: List[Pattern[str]] = []
    for p in patterns:
        p = (p or "").strip()
        if p:
            out.append(re.compile(p))
    return out


class ClientClassifier:
    """
    Decides which applications are two-way communication clients.

    Every pattern must match the whole application name (case-sensitive).
    Names that match are folded through `aliases` so that a client using a
    different name for its microphone stream is still counted as one client.
    """

    def __init__(
        self,
        tracked: Iterable[str],
        persistent_speakers: Iterable[str] = (),
        aliases: Optional[Dict[str, str]] = None,
    ) -> None:
        self._tracked = _compile_all(tracked)
        self._persistent = _compile_all(persistent_speakers)
        self._aliases: Dict[str, str] = dict(aliases or {})

    @staticmethod
    def _matches(patterns: List[Pattern[str]], name: str) -> bool:
        return any(p.fullmatch(name) for p in patterns)

    def canonical_name(self, name: str) -> str:
        return self._aliases.get(name, name)

    def classify(self, kind: str, application_name: Optional[str]) -> Optional[str]:
        if not application_name:
            return None
        if not self._matches(self._tracked, application_name):
            log.debug("bad client (%s): %s", kind, application_name)
            return None
        log.debug("good client (%s): %s", kind, application_name)
        return self.canonical_name(application_name)

    def is_persistent_speaker(self, canonical_name: str) -> bool:
        return self._matches(self._persistent, canonical_name)
