# pa_cli.py
from __future__ import annotations

import logging
import os
import re
import subprocess
from typing import Dict, List, Sequence, Set

from errors import CommandFailed

log = logging.getLogger(__name__)

SUBSCRIBE_COMMAND = ("pactl", "subscribe")

_INDEX_RE = re.compile(r"^\s*(\d+)")


def c_locale_env() -> Dict[str, str]:
    # Output is parsed, so it must not be localized.
    env = dict(os.environ)
    env["LC_ALL"] = "C"
    return env


def _run(cmd: Sequence[str]) -> subprocess.CompletedProcess[str]:
    return subprocess.run(list(cmd), capture_output=True, text=True, env=c_locale_env())


def pacmd(*args: str) -> str:
    cmd = ["pacmd", *args]
    try:
        p = _run(cmd)
    except OSError as e:
        raise CommandFailed(f"{' '.join(cmd)} could not be run: {e}") from e

    if p.returncode != 0:
        msg = (p.stderr or p.stdout).strip()
        raise CommandFailed(f"{' '.join(cmd)} exited with {p.returncode}: {msg}")

    out = p.stdout.rstrip("\n")
    log.debug("%s: %d lines of output", " ".join(cmd), len(out.splitlines()))
    return out


def split_index_blocks(output: str) -> List[str]:
    return [b for b in re.split(r"index:\s*", output or "")[1:] if b.strip()]


def parse_start_corked(output: str) -> Set[int]:
    """Ids of the sink inputs in `pacmd list-sink-inputs` output flagged START_CORKED."""
    out: Set[int] = set()
    for block in split_index_blocks(output):
        m = _INDEX_RE.match(block)
        if not m:
            continue
        if "START_CORKED" in block:
            out.add(int(m.group(1)))
    return out


def start_corked_sink_inputs() -> Set[int]:
    return parse_start_corked(pacmd("list-sink-inputs"))
