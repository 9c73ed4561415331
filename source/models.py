# models.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# Stream kinds, named after the PulseAudio facilities that carry them.
OUTPUT = "sink-input"
INPUT = "source-output"
STREAM_KINDS = (OUTPUT, INPUT)

# Device modes.
STEREO = "stereo"   # A2DP, output only
DUPLEX = "duplex"   # HSP/HFP, mono mic + speaker
DEVICE_MODES = (STEREO, DUPLEX)

# Event types.
NEW = "new"
REMOVE = "remove"


@dataclass(frozen=True)
class StreamEvent:
    event_type: str                         # NEW | REMOVE
    kind: str                               # OUTPUT | INPUT
    index: int
    application_name: Optional[str] = None  # only ever set on NEW


@dataclass(frozen=True)
class StreamInfo:
    index: int
    application_name: str
    muted: bool = False
    resumable: bool = False  # START_CORKED hint


@dataclass(frozen=True)
class Device:
    address: str  # "XX_XX_XX_XX_XX_XX"
    profile: str  # profile suffix of the current default sink
    output: str   # current default sink name

    @property
    def card(self) -> str:
        return f"bluez_card.{self.address}"

    def sink_name(self, profile: str) -> str:
        return f"bluez_sink.{self.address}.{profile}"

    def source_name(self, profile: str) -> str:
        return f"bluez_source.{self.address}.{profile}"


@dataclass(frozen=True)
class Endpoints:
    output: str
    input: str
