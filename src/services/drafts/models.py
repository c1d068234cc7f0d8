"""Typed contract objects shared by the draft engine components.

* SlotKey            - Identity of one generatable content area.
* Artifact           - Side-channel record emitted during a streamed generation.
* Frame variants     - Units decoded from a streaming response.
* GenerationResult   - Tagged variant decoded once from an atomic response body
                       so render sites never re-parse shape-shifting payloads.
* GenerationRequest  - What the transport needs to start one call.
* AcceptedContent    - Final text handed to the acceptance sink.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True, slots=True)
class SlotKey:
    entity_id: str
    field: str

    def __str__(self) -> str:
        return f"{self.entity_id}:{self.field}"


class TransportMode(str, Enum):
    ATOMIC = "atomic"
    STREAMING = "streaming"


class Artifact(BaseModel):
    """File or asset produced by the generator while it streams."""

    id: str
    kind: str
    path: str
    created_at: datetime | str

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


# --------------------------------------------------------------------------
# Stream frames
# --------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TextFrame:
    text: str


@dataclass(frozen=True, slots=True)
class ArtifactFrame:
    artifact: Artifact


@dataclass(frozen=True, slots=True)
class ParagraphBreakFrame:
    pass


@dataclass(frozen=True, slots=True)
class ContinuationMarker:
    """`[DONE]` sentinel. Informational only; transport closure ends a stream."""


Frame = TextFrame | ArtifactFrame | ParagraphBreakFrame | ContinuationMarker

PARAGRAPH_SEPARATOR = "\n\n"


# --------------------------------------------------------------------------
# Atomic results
# --------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TextResult:
    text: str


@dataclass(frozen=True, slots=True)
class CandidateSetResult:
    candidates: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class MessageResult:
    message: str
    subject: str | None = None


@dataclass(frozen=True, slots=True)
class NoResult:
    pass


GenerationResult = TextResult | CandidateSetResult | MessageResult | NoResult


# --------------------------------------------------------------------------
# Requests and acceptance
# --------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    slot_key: SlotKey
    kind: str
    transport_mode: TransportMode
    guidance: str | None = None
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AcceptedContent:
    slot_key: SlotKey
    kind: str
    field: str
    text: str
    subject: str | None = None


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    """Error surfaced on a slot. Never carries draft content."""

    code: str
    reason: str
