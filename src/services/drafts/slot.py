"""Draft slot: per-content state machine plus text buffer.

States::

    idle -> generating -> preview_ready <-> editing
                 |             |
                 |             +-> accepting -> accepted (terminal)
                 |                     |
                 |                     +-> preview_ready (persist failed)
                 +-> preview_ready_set (fan-out candidates)
                 +-> failed (buffer kept)

Any non-terminal state can be discarded back to idle. The buffer only grows
while generating and is frozen afterwards, except for save-after-edit which
replaces it wholesale. Regeneration never mutates a slot in place: the engine
creates a fresh instance under the same key.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from core.exceptions import InvalidRequestError, InvalidTransitionError
from services.drafts.models import (
    PARAGRAPH_SEPARATOR,
    AcceptedContent,
    Artifact,
    ArtifactFrame,
    CandidateSetResult,
    ContinuationMarker,
    ErrorInfo,
    Frame,
    GenerationResult,
    MessageResult,
    NoResult,
    ParagraphBreakFrame,
    SlotKey,
    TextFrame,
    TextResult,
)


class DraftStatus(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    PREVIEW_READY = "preview_ready"
    PREVIEW_READY_SET = "preview_ready_set"
    EDITING = "editing"
    ACCEPTING = "accepting"
    ACCEPTED = "accepted"
    FAILED = "failed"


@dataclass(slots=True)
class Candidate:
    """One answer option of a fan-out slot."""

    text: str
    edited_text: str | None = None

    @property
    def editing(self) -> bool:
        return self.edited_text is not None


class DraftSlot:
    def __init__(self, key: SlotKey, kind: str, *, generation: int = 0) -> None:
        self.key = key
        self.kind = kind
        self.generation = generation
        self.status = DraftStatus.IDLE
        self.guidance: str | None = None
        self.subject: str | None = None
        self.edited_text: str | None = None
        self.candidates: list[Candidate] | None = None
        self.accepted_index: int | None = None
        self.error: ErrorInfo | None = None
        self.created_at = datetime.now(UTC)
        self.updated_at = self.created_at
        self._buffer: list[str] = []
        self._artifacts: list[Artifact] = []

    def __repr__(self) -> str:
        return (
            f"DraftSlot(key={self.key!s}, kind={self.kind}, "
            f"generation={self.generation}, status={self.status.value})"
        )

    # -- read side -----------------------------------------------------------

    @property
    def buffered_text(self) -> str:
        return "".join(self._buffer)

    @property
    def artifacts(self) -> tuple[Artifact, ...]:
        return tuple(self._artifacts)

    @property
    def is_terminal(self) -> bool:
        return self.status is DraftStatus.ACCEPTED

    @property
    def is_fan_out(self) -> bool:
        return self.candidates is not None

    # -- generation ----------------------------------------------------------

    def start(self, generation: int, guidance: str | None = None) -> None:
        self._require("start", DraftStatus.IDLE)
        self.generation = generation
        self.guidance = guidance
        self._buffer = []
        self.error = None
        self._set(DraftStatus.GENERATING)

    def apply(self, frame: Frame) -> None:
        """Apply one stream frame. Frames must arrive in stream order."""
        self._require("apply a frame to", DraftStatus.GENERATING)
        if isinstance(frame, TextFrame):
            self._buffer.append(frame.text)
        elif isinstance(frame, ParagraphBreakFrame):
            self._buffer.append(PARAGRAPH_SEPARATOR)
        elif isinstance(frame, ArtifactFrame):
            self._artifacts.append(frame.artifact)
        elif isinstance(frame, ContinuationMarker):
            return
        self._touch()

    def complete(self) -> None:
        """Streaming transport closed; the buffer becomes the preview."""
        self._require("complete", DraftStatus.GENERATING)
        self._set(DraftStatus.PREVIEW_READY)

    def complete_with(self, result: GenerationResult) -> None:
        """Finish an atomic generation with its decoded result."""
        self._require("complete", DraftStatus.GENERATING)
        if isinstance(result, TextResult):
            self._buffer = [result.text]
            self._set(DraftStatus.PREVIEW_READY)
        elif isinstance(result, MessageResult):
            self._buffer = [result.message]
            self.subject = result.subject
            self._set(DraftStatus.PREVIEW_READY)
        elif isinstance(result, CandidateSetResult):
            self.candidates = [Candidate(text) for text in result.candidates]
            self._set(DraftStatus.PREVIEW_READY_SET)
        elif isinstance(result, NoResult):
            self._buffer = []
            self._set(DraftStatus.IDLE)

    def fail(self, error: ErrorInfo) -> None:
        """Generation failed. Whatever was buffered stays visible."""
        self._require("fail", DraftStatus.GENERATING)
        self.error = error
        self._set(DraftStatus.FAILED)

    # -- editing -------------------------------------------------------------

    def begin_edit(self, index: int | None = None) -> None:
        if self.is_fan_out:
            self._require("edit", DraftStatus.PREVIEW_READY_SET)
            candidate = self._candidate(index)
            if not candidate.editing:
                candidate.edited_text = candidate.text
            self._touch()
            return
        self._require("edit", DraftStatus.PREVIEW_READY)
        self.edited_text = self.buffered_text
        self._set(DraftStatus.EDITING)

    def update_edit(self, text: str, index: int | None = None) -> None:
        if self.is_fan_out:
            candidate = self._candidate(index)
            if not candidate.editing:
                raise InvalidTransitionError("update the edit of", self.status.value)
            candidate.edited_text = text
        else:
            self._require("update the edit of", DraftStatus.EDITING)
            self.edited_text = text
        self._touch()

    def save_edit(self, index: int | None = None) -> None:
        """Local only: the edited text replaces the buffer exactly."""
        if self.is_fan_out:
            candidate = self._candidate(index)
            if not candidate.editing:
                raise InvalidTransitionError("save the edit of", self.status.value)
            candidate.text = candidate.edited_text or ""
            candidate.edited_text = None
            self._touch()
            return
        self._require("save the edit of", DraftStatus.EDITING)
        self._buffer = [self.edited_text or ""]
        self.edited_text = None
        self._set(DraftStatus.PREVIEW_READY)

    def cancel_edit(self, index: int | None = None) -> None:
        if self.is_fan_out:
            self._require("cancel the edit of", DraftStatus.PREVIEW_READY_SET)
            self._candidate(index).edited_text = None
            self._touch()
            return
        self._require("cancel the edit of", DraftStatus.EDITING)
        self.edited_text = None
        self._set(DraftStatus.PREVIEW_READY)

    # -- acceptance ----------------------------------------------------------

    def begin_accept(
        self, field: str, index: int | None = None
    ) -> AcceptedContent | None:
        """Move to accepting and hand out the content to persist.

        Returns None when the slot is already accepting or accepted, so a
        repeated accept never persists twice.
        """
        if self.status in (DraftStatus.ACCEPTING, DraftStatus.ACCEPTED):
            return None
        if self.is_fan_out:
            self._require("accept", DraftStatus.PREVIEW_READY_SET)
            candidate = self._candidate(index)
            if candidate.editing:
                raise InvalidTransitionError("accept an unsaved edit of", "editing")
            text = candidate.text
            self.accepted_index = index
        else:
            self._require("accept", DraftStatus.PREVIEW_READY)
            text = self.buffered_text
        self.error = None
        self._set(DraftStatus.ACCEPTING)
        return AcceptedContent(
            slot_key=self.key,
            kind=self.kind,
            field=field,
            text=text,
            subject=self.subject,
        )

    def mark_accepted(self) -> None:
        self._require("finish accepting", DraftStatus.ACCEPTING)
        if self.candidates is not None and self.accepted_index is not None:
            chosen = self.candidates[self.accepted_index]
            self._buffer = [chosen.text]
            self.candidates = None
        self._set(DraftStatus.ACCEPTED)

    def reject_accept(self, error: ErrorInfo) -> None:
        """Persisting failed: back to the preview with content untouched."""
        self._require("roll back accepting", DraftStatus.ACCEPTING)
        self.error = error
        self.accepted_index = None
        self._set(self._preview_status())

    # -- discard -------------------------------------------------------------

    def discard(self) -> None:
        if self.is_terminal:
            raise InvalidTransitionError("discard", self.status.value)
        self._buffer = []
        self.edited_text = None
        self.candidates = None
        self.subject = None
        self.error = None
        self._set(DraftStatus.IDLE)

    # -- helpers -------------------------------------------------------------

    def _candidate(self, index: int | None) -> Candidate:
        if self.candidates is None or index is None:
            raise InvalidRequestError("A candidate index is required")
        if not 0 <= index < len(self.candidates):
            raise InvalidRequestError(f"No candidate at index {index}")
        return self.candidates[index]

    def _require(self, operation: str, *allowed: DraftStatus) -> None:
        if self.status not in allowed:
            raise InvalidTransitionError(operation, self.status.value)

    def _preview_status(self) -> DraftStatus:
        if self.is_fan_out:
            return DraftStatus.PREVIEW_READY_SET
        return DraftStatus.PREVIEW_READY

    def _set(self, status: DraftStatus) -> None:
        self.status = status
        self._touch()

    def _touch(self) -> None:
        self.updated_at = datetime.now(UTC)
