"""Schemas for the draft lifecycle API."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

from services.drafts.content_kinds import ContentKind
from services.drafts.models import Artifact
from services.drafts.slot import DraftSlot, DraftStatus


class GenerateRequest(BaseModel):
    """Request to (re)generate the draft for one slot."""

    kind: Annotated[str, Field(description="Content kind name, e.g. role.cover_letter")]
    context: Annotated[
        dict[str, Any],
        Field(
            default_factory=dict,
            description="Values the generator needs, such as role_id for answers",
        ),
    ]
    guidance: Annotated[
        str | None,
        Field(default=None, description="Optional free-text steering for this run"),
    ]

    model_config = ConfigDict(extra="forbid")


class GuidanceRequest(BaseModel):
    guidance: Annotated[str | None, Field(default=None, max_length=4000)]

    model_config = ConfigDict(extra="forbid")


class IndexRequest(BaseModel):
    """Optional candidate index for fan-out slots."""

    index: Annotated[int | None, Field(default=None, ge=0)]

    model_config = ConfigDict(extra="forbid")


class EditRequest(IndexRequest):
    text: Annotated[str, Field(description="Replacement text for the edit buffer")]


class ErrorInfoOut(BaseModel):
    code: str
    reason: str


class CandidateOut(BaseModel):
    text: str
    edited_text: str | None = None
    editing: bool = False


class SlotSnapshot(BaseModel):
    """Read model of one draft slot."""

    entity_id: str
    field: str
    kind: str
    status: DraftStatus
    generation: int
    buffered_text: str
    edited_text: str | None = None
    subject: str | None = None
    guidance: str | None = None
    candidates: list[CandidateOut] | None = None
    artifacts: list[Artifact] = Field(default_factory=list)
    error: ErrorInfoOut | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_slot(cls, slot: DraftSlot) -> SlotSnapshot:
        candidates = None
        if slot.candidates is not None:
            candidates = [
                CandidateOut(
                    text=candidate.text,
                    edited_text=candidate.edited_text,
                    editing=candidate.editing,
                )
                for candidate in slot.candidates
            ]
        error = None
        if slot.error is not None:
            error = ErrorInfoOut(code=slot.error.code, reason=slot.error.reason)
        return cls(
            entity_id=slot.key.entity_id,
            field=slot.key.field,
            kind=slot.kind,
            status=slot.status,
            generation=slot.generation,
            buffered_text=slot.buffered_text,
            edited_text=slot.edited_text,
            subject=slot.subject,
            guidance=slot.guidance,
            candidates=candidates,
            artifacts=list(slot.artifacts),
            error=error,
            created_at=slot.created_at,
            updated_at=slot.updated_at,
        )


class AcceptResponse(BaseModel):
    """Outcome of an accept call.

    ``accepted`` is False when the slot was already accepting or accepted and
    nothing was persisted.
    """

    accepted: bool
    entity: dict[str, Any] | None = None


class ContentKindOut(BaseModel):
    name: str
    entity_type: str
    field: str
    entity_field: str
    mode: str
    fan_out: bool
    shares_call_with: list[str] = Field(default_factory=list)

    @classmethod
    def from_kind(cls, kind: ContentKind) -> ContentKindOut:
        return cls(
            name=kind.name,
            entity_type=kind.entity_type,
            field=kind.slot_field,
            entity_field=kind.entity_field,
            mode=kind.mode.value,
            fan_out=kind.fan_out,
            shares_call_with=list(kind.shares_call_with),
        )
