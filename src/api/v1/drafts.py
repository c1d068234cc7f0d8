"""API endpoints for AI-assisted draft slots.

Every slot is addressed by the owning entity id and the field it drafts.
Generation is started in the background; clients poll the slot snapshot
until it leaves ``generating``.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query, status

from dependencies.engine import Engine
from schemas.api import ApiResponse
from schemas.drafts import (
    AcceptResponse,
    ContentKindOut,
    EditRequest,
    GenerateRequest,
    GuidanceRequest,
    IndexRequest,
    SlotSnapshot,
)
from services.drafts.content_kinds import CONTENT_KINDS
from services.drafts.models import SlotKey


router = APIRouter(prefix="/drafts", tags=["drafts"])


@router.get(
    "/kinds",
    summary="List content kinds",
    response_model=ApiResponse[list[ContentKindOut]],
)
async def list_content_kinds() -> ApiResponse[list[ContentKindOut]]:
    kinds = [ContentKindOut.from_kind(kind) for kind in CONTENT_KINDS.values()]
    return ApiResponse(data=kinds, message="Content kinds retrieved")


@router.get(
    "",
    summary="List live drafts",
    response_model=ApiResponse[list[SlotSnapshot]],
)
async def list_drafts(
    engine: Engine,
    entity_id: Annotated[str | None, Query(description="Only this entity")] = None,
) -> ApiResponse[list[SlotSnapshot]]:
    snapshots = [SlotSnapshot.from_slot(slot) for slot in engine.slots(entity_id)]
    return ApiResponse(data=snapshots, message="Drafts retrieved")


@router.get(
    "/{entity_id}/{field}",
    summary="Get draft",
    response_model=ApiResponse[SlotSnapshot],
    responses={404: {"description": "No draft for this slot"}},
)
async def get_draft(
    entity_id: str, field: str, engine: Engine
) -> ApiResponse[SlotSnapshot]:
    slot = engine.require(SlotKey(entity_id, field))
    return ApiResponse(data=SlotSnapshot.from_slot(slot), message="Draft retrieved")


@router.put(
    "/{entity_id}/{field}/guidance",
    summary="Set guidance",
    response_model=ApiResponse[GuidanceRequest],
)
async def set_guidance(
    entity_id: str, field: str, request: GuidanceRequest, engine: Engine
) -> ApiResponse[GuidanceRequest]:
    """Store guidance used by the next generation for this slot.

    Guidance is kept per slot key and survives regenerate and discard.
    """
    key = SlotKey(entity_id, field)
    engine.set_guidance(key, request.guidance)
    return ApiResponse(
        data=GuidanceRequest(guidance=engine.registry.guidance(key)),
        message="Guidance saved",
    )


@router.post(
    "/{entity_id}/{field}/generate",
    summary="Generate draft",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ApiResponse[SlotSnapshot],
    description=(
        "Start generating a draft for the slot. Any draft already held for the "
        "slot is replaced and an in-flight generation for it is superseded."
    ),
    responses={
        409: {"description": "The slot is being accepted"},
        422: {"description": "Unknown content kind or missing context"},
    },
)
async def generate_draft(
    entity_id: str, field: str, request: GenerateRequest, engine: Engine
) -> ApiResponse[SlotSnapshot]:
    slot = engine.trigger(
        SlotKey(entity_id, field),
        request.kind,
        context=request.context,
        guidance=request.guidance,
    )
    return ApiResponse(data=SlotSnapshot.from_slot(slot), message="Generation started")


@router.post(
    "/{entity_id}/{field}/stop",
    summary="Stop generation",
    response_model=ApiResponse[SlotSnapshot],
)
async def stop_generation(
    entity_id: str, field: str, engine: Engine
) -> ApiResponse[SlotSnapshot]:
    slot = engine.stop(SlotKey(entity_id, field))
    return ApiResponse(data=SlotSnapshot.from_slot(slot), message="Generation stopped")


@router.post(
    "/{entity_id}/{field}/edit",
    summary="Begin editing",
    response_model=ApiResponse[SlotSnapshot],
)
async def begin_edit(
    entity_id: str,
    field: str,
    engine: Engine,
    request: IndexRequest | None = None,
) -> ApiResponse[SlotSnapshot]:
    index = request.index if request else None
    slot = engine.begin_edit(SlotKey(entity_id, field), index)
    return ApiResponse(data=SlotSnapshot.from_slot(slot), message="Editing started")


@router.put(
    "/{entity_id}/{field}/edit",
    summary="Update edit buffer",
    response_model=ApiResponse[SlotSnapshot],
)
async def update_edit(
    entity_id: str, field: str, request: EditRequest, engine: Engine
) -> ApiResponse[SlotSnapshot]:
    slot = engine.update_edit(SlotKey(entity_id, field), request.text, request.index)
    return ApiResponse(data=SlotSnapshot.from_slot(slot), message="Edit updated")


@router.post(
    "/{entity_id}/{field}/save",
    summary="Save edit",
    response_model=ApiResponse[SlotSnapshot],
    description="Replace the draft with the edited text. Nothing is persisted.",
)
async def save_edit(
    entity_id: str,
    field: str,
    engine: Engine,
    request: IndexRequest | None = None,
) -> ApiResponse[SlotSnapshot]:
    index = request.index if request else None
    slot = engine.save_edit(SlotKey(entity_id, field), index)
    return ApiResponse(data=SlotSnapshot.from_slot(slot), message="Edit saved")


@router.post(
    "/{entity_id}/{field}/cancel-edit",
    summary="Cancel edit",
    response_model=ApiResponse[SlotSnapshot],
)
async def cancel_edit(
    entity_id: str,
    field: str,
    engine: Engine,
    request: IndexRequest | None = None,
) -> ApiResponse[SlotSnapshot]:
    index = request.index if request else None
    slot = engine.cancel_edit(SlotKey(entity_id, field), index)
    return ApiResponse(data=SlotSnapshot.from_slot(slot), message="Edit cancelled")


@router.post(
    "/{entity_id}/{field}/accept",
    summary="Accept draft",
    response_model=ApiResponse[AcceptResponse],
    description=(
        "Persist the draft to its entity and retire the slot. Accepting a slot "
        "that is already accepted (or being accepted) persists nothing."
    ),
    responses={
        409: {"description": "The draft is not ready to accept"},
        502: {"description": "The store rejected the write; the draft is kept"},
    },
)
async def accept_draft(
    entity_id: str,
    field: str,
    engine: Engine,
    request: IndexRequest | None = None,
) -> ApiResponse[AcceptResponse]:
    index = request.index if request else None
    entity = await engine.accept(SlotKey(entity_id, field), index)
    if entity is None:
        return ApiResponse(
            data=AcceptResponse(accepted=False), message="Nothing to accept"
        )
    return ApiResponse(
        data=AcceptResponse(accepted=True, entity=entity), message="Draft accepted"
    )


@router.delete(
    "/{entity_id}/{field}",
    summary="Discard draft",
    response_model=ApiResponse[SlotSnapshot],
)
async def discard_draft(
    entity_id: str, field: str, engine: Engine
) -> ApiResponse[SlotSnapshot]:
    slot = engine.discard(SlotKey(entity_id, field))
    return ApiResponse(data=SlotSnapshot.from_slot(slot), message="Draft discarded")
