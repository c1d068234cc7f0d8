"""Draft engine: the user-facing lifecycle operations for every content slot.

The engine owns the slot registry and runs each generation as an asyncio task.
Per-key exclusivity is enforced by two checks before any result touches a
slot: the transport ticket must still be current for the key, and the slot
must still be the instance the registry holds for the key. A regenerate
installs a fresh slot and issues a new ticket, so late frames or results from
the superseded call fail both checks and are dropped.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from typing import Any

from core.config import Settings, get_settings
from core.error_handler import StructuredLogger
from core.exceptions import (
    InvalidRequestError,
    InvalidTransitionError,
    SlotNotFoundError,
)
from services.drafts.acceptance import AcceptanceSink
from services.drafts.content_kinds import CONTENT_KINDS, ContentKind, get_content_kind
from services.drafts.exceptions import (
    DraftLifecycleError,
    PersistError,
    StaleResultDiscarded,
    TransportError,
)
from services.drafts.interfaces import AcceptanceSinkProtocol, TransportProtocol
from services.drafts.models import (
    ErrorInfo,
    GenerationRequest,
    GenerationResult,
    NoResult,
    SlotKey,
)
from services.drafts.registry import SlotRegistry
from services.drafts.slot import DraftSlot, DraftStatus
from services.drafts.transport import AtomicOutcome, CallTicket, GenerationTransport


logger = logging.getLogger(__name__)
structured_logger = StructuredLogger(__name__)

# Sibling slots a shared generation must not overwrite
_SIBLING_BUSY = (DraftStatus.GENERATING, DraftStatus.EDITING, DraftStatus.ACCEPTING)


class DraftEngine:
    def __init__(
        self,
        transport: TransportProtocol,
        sink: AcceptanceSinkProtocol,
        *,
        registry: SlotRegistry | None = None,
        kinds: dict[str, ContentKind] | None = None,
    ) -> None:
        self.registry = registry if registry is not None else SlotRegistry()
        self._transport = transport
        self._sink = sink
        self._kinds = kinds if kinds is not None else CONTENT_KINDS
        self._tasks: dict[SlotKey, asyncio.Task[None]] = {}
        self._background: set[asyncio.Task[None]] = set()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> DraftEngine:
        settings = settings or get_settings()
        return cls(
            GenerationTransport.from_settings(settings),
            AcceptanceSink.from_settings(settings),
        )

    # -- lookup --------------------------------------------------------------

    def kind_for(self, name: str) -> ContentKind:
        if name in self._kinds:
            return self._kinds[name]
        return get_content_kind(name)

    def get(self, key: SlotKey) -> DraftSlot | None:
        return self.registry.get(key)

    def require(self, key: SlotKey) -> DraftSlot:
        slot = self.registry.get(key)
        if slot is None:
            raise SlotNotFoundError(f"No draft for {key}")
        return slot

    def slots(self, entity_id: str | None = None) -> list[DraftSlot]:
        return self.registry.slots(entity_id)

    def set_guidance(self, key: SlotKey, guidance: str | None) -> None:
        self.registry.set_guidance(key, guidance)

    # -- generation ----------------------------------------------------------

    def trigger(
        self,
        key: SlotKey,
        kind_name: str,
        *,
        context: dict[str, Any] | None = None,
        guidance: str | None = None,
    ) -> DraftSlot:
        """Start (or restart) generation for ``key`` without waiting for it.

        Any previous slot under the key is replaced wholesale; its in-flight
        call becomes stale.
        """
        kind = self.kind_for(kind_name)
        if kind.slot_field != key.field:
            raise InvalidRequestError(
                f"{kind.name} generates '{kind.slot_field}', not '{key.field}'"
            )
        context = dict(context or {})
        kind.build_generate_path(key.entity_id, context)

        previous = self.registry.get(key)
        if previous is not None and previous.status is DraftStatus.ACCEPTING:
            raise InvalidTransitionError("regenerate", previous.status.value)

        if guidance is not None:
            self.registry.set_guidance(key, guidance)
        guidance = self.registry.guidance(key)

        slot = DraftSlot(key, kind.name)
        slot.start(
            generation=previous.generation + 1 if previous else 1, guidance=guidance
        )
        self.registry.upsert(slot)

        request = GenerationRequest(
            slot_key=key,
            kind=kind.name,
            transport_mode=kind.mode,
            guidance=guidance,
            context=context,
        )
        task = asyncio.create_task(
            self._run(slot, request), name=f"draft-generate-{key}-{slot.generation}"
        )
        self._track(key, task)
        structured_logger.info(
            "Draft generation started",
            slot=str(key),
            kind=kind.name,
            generation=slot.generation,
            superseded=previous is not None,
        )
        return slot

    async def generate(
        self,
        key: SlotKey,
        kind_name: str,
        *,
        context: dict[str, Any] | None = None,
        guidance: str | None = None,
    ) -> DraftSlot:
        """Trigger generation and wait until this slot instance settles."""
        slot = self.trigger(key, kind_name, context=context, guidance=guidance)
        await self.wait(key)
        return slot

    async def wait(self, key: SlotKey) -> DraftSlot | None:
        """Wait for the current generation task of ``key``, if any."""
        task = self._tasks.get(key)
        if task is not None:
            await asyncio.wait({task})
        return self.registry.get(key)

    def stop(self, key: SlotKey) -> DraftSlot:
        """Stop listening to an in-flight generation; buffered text is kept."""
        slot = self.require(key)
        if slot.status is not DraftStatus.GENERATING:
            raise InvalidTransitionError("stop", slot.status.value)
        self._cancel(key)
        slot.fail(ErrorInfo(code="cancelled", reason="Generation stopped"))
        return slot

    async def _run(self, slot: DraftSlot, request: GenerationRequest) -> None:
        ticket: CallTicket | None = None
        try:
            outcome = await self._transport.generate(slot.key, request)
            ticket = outcome.ticket
            self._guard(slot, ticket)

            if isinstance(outcome, AtomicOutcome):
                self._fill_siblings(slot, outcome.sibling_results)
                slot.complete_with(outcome.result)
            else:
                async with aclosing(outcome.frames) as frames:
                    async for frame in frames:
                        self._guard(slot, ticket)
                        slot.apply(frame)
                self._guard(slot, ticket)
                slot.complete()
        except StaleResultDiscarded as exc:
            logger.debug("Dropped result for %s: %s", slot.key, exc.message)
            return
        except DraftLifecycleError as exc:
            self._fail_if_live(slot, ticket, exc)
            return
        except Exception as exc:
            logger.exception("Unexpected error generating %s", slot.key)
            self._fail_if_live(
                slot,
                ticket,
                TransportError(type(exc).__name__, reason="internal_error"),
            )
            return
        finally:
            if ticket is not None:
                self._transport.release(ticket)

        structured_logger.info(
            "Draft generation finished",
            slot=str(slot.key),
            kind=slot.kind,
            status=slot.status.value,
            artifacts=len(slot.artifacts),
        )

    def _guard(self, slot: DraftSlot, ticket: CallTicket) -> None:
        owner = self.registry.get(slot.key)
        if not self._transport.is_current(ticket) or owner is not slot:
            raise StaleResultDiscarded(
                f"Call {ticket.seq} for {slot.key} no longer owns the slot"
            )

    def _fill_siblings(
        self, slot: DraftSlot, results: dict[str, GenerationResult]
    ) -> None:
        """Hand sibling slots the content that arrived with this call.

        A sibling the user is working on (generating, editing or accepting) is
        left alone, as is one whose member the response did not carry.
        """
        for name, result in results.items():
            if isinstance(result, NoResult):
                continue
            kind = self.kind_for(name)
            key = SlotKey(slot.key.entity_id, kind.slot_field)
            previous = self.registry.get(key)
            if previous is not None and previous.status in _SIBLING_BUSY:
                continue
            sibling = DraftSlot(key, kind.name)
            sibling.start(
                generation=previous.generation + 1 if previous else 1,
                guidance=slot.guidance,
            )
            sibling.complete_with(result)
            self.registry.upsert(sibling)
            structured_logger.info(
                "Draft filled from shared generation",
                slot=str(key),
                kind=kind.name,
                source=str(slot.key),
            )

    def _fail_if_live(
        self, slot: DraftSlot, ticket: CallTicket | None, exc: DraftLifecycleError
    ) -> None:
        live = self.registry.get(slot.key) is slot and (
            ticket is None or self._transport.is_current(ticket)
        )
        if not live or slot.status is not DraftStatus.GENERATING:
            logger.debug("Dropped failure for superseded %s: %s", slot.key, exc)
            return
        reason = getattr(exc, "reason", exc.error_code)
        slot.fail(ErrorInfo(code=exc.error_code, reason=reason))
        structured_logger.warning(
            "Draft generation failed",
            slot=str(slot.key),
            kind=slot.kind,
            error_code=exc.error_code,
            reason=reason,
            buffered_chars=len(slot.buffered_text),
        )

    # -- editing -------------------------------------------------------------

    def begin_edit(self, key: SlotKey, index: int | None = None) -> DraftSlot:
        slot = self.require(key)
        slot.begin_edit(index)
        return slot

    def update_edit(
        self, key: SlotKey, text: str, index: int | None = None
    ) -> DraftSlot:
        slot = self.require(key)
        slot.update_edit(text, index)
        return slot

    def save_edit(self, key: SlotKey, index: int | None = None) -> DraftSlot:
        slot = self.require(key)
        slot.save_edit(index)
        return slot

    def cancel_edit(self, key: SlotKey, index: int | None = None) -> DraftSlot:
        slot = self.require(key)
        slot.cancel_edit(index)
        return slot

    # -- acceptance ----------------------------------------------------------

    async def accept(
        self, key: SlotKey, index: int | None = None
    ) -> dict[str, Any] | None:
        """Persist the draft for ``key`` and retire the slot.

        Returns the refreshed entity, or None when there is nothing left to
        accept (already accepted or accepting). Raises PersistError with the
        slot back in its preview state when the store rejects the write.
        """
        slot = self.registry.get(key)
        if slot is None:
            return None
        return await self.accept_slot(slot, index)

    async def accept_slot(
        self, slot: DraftSlot, index: int | None = None
    ) -> dict[str, Any] | None:
        kind = self.kind_for(slot.kind)
        content = slot.begin_accept(kind.entity_field, index)
        if content is None:
            return None

        try:
            entity = await self._sink.persist(kind, content)
        except PersistError as exc:
            self._roll_back_accept(
                slot, ErrorInfo(code=exc.error_code, reason=exc.message)
            )
            structured_logger.warning(
                "Draft acceptance failed",
                slot=str(slot.key),
                kind=kind.name,
                status_code=exc.status_code,
            )
            raise
        except BaseException as exc:
            # Cancelled or crashed mid-persist: nothing was confirmed saved
            self._roll_back_accept(
                slot,
                ErrorInfo(
                    code="persist_interrupted",
                    reason=f"Saving was interrupted ({type(exc).__name__})",
                ),
            )
            structured_logger.warning(
                "Draft acceptance interrupted",
                slot=str(slot.key),
                kind=kind.name,
                exception_type=type(exc).__name__,
            )
            raise

        if slot.status is DraftStatus.ACCEPTING:
            slot.mark_accepted()
        if self.registry.get(slot.key) is slot:
            self.registry.remove(slot.key)
        structured_logger.info(
            "Draft accepted", slot=str(slot.key), kind=kind.name, field=content.field
        )
        return entity

    @staticmethod
    def _roll_back_accept(slot: DraftSlot, error: ErrorInfo) -> None:
        if slot.status is DraftStatus.ACCEPTING:
            slot.reject_accept(error)

    # -- discard / shutdown --------------------------------------------------

    def discard(self, key: SlotKey) -> DraftSlot:
        slot = self.require(key)
        slot.discard()
        self._cancel(key)
        self.registry.remove(key)
        structured_logger.info("Draft discarded", slot=str(key), kind=slot.kind)
        return slot

    async def aclose(self) -> None:
        tasks = set(self._tasks.values()) | self._background
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._background.clear()
        await self._transport.aclose()
        await self._sink.aclose()

    def _cancel(self, key: SlotKey) -> None:
        self._transport.invalidate(key)
        task = self._tasks.pop(key, None)
        if task is not None and not task.done():
            task.cancel()

    def _track(self, key: SlotKey, task: asyncio.Task[None]) -> None:
        self._tasks[key] = task
        self._background.add(task)

        def _done(finished: asyncio.Task[None]) -> None:
            self._background.discard(finished)
            if self._tasks.get(key) is finished:
                del self._tasks[key]

        task.add_done_callback(_done)
