"""Protocols for the engine's collaborators.

The engine depends on these rather than on the HTTP implementations so tests
(and alternative backends) can inject their own transport or sink.
"""

from __future__ import annotations

from typing import Any, Protocol

from services.drafts.content_kinds import ContentKind
from services.drafts.models import AcceptedContent, GenerationRequest, SlotKey
from services.drafts.transport import CallTicket, Outcome


class TransportProtocol(Protocol):
    """Start generation calls and arbitrate which call is current per key."""

    async def generate(self, slot_key: SlotKey, request: GenerationRequest) -> Outcome:
        ...

    def release(self, ticket: CallTicket) -> None:
        ...

    def invalidate(self, key: SlotKey) -> None:
        ...

    def is_current(self, ticket: CallTicket) -> bool:
        ...

    async def aclose(self) -> None:
        ...


class AcceptanceSinkProtocol(Protocol):
    """Persist accepted text and return the refreshed entity."""

    async def persist(
        self, kind: ContentKind, content: AcceptedContent
    ) -> dict[str, Any]:
        ...

    async def aclose(self) -> None:
        ...
