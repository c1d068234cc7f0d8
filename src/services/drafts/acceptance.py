"""Acceptance sink: persist accepted drafts to the entity store.

One update call per acceptance, carrying ``{<field>: final_text}``. The entity
the store returns replaces the locally cached authoritative copy, so later
reads see the accepted value without a reload. Failures raise PersistError and
are never retried here.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from core.config import Settings, get_settings
from core.observability import get_tracer
from services.drafts.content_kinds import ContentKind, ResponseShape
from services.drafts.exceptions import PersistError
from services.drafts.models import AcceptedContent


logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


class EntityCache:
    """Authoritative entity copies keyed by (entity type, entity id)."""

    def __init__(self) -> None:
        self._entities: dict[tuple[str, str], dict[str, Any]] = {}

    def get(self, entity_type: str, entity_id: str) -> dict[str, Any] | None:
        return self._entities.get((entity_type, entity_id))

    def put(self, entity_type: str, entity_id: str, entity: dict[str, Any]) -> None:
        self._entities[(entity_type, entity_id)] = entity

    def patch(self, entity_type: str, entity_id: str, **fields: Any) -> dict[str, Any]:
        entity = {**self._entities.get((entity_type, entity_id), {}), **fields}
        self._entities[(entity_type, entity_id)] = entity
        return entity


def persisted_value(kind: ContentKind, content: AcceptedContent) -> str:
    """Text written to the entity field.

    Message kinds store the subject next to the message body as a JSON
    envelope; every other kind stores the buffer as-is.
    """
    if kind.response_shape is ResponseShape.MESSAGE:
        return json.dumps({"subject": content.subject or "", "message": content.text})
    return content.text


class AcceptanceSink:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        cache: EntityCache | None = None,
        timeout: float | None = None,
    ) -> None:
        self._client = client
        self.cache = cache if cache is not None else EntityCache()
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> AcceptanceSink:
        settings = settings or get_settings()
        client = httpx.AsyncClient(base_url=settings.STORE_BASE_URL)
        return cls(client, timeout=settings.ATOMIC_TIMEOUT_SECONDS)

    async def persist(
        self, kind: ContentKind, content: AcceptedContent
    ) -> dict[str, Any]:
        """Write the accepted text and return the refreshed entity."""
        entity_id = content.slot_key.entity_id
        path = kind.build_accept_path(entity_id)
        value = persisted_value(kind, content)

        with tracer.start_as_current_span("drafts.acceptance.persist") as span:
            span.set_attribute("draft.kind", kind.name)
            span.set_attribute("draft.field", content.field)
            try:
                response = await self._client.request(
                    kind.accept_method,
                    path,
                    json={content.field: value},
                    timeout=self._timeout,
                )
            except httpx.HTTPError as exc:
                raise PersistError(
                    f"Saving {content.field} failed: {type(exc).__name__}"
                ) from exc

            span.set_attribute("http.status_code", response.status_code)
            if response.is_error:
                raise PersistError(
                    f"Saving {content.field} failed with status "
                    f"{response.status_code}",
                    status_code=response.status_code,
                )

        entity = _entity_from(response)
        if entity is None:
            logger.debug(
                "Store returned no entity for %s; patching cached copy",
                content.slot_key,
            )
            return self.cache.patch(
                kind.entity_type, entity_id, **{content.field: value}
            )
        self.cache.put(kind.entity_type, entity_id, entity)
        return entity

    async def aclose(self) -> None:
        await self._client.aclose()


def _entity_from(response: httpx.Response) -> dict[str, Any] | None:
    if not response.content:
        return None
    try:
        payload = response.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None
