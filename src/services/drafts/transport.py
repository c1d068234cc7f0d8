"""HTTP transport to the generation backend.

Two modes share one contract, ``generate(slot_key, request) -> Outcome``:

* atomic     - one POST, one JSON body, decoded once into a GenerationResult
* streaming  - one POST whose body is decoded line by line into frames; the
               stream ends when the server closes the response

Every call is tagged with a per-key monotonic ticket. Issuing a new call for a
key (or invalidating the key) makes all earlier tickets stale; callers check
``is_current`` before letting a result touch a slot.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import httpx

from core.config import Settings, get_settings
from core.observability import get_tracer
from services.drafts.content_kinds import (
    CONTENT_KINDS,
    ContentKind,
    ResponseShape,
    get_content_kind,
)
from services.drafts.decoder import StreamFrameDecoder
from services.drafts.exceptions import DecodeError, StaleResultDiscarded, TransportError
from services.drafts.models import (
    CandidateSetResult,
    Frame,
    GenerationRequest,
    GenerationResult,
    MessageResult,
    NoResult,
    SlotKey,
    TextResult,
    TransportMode,
)


logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


@dataclass(frozen=True, slots=True)
class CallTicket:
    key: SlotKey
    seq: int


@dataclass(slots=True)
class AtomicOutcome:
    ticket: CallTicket
    result: GenerationResult
    # Results for kinds answered by the same call, keyed by kind name
    sibling_results: dict[str, GenerationResult] = field(default_factory=dict)


@dataclass(slots=True)
class StreamingOutcome:
    ticket: CallTicket
    frames: AsyncIterator[Frame]


Outcome = AtomicOutcome | StreamingOutcome


@dataclass(slots=True)
class _KeyTickets:
    seq: int = 0
    outstanding: int = 0


class GenerationTransport:
    """Issue generation calls and track which call is current per slot key."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        settings: Settings | None = None,
        kinds: dict[str, ContentKind] | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._client = client
        self._kinds = kinds if kinds is not None else CONTENT_KINDS
        self._atomic_timeout = settings.ATOMIC_TIMEOUT_SECONDS
        self._stream_max_seconds = settings.STREAM_MAX_SECONDS
        self._stream_idle_timeout = settings.STREAM_IDLE_TIMEOUT_SECONDS
        self._tickets: dict[SlotKey, _KeyTickets] = {}

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> GenerationTransport:
        settings = settings or get_settings()
        client = httpx.AsyncClient(base_url=settings.GENERATION_BASE_URL)
        return cls(client, settings=settings)

    # -- tickets -----------------------------------------------------------

    def issue(self, key: SlotKey) -> CallTicket:
        state = self._tickets.setdefault(key, _KeyTickets())
        state.seq += 1
        state.outstanding += 1
        return CallTicket(key=key, seq=state.seq)

    def release(self, ticket: CallTicket) -> None:
        """Mark the call behind ``ticket`` finished.

        A key is forgotten once none of its calls are outstanding, so the
        ticket table only holds keys with work in flight. The count restarting
        for a forgotten key is safe: no ticket from before can still be held.
        """
        state = self._tickets.get(ticket.key)
        if state is None:
            return
        state.outstanding -= 1
        if state.outstanding <= 0:
            del self._tickets[ticket.key]

    def invalidate(self, key: SlotKey) -> None:
        """Make every outstanding call for ``key`` stale without starting a new one."""
        state = self._tickets.get(key)
        if state is not None:
            state.seq += 1

    def is_current(self, ticket: CallTicket) -> bool:
        state = self._tickets.get(ticket.key)
        return state is not None and state.seq == ticket.seq

    def outstanding(self, key: SlotKey) -> int:
        state = self._tickets.get(key)
        return state.outstanding if state else 0

    def ensure_current(self, ticket: CallTicket) -> None:
        if not self.is_current(ticket):
            raise StaleResultDiscarded(
                f"Call {ticket.seq} for {ticket.key} was superseded"
            )

    # -- calls -------------------------------------------------------------

    async def generate(self, slot_key: SlotKey, request: GenerationRequest) -> Outcome:
        """Start one generation call for ``slot_key``.

        Atomic calls complete before returning. Streaming calls return at once;
        the request is sent when ``frames`` is first iterated. The caller owns
        the returned ticket and hands it to ``release`` when done; a failed
        atomic call releases its own ticket before raising.
        """
        kind = self._resolve_kind(request.kind)
        path = kind.build_generate_path(slot_key.entity_id, request.context)
        body = kind.build_generate_body(request.context, request.guidance)
        ticket = self.issue(slot_key)
        logger.debug(
            "Generation call %s for %s (%s, %s)",
            ticket.seq,
            slot_key,
            kind.name,
            request.transport_mode.value,
        )

        if request.transport_mode is TransportMode.STREAMING:
            frames = self._stream(kind, path, body)
            return StreamingOutcome(ticket=ticket, frames=frames)

        with tracer.start_as_current_span("drafts.transport.atomic") as span:
            span.set_attribute("draft.kind", kind.name)
            span.set_attribute("draft.seq", ticket.seq)
            try:
                payload = await self._post_json(path, body)
            except BaseException:
                self.release(ticket)
                raise
        return AtomicOutcome(
            ticket=ticket,
            result=decode_atomic(kind, payload),
            sibling_results={
                name: decode_atomic(self._resolve_kind(name), payload)
                for name in kind.shares_call_with
            },
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _resolve_kind(self, name: str) -> ContentKind:
        if name in self._kinds:
            return self._kinds[name]
        return get_content_kind(name)

    async def _post_json(self, path: str, body: dict[str, Any]) -> Any:
        try:
            response = await self._client.post(
                path, json=body, timeout=self._atomic_timeout
            )
        except httpx.TimeoutException as exc:
            raise TransportError("Generation timed out", reason="timeout") from exc
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Generation request failed: {type(exc).__name__}"
            ) from exc

        if response.is_error:
            raise _status_error(response)
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError("Generation response was not valid JSON") from exc

    async def _stream(
        self, kind: ContentKind, path: str, body: dict[str, Any]
    ) -> AsyncIterator[Frame]:
        decoder = StreamFrameDecoder()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._stream_max_seconds
        timeout = httpx.Timeout(self._atomic_timeout, read=self._stream_idle_timeout)
        received = 0

        # Not a current span: the generator suspends between frames.
        span = tracer.start_span("drafts.transport.stream")
        span.set_attribute("draft.kind", kind.name)
        try:
            async with self._client.stream(
                "POST", path, json=body, timeout=timeout
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise _status_error(response)
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    for frame in decoder.feed(chunk):
                        yield frame
                    if loop.time() > deadline:
                        raise TransportError(
                            "Generation stream exceeded its maximum duration",
                            reason="timeout",
                        )
            for frame in decoder.flush():
                yield frame
        except httpx.TimeoutException as exc:
            raise TransportError(
                "Generation stream timed out", reason="timeout"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(
                f"Generation stream failed: {type(exc).__name__}"
            ) from exc
        finally:
            span.set_attribute("draft.bytes_received", received)
            span.end()


def _status_error(response: httpx.Response) -> TransportError:
    message = response.reason_phrase or "Generation request failed"
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        message = payload["error"]
    return TransportError(
        message,
        reason=f"http_{response.status_code}",
        status_code=response.status_code,
    )


def _non_empty_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def decode_atomic(kind: ContentKind, payload: Any) -> GenerationResult:
    """Decode an atomic response body into a tagged result.

    Missing or empty expected members mean "no result", never an error.
    """
    if not isinstance(payload, dict):
        return NoResult()

    if kind.response_shape is ResponseShape.ANSWERS:
        answers = payload.get("answers")
        if isinstance(answers, list):
            candidates = tuple(a for a in answers if _non_empty_str(a))
        else:
            single = _non_empty_str(payload.get("answer"))
            candidates = (single,) if single else ()
        return CandidateSetResult(candidates) if candidates else NoResult()

    if kind.response_shape is ResponseShape.MESSAGE:
        message = _non_empty_str(payload.get("message"))
        if message is None:
            return NoResult()
        subject = payload.get("subject")
        return MessageResult(
            message=message, subject=subject if isinstance(subject, str) else None
        )

    member = kind.response_member or "text"
    text = _non_empty_str(payload.get(member))
    return TextResult(text) if text else NoResult()
