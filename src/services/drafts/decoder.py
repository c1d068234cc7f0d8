"""Incremental decoder for line-streamed generation output.

The generation backend writes newline-delimited lines. Lines starting with
``data: `` carry a payload:

* ``[DONE]``            -> ContinuationMarker (informational, not end of stream)
* empty payload         -> ParagraphBreakFrame
* JSON object           -> TextFrame for a truthy ``text`` member and/or
                           ArtifactFrame for an ``artifact`` member
* anything else         -> TextFrame carrying the raw payload verbatim

Other lines are ignored. Network chunks may split lines (and multi-byte
characters) anywhere, so the decoder keeps the trailing partial line between
feeds. Only invalid UTF-8 in the byte stream itself is an error.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import Iterable

from pydantic import ValidationError

from services.drafts.exceptions import DecodeError
from services.drafts.models import (
    PARAGRAPH_SEPARATOR,
    Artifact,
    ArtifactFrame,
    ContinuationMarker,
    Frame,
    ParagraphBreakFrame,
    TextFrame,
)


logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_TOKEN = "[DONE]"


class StreamFrameDecoder:
    """Turn an arbitrarily chunked byte stream into typed frames."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="strict")
        self._carry = ""
        self._closed = False

    def feed(self, chunk: bytes) -> list[Frame]:
        """Decode one chunk and return the frames of every completed line."""
        if self._closed:
            raise DecodeError("Decoder already flushed")
        self._carry += self._decode(chunk, final=False)
        if "\n" not in self._carry:
            return []
        *lines, self._carry = self._carry.split("\n")
        return _frames_for_lines(lines)

    def flush(self) -> list[Frame]:
        """Finish the stream, treating a trailing unterminated line as complete."""
        if self._closed:
            return []
        tail = self._carry + self._decode(b"", final=True)
        self._carry = ""
        self._closed = True
        if not tail:
            return []
        return _frames_for_lines(tail.split("\n"))

    def _decode(self, chunk: bytes, *, final: bool) -> str:
        try:
            return self._decoder.decode(chunk, final=final)
        except UnicodeDecodeError as exc:
            self._closed = True
            raise DecodeError(f"Invalid byte sequence in stream: {exc.reason}") from exc


def _frames_for_lines(lines: Iterable[str]) -> list[Frame]:
    frames: list[Frame] = []
    for line in lines:
        frames.extend(parse_line(line))
    return frames


def parse_line(line: str) -> list[Frame]:
    """Map one complete line to zero or more frames. Never raises."""
    if line.endswith("\r"):
        line = line[:-1]
    if not line.startswith(DATA_PREFIX):
        return []
    payload = line[len(DATA_PREFIX) :]
    if payload == DONE_TOKEN:
        return [ContinuationMarker()]
    if payload == "":
        return [ParagraphBreakFrame()]

    try:
        parsed = json.loads(payload)
    except (ValueError, RecursionError):
        return [TextFrame(payload)]
    if not isinstance(parsed, dict):
        return [TextFrame(payload)]

    frames: list[Frame] = []
    text = _text_member(parsed.get("text"))
    if text:
        frames.append(TextFrame(text))
    raw_artifact = parsed.get("artifact")
    if raw_artifact is not None:
        try:
            frames.append(ArtifactFrame(Artifact.model_validate(raw_artifact)))
        except ValidationError as exc:
            logger.warning(
                "Skipping malformed artifact in stream (%d errors)", exc.error_count()
            )
    return frames


def _text_member(value: object) -> str | None:
    """Text for a ``text`` member; numbers and ``true`` render as JSON does."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool | int | float) and value:
        return json.dumps(value)
    return None


def render_frames(frames: Iterable[Frame]) -> str:
    """Text a sequence of frames contributes to a draft buffer."""
    parts: list[str] = []
    for frame in frames:
        if isinstance(frame, TextFrame):
            parts.append(frame.text)
        elif isinstance(frame, ParagraphBreakFrame):
            parts.append(PARAGRAPH_SEPARATOR)
    return "".join(parts)
