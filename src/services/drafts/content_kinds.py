"""Catalog of AI-assisted content kinds.

Each kind parameterizes the single draft engine: which entity it belongs to,
which field the slot is keyed by, which entity field acceptance writes, how
generation is requested and how the atomic response body is shaped.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from string import Formatter
from typing import Any

from core.exceptions import InvalidRequestError, UnknownContentKindError
from services.drafts.models import TransportMode


class ResponseShape(str, Enum):
    STREAM = "stream"  # line-streamed frames
    ANSWERS = "answers"  # {"answers": [str, ...]} or {"answer": str}; fan-out
    MESSAGE = "message"  # {"subject"?: str, "message": str}
    MEMBER = "member"  # {<response_member>: str}


@dataclass(frozen=True, slots=True)
class ContentKind:
    name: str
    entity_type: str
    slot_field: str
    entity_field: str
    mode: TransportMode
    generate_path: str
    response_shape: ResponseShape
    accept_method: str
    accept_path: str
    response_member: str | None = None
    guidance_param: str = "guidance"
    # Kinds whose content arrives in the same response as this one
    shares_call_with: tuple[str, ...] = ()

    @property
    def fan_out(self) -> bool:
        return self.response_shape is ResponseShape.ANSWERS

    def path_params(self) -> set[str]:
        return {
            name
            for _, name, _, _ in Formatter().parse(self.generate_path)
            if name and name != "entity_id"
        }

    def build_generate_path(self, entity_id: str, context: dict[str, Any]) -> str:
        missing = self.path_params() - context.keys()
        if missing:
            raise InvalidRequestError(
                f"{self.name} needs context value(s): {', '.join(sorted(missing))}"
            )
        return self.generate_path.format_map({**context, "entity_id": entity_id})

    def build_generate_body(
        self, context: dict[str, Any], guidance: str | None
    ) -> dict[str, Any]:
        path_params = self.path_params()
        body = {k: v for k, v in context.items() if k not in path_params}
        if guidance and guidance.strip():
            body[self.guidance_param] = guidance.strip()
        return body

    def build_accept_path(self, entity_id: str) -> str:
        return self.accept_path.format(entity_id=entity_id)


def _member(
    name: str,
    entity_type: str,
    field: str,
    generate_path: str,
    *,
    accept_method: str,
    accept_path: str,
    entity_field: str | None = None,
    shares_call_with: tuple[str, ...] = (),
) -> ContentKind:
    return ContentKind(
        name=name,
        entity_type=entity_type,
        slot_field=field,
        entity_field=entity_field or field,
        mode=TransportMode.ATOMIC,
        generate_path=generate_path,
        response_shape=ResponseShape.MEMBER,
        response_member=entity_field or field,
        accept_method=accept_method,
        accept_path=accept_path,
        shares_call_with=shares_call_with,
    )


_ROLE_PATH = "/api/roles/{entity_id}"
_INTERVIEW_PATH = "/api/interviews/{entity_id}"
_PREP_PATH = "/api/interviews/{entity_id}/generate-prep"
_PREP_KINDS = (
    "interview.prep_notes",
    "interview.questions_to_ask",
    "interview.research_notes",
)


def _prep_siblings(name: str) -> tuple[str, ...]:
    return tuple(kind for kind in _PREP_KINDS if kind != name)


CONTENT_KINDS: dict[str, ContentKind] = {
    kind.name: kind
    for kind in (
        ContentKind(
            name="role.cover_letter",
            entity_type="role",
            slot_field="cover_letter",
            entity_field="cover_letter",
            mode=TransportMode.STREAMING,
            generate_path="/api/stream/cover-letter/{entity_id}",
            response_shape=ResponseShape.STREAM,
            accept_method="PUT",
            accept_path=_ROLE_PATH,
            guidance_param="additionalContext",
        ),
        ContentKind(
            name="role.linkedin_message",
            entity_type="role",
            slot_field="linkedin_message",
            entity_field="linkedin_message",
            mode=TransportMode.ATOMIC,
            generate_path="/api/roles/{entity_id}/generate-linkedin-message",
            response_shape=ResponseShape.MESSAGE,
            accept_method="PUT",
            accept_path=_ROLE_PATH,
        ),
        _member(
            "role.questions_to_ask",
            "role",
            "questions_to_ask",
            "/api/roles/{entity_id}/questions-to-ask",
            accept_method="PUT",
            accept_path=_ROLE_PATH,
        ),
        _member(
            "interview.prep_notes",
            "interview",
            "prep_notes",
            _PREP_PATH,
            accept_method="PATCH",
            accept_path=_INTERVIEW_PATH,
            shares_call_with=_prep_siblings("interview.prep_notes"),
        ),
        _member(
            "interview.questions_to_ask",
            "interview",
            "questions_to_ask",
            _PREP_PATH,
            accept_method="PATCH",
            accept_path=_INTERVIEW_PATH,
            shares_call_with=_prep_siblings("interview.questions_to_ask"),
        ),
        _member(
            "interview.research_notes",
            "interview",
            "research_notes",
            _PREP_PATH,
            accept_method="PATCH",
            accept_path=_INTERVIEW_PATH,
            shares_call_with=_prep_siblings("interview.research_notes"),
        ),
        _member(
            "interview.follow_up_note",
            "interview",
            "follow_up_note",
            "/api/interviews/{entity_id}/generate-follow-up",
            accept_method="PATCH",
            accept_path=_INTERVIEW_PATH,
        ),
        _member(
            "interview.transcript_analysis",
            "interview",
            "transcript_analysis",
            "/api/interviews/{entity_id}/analyze-transcript",
            entity_field="analysis_notes",
            accept_method="PATCH",
            accept_path=_INTERVIEW_PATH,
        ),
        ContentKind(
            name="question.answer",
            entity_type="question",
            slot_field="submitted_answer",
            entity_field="submitted_answer",
            mode=TransportMode.ATOMIC,
            generate_path="/api/roles/{role_id}/questions/generate",
            response_shape=ResponseShape.ANSWERS,
            accept_method="PUT",
            accept_path="/api/questions/{entity_id}",
        ),
    )
}


def get_content_kind(name: str) -> ContentKind:
    try:
        return CONTENT_KINDS[name]
    except KeyError:
        raise UnknownContentKindError(f"Unknown content kind '{name}'") from None
