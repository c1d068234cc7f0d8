"""Content kind catalog tests."""

from __future__ import annotations

import pytest

from core.exceptions import InvalidRequestError, UnknownContentKindError
from services.drafts.content_kinds import CONTENT_KINDS, ResponseShape, get_content_kind
from services.drafts.models import TransportMode


def test_only_cover_letter_streams() -> None:
    streaming = [
        k.name for k in CONTENT_KINDS.values() if k.mode is TransportMode.STREAMING
    ]
    assert streaming == ["role.cover_letter"]


def test_answers_are_the_only_fan_out_kind() -> None:
    assert [k.name for k in CONTENT_KINDS.values() if k.fan_out] == ["question.answer"]


def test_transcript_analysis_persists_to_analysis_notes() -> None:
    kind = get_content_kind("interview.transcript_analysis")

    assert kind.slot_field == "transcript_analysis"
    assert kind.entity_field == "analysis_notes"
    assert kind.response_member == "analysis_notes"
    assert kind.response_shape is ResponseShape.MEMBER


def test_unknown_kind() -> None:
    with pytest.raises(UnknownContentKindError):
        get_content_kind("role.haiku")


def test_generate_path_requires_context() -> None:
    kind = get_content_kind("question.answer")

    with pytest.raises(InvalidRequestError, match="role_id"):
        kind.build_generate_path("q-1", {})
    assert (
        kind.build_generate_path("q-1", {"role_id": "r-9"})
        == "/api/roles/r-9/questions/generate"
    )


def test_context_cannot_override_entity_id() -> None:
    kind = get_content_kind("interview.prep_notes")

    path = kind.build_generate_path("int-1", {"entity_id": "int-666"})

    assert path == "/api/interviews/int-1/generate-prep"


def test_generate_body_carries_trimmed_guidance() -> None:
    cover = get_content_kind("role.cover_letter")
    answer = get_content_kind("question.answer")

    assert cover.build_generate_body({}, "  warm tone ") == {
        "additionalContext": "warm tone"
    }
    assert cover.build_generate_body({}, "   ") == {}
    assert answer.build_generate_body(
        {"role_id": "r-1", "question": "Why?"}, "short"
    ) == {"question": "Why?", "guidance": "short"}


def test_accept_paths() -> None:
    questions = get_content_kind("role.questions_to_ask")
    assert (questions.accept_method, questions.build_accept_path("r-1")) == (
        "PUT",
        "/api/roles/r-1",
    )
    assert get_content_kind("question.answer").build_accept_path("q-1") == (
        "/api/questions/q-1"
    )


def test_interview_prep_kinds_share_one_call() -> None:
    prep = [
        "interview.prep_notes",
        "interview.questions_to_ask",
        "interview.research_notes",
    ]

    for name in prep:
        kind = get_content_kind(name)
        assert kind.generate_path == "/api/interviews/{entity_id}/generate-prep"
        assert set(kind.shares_call_with) == set(prep) - {name}
    assert get_content_kind("interview.follow_up_note").shares_call_with == ()
