"""Draft slot state machine tests."""

from __future__ import annotations

import pytest

from core.exceptions import InvalidRequestError, InvalidTransitionError
from services.drafts.models import (
    Artifact,
    ArtifactFrame,
    CandidateSetResult,
    ContinuationMarker,
    ErrorInfo,
    MessageResult,
    NoResult,
    ParagraphBreakFrame,
    SlotKey,
    TextFrame,
    TextResult,
)
from services.drafts.slot import DraftSlot, DraftStatus


KEY = SlotKey("role-1", "cover_letter")


def generating_slot() -> DraftSlot:
    slot = DraftSlot(KEY, "role.cover_letter")
    slot.start(generation=1)
    return slot


def preview_slot(text: str = "Draft text") -> DraftSlot:
    slot = generating_slot()
    slot.complete_with(TextResult(text))
    return slot


def candidate_slot(*candidates: str) -> DraftSlot:
    slot = DraftSlot(SlotKey("q-1", "submitted_answer"), "question.answer")
    slot.start(generation=1)
    slot.complete_with(CandidateSetResult(candidates or ("A", "B", "C")))
    return slot


class TestGeneration:
    def test_frames_append_in_order(self) -> None:
        slot = generating_slot()
        artifact = Artifact(id="a1", kind="pdf", path="/a1.pdf", created_at="now")

        slot.apply(TextFrame("Hello"))
        slot.apply(ParagraphBreakFrame())
        slot.apply(ArtifactFrame(artifact))
        slot.apply(ContinuationMarker())
        slot.apply(TextFrame("World"))
        slot.complete()

        assert slot.status is DraftStatus.PREVIEW_READY
        assert slot.buffered_text == "Hello\n\nWorld"
        assert slot.artifacts == (artifact,)

    def test_continuation_marker_does_not_complete(self) -> None:
        slot = generating_slot()
        slot.apply(ContinuationMarker())

        assert slot.status is DraftStatus.GENERATING

    def test_frames_rejected_after_completion(self) -> None:
        slot = preview_slot()

        with pytest.raises(InvalidTransitionError):
            slot.apply(TextFrame("late"))
        assert slot.buffered_text == "Draft text"

    def test_start_requires_idle(self) -> None:
        slot = generating_slot()

        with pytest.raises(InvalidTransitionError):
            slot.start(generation=2)

    def test_failure_keeps_partial_buffer(self) -> None:
        slot = generating_slot()
        slot.apply(TextFrame("Partial cover"))

        slot.fail(ErrorInfo(code="transport_failed", reason="timeout"))

        assert slot.status is DraftStatus.FAILED
        assert slot.buffered_text == "Partial cover"
        assert slot.error == ErrorInfo(code="transport_failed", reason="timeout")

    def test_message_result_keeps_subject(self) -> None:
        slot = generating_slot()
        slot.complete_with(MessageResult(message="Hi Sam", subject="Quick intro"))

        assert slot.status is DraftStatus.PREVIEW_READY
        assert slot.buffered_text == "Hi Sam"
        assert slot.subject == "Quick intro"

    def test_no_result_returns_to_idle(self) -> None:
        slot = generating_slot()
        slot.complete_with(NoResult())

        assert slot.status is DraftStatus.IDLE
        assert slot.buffered_text == ""
        assert slot.error is None


class TestEditing:
    def test_save_replaces_buffer_exactly(self) -> None:
        slot = preview_slot("Original")
        slot.begin_edit()
        assert slot.status is DraftStatus.EDITING
        assert slot.edited_text == "Original"

        slot.update_edit("  Rewritten\n\nwith care  ")
        slot.save_edit()

        assert slot.status is DraftStatus.PREVIEW_READY
        assert slot.buffered_text == "  Rewritten\n\nwith care  "
        assert slot.edited_text is None

    def test_save_empty_edit(self) -> None:
        slot = preview_slot("Original")
        slot.begin_edit()
        slot.update_edit("")
        slot.save_edit()

        assert slot.buffered_text == ""

    def test_cancel_restores_preview(self) -> None:
        slot = preview_slot("Original")
        slot.begin_edit()
        slot.update_edit("Something else")
        slot.cancel_edit()

        assert slot.status is DraftStatus.PREVIEW_READY
        assert slot.buffered_text == "Original"
        assert slot.edited_text is None

    def test_edit_requires_preview(self) -> None:
        slot = generating_slot()

        with pytest.raises(InvalidTransitionError):
            slot.begin_edit()
        with pytest.raises(InvalidTransitionError):
            slot.update_edit("x")


class TestAcceptance:
    def test_accept_hands_out_buffer(self) -> None:
        slot = preview_slot("Final")

        content = slot.begin_accept("cover_letter")

        assert slot.status is DraftStatus.ACCEPTING
        assert content is not None
        assert content.text == "Final"
        assert content.field == "cover_letter"
        assert content.slot_key == KEY

    def test_accept_twice_is_noop(self) -> None:
        slot = preview_slot()
        assert slot.begin_accept("cover_letter") is not None
        assert slot.begin_accept("cover_letter") is None

        slot.mark_accepted()

        assert slot.begin_accept("cover_letter") is None
        assert slot.status is DraftStatus.ACCEPTED

    def test_rejected_accept_returns_to_preview(self) -> None:
        slot = preview_slot("Keep me")
        slot.begin_accept("cover_letter")

        slot.reject_accept(ErrorInfo(code="persist_failed", reason="502"))

        assert slot.status is DraftStatus.PREVIEW_READY
        assert slot.buffered_text == "Keep me"
        assert slot.error is not None
        assert slot.begin_accept("cover_letter") is not None

    def test_accept_while_editing_is_rejected(self) -> None:
        slot = preview_slot()
        slot.begin_edit()

        with pytest.raises(InvalidTransitionError):
            slot.begin_accept("cover_letter")


class TestDiscard:
    @pytest.mark.parametrize("prepare", ["generating", "preview", "editing", "failed"])
    def test_non_terminal_states_discard_to_idle(self, prepare: str) -> None:
        slot = generating_slot()
        slot.apply(TextFrame("text"))
        if prepare == "preview":
            slot.complete()
        elif prepare == "editing":
            slot.complete()
            slot.begin_edit()
        elif prepare == "failed":
            slot.fail(ErrorInfo(code="transport_failed", reason="boom"))

        slot.discard()

        assert slot.status is DraftStatus.IDLE
        assert slot.buffered_text == ""
        assert slot.edited_text is None
        assert slot.error is None

    def test_accepted_is_terminal(self) -> None:
        slot = preview_slot()
        slot.begin_accept("cover_letter")
        slot.mark_accepted()

        with pytest.raises(InvalidTransitionError):
            slot.discard()


class TestFanOut:
    def test_candidate_set_preview(self) -> None:
        slot = candidate_slot("A", "B")

        assert slot.status is DraftStatus.PREVIEW_READY_SET
        assert slot.is_fan_out
        assert [c.text for c in slot.candidates] == ["A", "B"]

    def test_candidates_edit_independently(self) -> None:
        slot = candidate_slot("A", "B", "C")

        slot.begin_edit(0)
        slot.begin_edit(2)
        slot.update_edit("A, reworded", 0)
        slot.update_edit("C, reworded", 2)
        slot.save_edit(0)
        slot.cancel_edit(2)

        assert [c.text for c in slot.candidates] == ["A, reworded", "B", "C"]
        assert not any(c.editing for c in slot.candidates)
        assert slot.status is DraftStatus.PREVIEW_READY_SET

    def test_accept_collapses_the_set(self) -> None:
        slot = candidate_slot("A", "B", "C")

        content = slot.begin_accept("submitted_answer", 1)
        slot.mark_accepted()

        assert content is not None
        assert content.text == "B"
        assert slot.status is DraftStatus.ACCEPTED
        assert slot.candidates is None
        assert slot.buffered_text == "B"

    def test_rejected_accept_keeps_the_set(self) -> None:
        slot = candidate_slot("A", "B")
        slot.begin_accept("submitted_answer", 0)

        slot.reject_accept(ErrorInfo(code="persist_failed", reason="down"))

        assert slot.status is DraftStatus.PREVIEW_READY_SET
        assert [c.text for c in slot.candidates] == ["A", "B"]

    def test_index_is_required_and_checked(self) -> None:
        slot = candidate_slot("A")

        with pytest.raises(InvalidRequestError):
            slot.begin_edit()
        with pytest.raises(InvalidRequestError):
            slot.begin_accept("submitted_answer", 5)

    def test_accepting_an_unsaved_edit_is_rejected(self) -> None:
        slot = candidate_slot("A", "B")
        slot.begin_edit(0)

        with pytest.raises(InvalidTransitionError):
            slot.begin_accept("submitted_answer", 0)
