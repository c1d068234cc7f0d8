"""Slot registry tests."""

from __future__ import annotations

from services.drafts.models import SlotKey
from services.drafts.registry import SlotRegistry
from services.drafts.slot import DraftSlot


def make_slot(
    entity_id: str, field: str, kind: str = "interview.prep_notes"
) -> DraftSlot:
    return DraftSlot(SlotKey(entity_id, field), kind)


def test_upsert_replaces_and_returns_previous() -> None:
    registry = SlotRegistry()
    first = make_slot("int-1", "prep_notes")
    second = make_slot("int-1", "prep_notes")

    assert registry.upsert(first) is None
    assert registry.upsert(second) is first
    assert registry.get(SlotKey("int-1", "prep_notes")) is second
    assert len(registry) == 1


def test_independent_keys_coexist() -> None:
    registry = SlotRegistry()
    fields = [
        ("role-1", "cover_letter"),
        ("role-1", "linkedin_message"),
        ("role-1", "questions_to_ask"),
        ("q-1", "submitted_answer"),
        ("q-2", "submitted_answer"),
        ("int-1", "prep_notes"),
        ("int-1", "questions_to_ask"),
        ("int-1", "research_notes"),
        ("int-1", "follow_up_note"),
        ("int-1", "transcript_analysis"),
    ]
    for entity_id, field in fields:
        registry.upsert(make_slot(entity_id, field))

    assert len(registry) == len(fields)
    assert {s.key.field for s in registry.slots("int-1")} == {
        "prep_notes",
        "questions_to_ask",
        "research_notes",
        "follow_up_note",
        "transcript_analysis",
    }
    assert len(registry.slots()) == len(fields)


def test_remove_keeps_guidance() -> None:
    registry = SlotRegistry()
    key = SlotKey("role-1", "cover_letter")
    registry.set_guidance(key, "Mention the open-source work")
    registry.upsert(make_slot("role-1", "cover_letter", "role.cover_letter"))

    removed = registry.remove(key)

    assert removed is not None
    assert key not in registry
    assert registry.get(key) is None
    assert registry.guidance(key) == "Mention the open-source work"


def test_blank_guidance_clears_entry() -> None:
    registry = SlotRegistry()
    key = SlotKey("role-1", "cover_letter")
    registry.set_guidance(key, "Keep it short")
    registry.set_guidance(key, "   ")

    assert registry.guidance(key) is None
    assert registry.remove(key) is None


def test_contains_only_live_slots() -> None:
    registry = SlotRegistry()
    key = SlotKey("role-1", "cover_letter")
    registry.set_guidance(key, "Formal tone")

    assert key not in registry
    assert "role-1:cover_letter" not in registry

    registry.upsert(make_slot("role-1", "cover_letter", "role.cover_letter"))
    assert key in registry

    registry.clear()
    assert len(registry) == 0
    assert registry.guidance(key) is None
