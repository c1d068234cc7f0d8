"""Keyed collection of live draft slots and their per-key side state.

One entry per SlotKey carries everything the UI tracks for that content area
(the live slot and any guidance typed before triggering), so there is a single
place to look a key up and nothing to keep in sync across parallel maps.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from services.drafts.models import SlotKey
from services.drafts.slot import DraftSlot


@dataclass(slots=True)
class SlotEntry:
    slot: DraftSlot | None = None
    guidance: str | None = None

    @property
    def empty(self) -> bool:
        return self.slot is None and not self.guidance


class SlotRegistry:
    def __init__(self) -> None:
        self._entries: dict[SlotKey, SlotEntry] = {}

    def __contains__(self, key: object) -> bool:
        return isinstance(key, SlotKey) and self.get(key) is not None

    def __len__(self) -> int:
        return sum(1 for entry in self._entries.values() if entry.slot is not None)

    def get(self, key: SlotKey) -> DraftSlot | None:
        entry = self._entries.get(key)
        return entry.slot if entry else None

    def upsert(self, slot: DraftSlot) -> DraftSlot | None:
        """Install ``slot`` under its key, returning the instance it replaced."""
        entry = self._entries.setdefault(slot.key, SlotEntry())
        previous, entry.slot = entry.slot, slot
        return previous

    def remove(self, key: SlotKey) -> DraftSlot | None:
        """Drop the live slot for ``key``; guidance typed for the key is kept."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        removed, entry.slot = entry.slot, None
        self._prune(key, entry)
        return removed

    def set_guidance(self, key: SlotKey, guidance: str | None) -> None:
        entry = self._entries.setdefault(key, SlotEntry())
        entry.guidance = guidance if guidance and guidance.strip() else None
        self._prune(key, entry)

    def guidance(self, key: SlotKey) -> str | None:
        entry = self._entries.get(key)
        return entry.guidance if entry else None

    def slots(self, entity_id: str | None = None) -> list[DraftSlot]:
        return [
            slot
            for key, slot in self._iter_slots()
            if entity_id is None or key.entity_id == entity_id
        ]

    def clear(self) -> None:
        self._entries.clear()

    def _iter_slots(self) -> Iterator[tuple[SlotKey, DraftSlot]]:
        for key, entry in self._entries.items():
            if entry.slot is not None:
                yield key, entry.slot

    def _prune(self, key: SlotKey, entry: SlotEntry) -> None:
        if entry.empty:
            self._entries.pop(key, None)
