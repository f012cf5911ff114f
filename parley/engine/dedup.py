"""Item-id based duplicate suppression for finalization events."""

from __future__ import annotations

from typing import Set


class Deduplicator:
    """Admit each non-empty item id exactly once."""

    def __init__(self) -> None:
        self._seen: Set[str] = set()

    def admit(self, item_id: str) -> bool:
        # An empty id has no identity to track.
        if not item_id:
            return True
        if item_id in self._seen:
            return False
        self._seen.add(item_id)
        return True

    def reset(self) -> None:
        self._seen.clear()

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)
