"""
Ordered, sparse collection of baked cards
"""
import logging
from dataclasses import replace
from typing import Iterator, List, Optional, Sequence, Tuple

from .models import CardSlot

logger = logging.getLogger(__name__)


class CardSlotStore:
    """Slots are CardSlot or None (a hole). Trailing holes never survive a mutation."""

    def __init__(self, slots: Optional[Sequence[Optional[CardSlot]]] = None):
        self._slots: List[Optional[CardSlot]] = []
        if slots:
            self.load(slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[Optional[CardSlot]]:
        return iter(list(self._slots))

    def _trim(self):
        while self._slots and self._slots[-1] is None:
            self._slots.pop()

    def slots(self) -> List[Optional[CardSlot]]:
        return list(self._slots)

    def get(self, index: int) -> Optional[CardSlot]:
        if 0 <= index < len(self._slots):
            return self._slots[index]
        return None

    def occupied(self) -> List[Tuple[int, CardSlot]]:
        return [(i, slot) for i, slot in enumerate(self._slots) if slot is not None]

    def count(self) -> int:
        return sum(1 for slot in self._slots if slot is not None)

    def index_of(self, card_id: str) -> Optional[int]:
        for i, slot in enumerate(self._slots):
            if slot is not None and slot.id == card_id:
                return i
        return None

    def append(self, card: CardSlot) -> int:
        for i, slot in enumerate(self._slots):
            if slot is None:
                self._slots[i] = card
                logger.debug(f"Card {card.id} filled hole {i}")
                return i
        self._slots.append(card)
        return len(self._slots) - 1

    def replace(self, card_id: str, **changes) -> bool:
        """Update a card in place, keeping its id. False if the card is gone."""
        index = self.index_of(card_id)
        if index is None:
            return False
        changes.pop('id', None)
        self._slots[index] = replace(self._slots[index], **changes)
        return True

    def remove_at(self, index: int):
        if not 0 <= index < len(self._slots) or self._slots[index] is None:
            return
        self._slots[index] = None
        self._trim()

    def move_to(self, from_index: int, to_index: int):
        if from_index < 0 or to_index < 0 or from_index == to_index:
            return
        if from_index >= len(self._slots) or self._slots[from_index] is None:
            return
        if to_index >= len(self._slots):
            self._slots.extend([None] * (to_index + 1 - len(self._slots)))
        self._slots[from_index], self._slots[to_index] = self._slots[to_index], self._slots[from_index]
        self._trim()

    def clear(self):
        self._slots.clear()

    def load(self, slots: Sequence[Optional[CardSlot]]):
        self._slots = list(slots)
        self._trim()
