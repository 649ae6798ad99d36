"""
Per-rank index of placed node slots using sortedcontainers.SortedList.

The layout engine asks two questions while placing a block of siblings:
which slots already sit at this rank, and how far do they reach. Slots are
kept sorted by centre within each rank so both answers come out in order.
"""

from __future__ import annotations

from typing import Optional
import heapq
import numpy as np
from sortedcontainers import SortedList


class RankSlot:
    """Span reserved by one placed node at its rank."""

    def __init__(self, node_id: str, rank: float, centre: float, height: float):
        self.node_id = node_id
        self.rank = rank
        self.centre = centre
        self.height = height

    @property
    def lo(self) -> float:
        return self.centre - self.height / 2

    @property
    def hi(self) -> float:
        return self.centre + self.height / 2

    def __repr__(self) -> str:
        return f"RankSlot({self.node_id!r}, rank={self.rank}, centre={self.centre}, height={self.height})"


def _slot_key(slot: RankSlot) -> tuple[float, str]:
    return (slot.centre, slot.node_id)


class RankIndex:
    """
    Slots grouped by rank coordinate.

    Two rank coordinates closer than `tolerance` are treated as the same
    rank.
    """

    def __init__(self, tolerance: float = 10.0):
        """
        Initialize index.

        Args:
            tolerance: Largest rank difference still counted as one rank
        """
        self.tolerance = tolerance
        self._ranks: dict[float, SortedList] = {}
        self._slots: dict[str, RankSlot] = {}
        self._keys: dict[str, float] = {}

    def _rank_key(self, rank: float) -> Optional[float]:
        for key in self._ranks:
            if abs(key - rank) < self.tolerance:
                return key
        return None

    def insert(self, node_id: str, rank: float, centre: float, height: float) -> RankSlot:
        """Reserve a slot for a node."""
        if node_id in self._slots:
            self.remove(node_id)
        key = self._rank_key(rank)
        if key is None:
            key = rank
            self._ranks[key] = SortedList(key=_slot_key)
        slot = RankSlot(node_id, rank, centre, height)
        self._ranks[key].add(slot)
        self._slots[node_id] = slot
        self._keys[node_id] = key
        return slot

    def remove(self, node_id: str) -> None:
        """Release a node's slot."""
        slot = self._slots.pop(node_id)
        self._ranks[self._keys.pop(node_id)].remove(slot)

    def move(self, node_id: str, centre: float) -> RankSlot:
        """Shift a node's slot to a new centre within its rank."""
        slot = self._slots[node_id]
        return self.insert(node_id, slot.rank, centre, slot.height)

    def slots_at(self, rank: float, exclude: Optional[str] = None) -> list[RankSlot]:
        """
        Get the slots at a rank, ordered by centre.

        Args:
            rank: Rank coordinate
            exclude: Node whose own slot is left out
        """
        runs = [
            slots for key, slots in self._ranks.items()
            if abs(key - rank) < self.tolerance
        ]
        # Keys lie at least one tolerance apart; a query can still match two
        if len(runs) == 1:
            ordered = iter(runs[0])
        else:
            ordered = heapq.merge(*runs, key=_slot_key)
        return [s for s in ordered if s.node_id != exclude]

    def bounds_at(
        self,
        rank: float,
        exclude: Optional[str] = None
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Get centres and extents of every slot at a rank.

        Returns:
            (centres, lows, highs) arrays, ordered by centre
        """
        slots = self.slots_at(rank, exclude)
        centres = np.array([s.centre for s in slots], dtype=float)
        heights = np.array([s.height for s in slots], dtype=float)
        return centres, centres - heights / 2, centres + heights / 2

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._slots

    def __len__(self) -> int:
        return len(self._slots)
