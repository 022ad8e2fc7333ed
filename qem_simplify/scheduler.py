"""
Collapse Scheduler
==================

Min-priority queue of candidate pairs ordered by ascending cost.

Cost changes push a fresh entry tagged with the pair's new version; older
entries for the same pair become stale and are dropped when popped. The
heap is fully re-ordered once stale entries outnumber live ones.
"""

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .pairs import Pair


@dataclass(order=True)
class ScheduledCollapse:
    """Priority queue entry for a pair."""
    cost: float
    sequence: int  # FIFO among equal costs
    pair: Pair = field(compare=False)
    version: int = field(compare=False)  # For lazy deletion

    @property
    def is_current(self) -> bool:
        return self.pair.active and self.version == self.pair.version


class CollapseScheduler:
    """Priority queue over Pair records."""

    def __init__(self, pairs: Iterable[Pair] = ()):
        self._sequence = itertools.count()
        self._heap: List[ScheduledCollapse] = [self._entry(p) for p in pairs if p.active]
        heapq.heapify(self._heap)
        self._live = len(self._heap)

    def __len__(self) -> int:
        """Number of live pairs still queued."""
        return self._live

    @property
    def stale_count(self) -> int:
        return len(self._heap) - self._live

    def _entry(self, pair: Pair) -> ScheduledCollapse:
        return ScheduledCollapse(
            cost=pair.cost,
            sequence=next(self._sequence),
            pair=pair,
            version=pair.version
        )

    def push(self, pair: Pair):
        """Queue a pair that is not in the scheduler yet."""
        pair.active = True
        heapq.heappush(self._heap, self._entry(pair))
        self._live += 1

    def update(self, pair: Pair):
        """Re-queue an active pair after its cost or result changed."""
        pair.version += 1
        heapq.heappush(self._heap, self._entry(pair))
        self._maybe_reorder()

    def discard(self, pair: Pair):
        """Tombstone a pair so it is never returned."""
        if pair.active:
            pair.active = False
            self._live -= 1
            self._maybe_reorder()

    def pop(self) -> Optional[Pair]:
        """
        Remove and return the lowest-cost live pair.

        The returned pair is marked inactive. Returns None once every live
        pair has been consumed.
        """
        while self._heap:
            entry = heapq.heappop(self._heap)
            if not entry.is_current:
                continue
            entry.pair.active = False
            self._live -= 1
            return entry.pair
        return None

    def reorder(self):
        """Drop stale entries and rebuild the heap from the live ones."""
        self._heap = [entry for entry in self._heap if entry.is_current]
        heapq.heapify(self._heap)

    def _maybe_reorder(self):
        if self.stale_count > self._live:
            self.reorder()
