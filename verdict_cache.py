# Filename: verdict_cache.py

import logging
from typing import Dict, List, Optional

logger = logging.getLogger("VerdictCache")


class VerdictCache:
    """
    Bounded token -> verdict store evicted in insertion order.

    Keys live in a fixed-size ring; the slot after the newest key always
    holds the oldest one, which is the one evicted when the ring is full.
    Lookups never reorder anything.
    """

    def __init__(self, capacity: int = 150):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._ring: List[Optional[str]] = [None] * capacity
        self._head = 0   # next slot to write, i.e. the oldest entry once full
        self._verdicts: Dict[str, bool] = {}

    def get(self, mint: str) -> Optional[bool]:
        return self._verdicts.get(mint)

    def put(self, mint: str, verdict: bool) -> None:
        if mint in self._verdicts:
            self._verdicts[mint] = verdict
            return

        evicted = self._ring[self._head]
        if evicted is not None:
            del self._verdicts[evicted]
            logger.debug(f"[CACHE] Evicted {evicted}")

        self._ring[self._head] = mint
        self._verdicts[mint] = verdict
        self._head = (self._head + 1) % self.capacity

    def keys(self) -> List[str]:
        """Cached mints, oldest first."""
        ordered = self._ring[self._head:] + self._ring[:self._head]
        return [mint for mint in ordered if mint is not None]

    def __contains__(self, mint: str) -> bool:
        return mint in self._verdicts

    def __len__(self) -> int:
        return len(self._verdicts)

    @classmethod
    def from_config(cls, config) -> "VerdictCache":
        return cls(capacity=int(config.get("VERDICT_CACHE_CAPACITY", 150)))
