# Filename: event_guard.py

import logging
from typing import Set

logger = logging.getLogger("EventGuard")


class DedupGuard:
    """Remembers every admitted transaction signature for the process lifetime."""

    def __init__(self):
        self._seen: Set[str] = set()

    def admit(self, transaction_id: str) -> bool:
        if transaction_id in self._seen:
            logger.debug(f"[DEDUP] {transaction_id} already handled, dropping")
            return False
        self._seen.add(transaction_id)
        return True

    def __contains__(self, transaction_id: str) -> bool:
        return transaction_id in self._seen

    @property
    def seen(self) -> int:
        return len(self._seen)


class SingleFlight:
    """
    Idle/busy flag for one process-wide critical section.

    There is no waiting: a caller that finds the flag busy is expected to
    drop its work. Release on every exit path with try/finally.
    """

    def __init__(self, name: str):
        self.name = name
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def try_acquire(self) -> bool:
        if self._busy:
            return False
        self._busy = True
        return True

    def release(self) -> None:
        self._busy = False

    def __repr__(self) -> str:
        return f"SingleFlight({self.name!r}, busy={self._busy})"
