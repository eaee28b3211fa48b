# token_monitor.py

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from event_guard import DedupGuard, SingleFlight
from models import DiscoveryEvent
from telegram_alert import TelegramNotifier

logger = logging.getLogger("TokenMonitor")


class PoolMonitor:
    """
    Single consumer of the discovery queue.

    Each event gets its own task so that a busy pipeline drops new events
    instead of letting them pile up in the queue. Approved tokens are traded
    in detached tasks once the pipeline flag is released.
    """

    def __init__(self, config: Dict[str, Any], event_queue: asyncio.Queue, resolver, verifier,
                 trader=None, notifier: Optional[TelegramNotifier] = None):
        self.event_queue = event_queue
        self.resolver = resolver
        self.verifier = verifier
        self.trader = trader
        self.notifier = notifier
        self.auto_buy = bool(config.get("AUTO_BUY_ENABLED", True))
        self.dedup = DedupGuard()
        self.pipeline = SingleFlight("pipeline")
        self._running = True
        self._tasks: Set[asyncio.Task] = set()
        self.stats = {
            "received": 0,
            "dropped_busy": 0,
            "duplicates": 0,
            "no_pair": 0,
            "approved": 0,
            "rejected": 0,
            "errors": 0,
        }

    def stop(self):
        self._running = False

    async def run(self):
        while self._running:
            event = await self.event_queue.get()
            self._spawn(self.handle_event(event))

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def handle_event(self, event: DiscoveryEvent) -> List[str]:
        """Returns the mints approved for this event."""
        self.stats["received"] += 1

        if self.pipeline.busy:
            self.stats["dropped_busy"] += 1
            logger.info(f"[MONITOR] Pipeline busy, dropping {event.transaction_id}")
            return []
        if not self.dedup.admit(event.transaction_id):
            self.stats["duplicates"] += 1
            return []

        self.pipeline.try_acquire()
        approved = []
        try:
            pair = await self.resolver.resolve(event.transaction_id)
            if pair is None:
                self.stats["no_pair"] += 1
                return []

            for mint in pair.tokens_to_verify():
                verdict = await self.verifier.verify(mint)
                if verdict:
                    self.stats["approved"] += 1
                    approved.append((mint, self.verifier.summary_for(mint)))
                elif verdict is False:
                    self.stats["rejected"] += 1
        except Exception as e:
            self.stats["errors"] += 1
            logger.error(f"[MONITOR] Error handling {event.transaction_id}: {e}")
        finally:
            self.pipeline.release()

        for mint, summary in approved:
            self._dispatch(mint, event, summary)
        return [mint for mint, _ in approved]

    def _dispatch(self, mint: str, event: DiscoveryEvent, summary: str = ""):
        if self.notifier:
            self._spawn(self.notifier.send_token_alert(mint, event.transaction_id, summary))

        if not self.auto_buy or self.trader is None:
            logger.info(f"[MONITOR] {mint} approved, auto-buy disabled")
            return
        self._spawn(self.trader.execute(mint))

    def status_report(self, scheduler=None, checks=None) -> str:
        lines = [
            "📊 Pipeline status",
            "Events: " + ", ".join(f"{k}={v}" for k, v in self.stats.items()),
            f"Transactions seen: {self.dedup.seen}",
            f"Cached verdicts: {len(self.verifier.cache)}",
        ]
        if scheduler is not None:
            lines.append(f"Scheduler: pending={scheduler.pending} " +
                         " ".join(f"{k}={v}" for k, v in scheduler.stats.items()))
        if checks is not None:
            failures = checks.get_check_statistics()
            lines.append("Check errors: " + (", ".join(f"{k}={v}" for k, v in failures.items()) or "none"))
        return "\n".join(lines)
