# Filename: call_scheduler.py

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

from errors import TransientNetworkError, is_rate_limited
from models import PendingCall

logger = logging.getLogger("CallScheduler")

Sleep = Callable[[float], Awaitable[None]]


class RatePacer:
    """
    Single-slot leaky bucket.

    acquire() waits for the slot; release() hands it back only once
    `interval` seconds have passed, so two consecutive holders are always at
    least `interval` apart no matter how fast the work in between was.
    """

    def __init__(self, interval: float):
        self.interval = max(0.0, float(interval))
        self._lock = asyncio.Lock()

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    async def acquire(self) -> None:
        await self._lock.acquire()

    def release(self) -> None:
        if self.interval <= 0:
            self._unlock()
            return
        asyncio.get_running_loop().call_later(self.interval, self._unlock)

    def _unlock(self) -> None:
        if self._lock.locked():
            self._lock.release()

    async def __aenter__(self) -> "RatePacer":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()


class CallScheduler:
    """
    Single-worker FIFO queue for every outbound RPC/HTTP call.

    A call failing with a rate-limit marker is retried after
    2**retries * backoff_base seconds and re-queued at the head, ahead of new
    work. Anything else settles the caller's future with the error.
    """

    def __init__(self, max_retries: int = 3, pacing_interval: float = 0.5,
                 backoff_base: float = 1.0, sleep: Optional[Sleep] = None):
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.pacer = RatePacer(pacing_interval)
        self._sleep = sleep or asyncio.sleep
        self._queue: Deque[PendingCall] = deque()
        self._worker: Optional[asyncio.Task] = None
        self.stats: Dict[str, int] = {"completed": 0, "failed": 0, "retried": 0}

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "CallScheduler":
        return cls(
            max_retries=int(config.get("SCHEDULER_MAX_RETRIES", 3)),
            pacing_interval=float(config.get("SCHEDULER_PACING_SECONDS", 0.5)),
            backoff_base=float(config.get("SCHEDULER_BACKOFF_BASE_SECONDS", 1.0)),
        )

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def idle(self) -> bool:
        return self._worker is None or self._worker.done()

    async def submit(self, operation: Callable[..., Awaitable[Any]], *args,
                     max_retries: Optional[int] = None, **kwargs) -> Any:
        loop = asyncio.get_running_loop()
        call = PendingCall(
            operation=operation,
            args=args,
            kwargs=kwargs,
            future=loop.create_future(),
            max_retries=self.max_retries if max_retries is None else max_retries,
        )
        self._queue.append(call)
        self._ensure_worker()
        return await call.future

    def _ensure_worker(self) -> None:
        if self.idle:
            self._worker = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while self._queue:
            await self.pacer.acquire()
            call = self._queue.popleft()
            try:
                await self._attempt(call)
            finally:
                self.pacer.release()

    async def _attempt(self, call: PendingCall) -> None:
        if call.future.done():
            # caller was cancelled while waiting in the queue
            return

        try:
            result = await call.operation(*call.args, **call.kwargs)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if is_rate_limited(exc) and call.retries < call.max_retries:
                delay = (2 ** call.retries) * self.backoff_base
                logger.warning(f"[SCHED] {call.name} rate limited, retry {call.retries + 1}/{call.max_retries} in {delay:.1f}s")
                await self._sleep(delay)
                call.retries += 1
                self.stats["retried"] += 1
                self._queue.appendleft(call)
                return

            self.stats["failed"] += 1
            logger.debug(f"[SCHED] {call.name} failed after {call.retries} retries: {exc}")
            if not call.future.done():
                call.future.set_exception(exc)
            return

        self.stats["completed"] += 1
        if not call.future.done():
            call.future.set_result(result)


async def retry_with_backoff(operation: Callable[..., Awaitable[Any]], *args,
                             attempts: int = 5, base_delay: float = 1.0,
                             sleep: Optional[Sleep] = None, **kwargs) -> Any:
    """
    Retries a whole multi-step operation on rate-limit or transient network
    errors that reach it, waiting base_delay * 2**attempt between tries.
    Independent from the scheduler queue.
    """
    sleep = sleep or asyncio.sleep
    name = getattr(operation, "__name__", repr(operation))

    for attempt in range(attempts):
        try:
            return await operation(*args, **kwargs)
        except Exception as exc:
            retryable = is_rate_limited(exc) or isinstance(exc, TransientNetworkError)
            if not retryable or attempt + 1 >= attempts:
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(f"[RETRY] {name} failed ({exc}), attempt {attempt + 1}/{attempts}, waiting {delay:.1f}s")
            await sleep(delay)
