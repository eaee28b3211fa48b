# Filename: errors.py

from typing import Optional


class SniperError(Exception):
    """Base class for every error raised by the sniper."""


class RateLimitedError(SniperError):
    """The provider answered with a throttling signal (HTTP 429)."""

    def __init__(self, message: str = "429 Too Many Requests", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class TransientNetworkError(SniperError):
    """Connection reset, timeout or 5xx answer. Retryable."""


class NotFoundError(SniperError):
    """Account, transaction or pool does not exist."""


class MalformedDataError(SniperError):
    """A remote response did not have the expected shape."""


class SimulationFailureError(SniperError):
    """A transfer or trade simulation was rejected on-chain."""

    def __init__(self, message: str, logs=None):
        super().__init__(message)
        self.logs = logs or []


class FatalStartupError(SniperError):
    """Invalid wallet or unreachable transport at startup."""


class ReconnectExhaustedError(SniperError):
    """The live subscription could not be re-established."""


def is_rate_limited(exc: BaseException) -> bool:
    """
    Walks the exception chain looking for a throttling marker: our own
    RateLimitedError, a response with status 429, or the "Too Many Requests"
    reason phrase that httpx and aiohttp put in their messages.
    """
    seen = set()
    current = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, RateLimitedError):
            return True
        status = getattr(current, "status", None) or getattr(current, "status_code", None)
        response = getattr(current, "response", None)
        if status is None and response is not None:
            status = getattr(response, "status_code", None)
        if status == 429:
            return True
        text = str(current).lower()
        if "too many requests" in text:
            return True
        current = current.__cause__ or current.__context__
    return False
