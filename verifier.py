# Filename: verifier.py

import logging
from typing import Any, Dict, Optional

from call_scheduler import RatePacer
from event_guard import SingleFlight
from filters import TokenChecks
from models import CheckResultSet
from verdict_cache import VerdictCache

logger = logging.getLogger("Verifier")

# (result field, check method), in execution order
BATTERY = (
    ("centralized", "check_centralization"),
    ("liquidity_locked", "check_liquidity_locked"),
    ("owner_pool_access", "check_owner_pool_access"),
    ("mint_valid", "check_mint_valid"),
    ("account_exists", "check_account_exists"),
    ("basic_simulation_ok", "check_basic_simulation"),
    ("trade_simulation_ok", "check_trade_simulation"),
    ("approval_ok", "check_approval"),
    ("burn_mechanism", "check_burn_mechanism"),
    ("ownership_renounced", "check_renounced"),
    ("distribution_fair", "check_distribution"),
    ("honeypot", "check_honeypot"),
)


class VerificationOrchestrator:
    """
    Runs the check battery for one token at a time and caches the verdict.

    verify() returns None when another verification holds the lock, the
    verdict otherwise. A battery aborted by an escaping error yields False
    and nothing is cached, so the token can be evaluated again later.
    """

    def __init__(self, config: Dict[str, Any], checks: TokenChecks, cache: VerdictCache):
        self.checks = checks
        self.cache = cache
        self.lock = SingleFlight("verification")
        self.pacer = RatePacer(float(config.get("CHECK_INTERVAL_SECONDS", 1.5)))
        self.last_results: Optional[CheckResultSet] = None
        self.results: Dict[str, CheckResultSet] = {}  # kept for cached mints only

    def summary_for(self, mint: str) -> str:
        """Check outcomes behind the verdict of `mint`, empty when unknown."""
        results = self.results.get(mint)
        return results.summary() if results else ""

    @property
    def busy(self) -> bool:
        return self.lock.busy

    async def verify(self, mint: str) -> Optional[bool]:
        if not self.lock.try_acquire():
            logger.info(f"[VERIFY] Verification in progress, skipping {mint}")
            return None

        try:
            cached = self.cache.get(mint)
            if cached is not None:
                logger.info(f"[VERIFY] {mint} cached verdict: {'APPROVED' if cached else 'REJECTED'}")
                return cached

            results = CheckResultSet()
            self.last_results = results
            try:
                await self._run_battery(mint, results)
            except Exception as e:
                logger.error(f"[VERIFY] Battery aborted for {mint}: {e} | {results.summary()}")
                return False

            verdict = results.verdict()
            self.cache.put(mint, verdict)
            self.results[mint] = results
            for stale in [m for m in self.results if m not in self.cache]:
                del self.results[stale]
            logger.info(f"[VERIFY] {mint} {'APPROVED ✅' if verdict else 'REJECTED ❌'} | {results.summary()}")
            return verdict
        finally:
            self.lock.release()

    async def _run_battery(self, mint: str, results: CheckResultSet) -> None:
        self.checks.begin_run()
        for field_name, method_name in BATTERY:
            async with self.pacer:
                outcome = await getattr(self.checks, method_name)(mint)
            setattr(results, field_name, bool(outcome))
            logger.debug(f"[VERIFY] {mint} {field_name}={outcome}")
