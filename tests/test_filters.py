from __future__ import annotations

import asyncio
import unittest
from typing import Any

from errors import NotFoundError, RateLimitedError, TransientNetworkError
from filters import TokenChecks, is_honeypot, round_trip_impact, top_holders_share
from models import NATIVE_MINT, SwapQuote

MINT = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
OWNER = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
LP_MINT = "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"


def _mint_account(mint_authority: str | None = None, freeze_authority: str | None = None,
                  extensions: list[dict[str, Any]] | None = None, owner: str = TOKEN_PROGRAM) -> dict[str, Any]:
    info: dict[str, Any] = {
        "decimals": 6,
        "freezeAuthority": freeze_authority,
        "isInitialized": True,
        "mintAuthority": mint_authority,
        "supply": "1000000000",
    }
    if extensions is not None:
        info["extensions"] = extensions
    return {
        "data": {"parsed": {"info": info, "type": "mint"}, "program": "spl-token", "space": 82},
        "executable": False,
        "lamports": 1461600,
        "owner": owner,
    }


class _StubRpc:
    def __init__(self, account: Any = None, supply: int = 1000, holders: list[int] | None = None,
                 lp_balance: int = 0) -> None:
        self.account = account
        self.supply = supply
        self.holders = holders or []
        self.lp_balance = lp_balance
        self.account_reads = 0

    async def get_account_info(self, address: str) -> Any:
        self.account_reads += 1
        if isinstance(self.account, Exception):
            raise self.account
        return self.account

    async def get_token_supply(self, mint: str) -> dict[str, Any]:
        return {"amount": str(self.supply), "decimals": 6}

    async def get_token_largest_accounts(self, mint: str) -> list[dict[str, Any]]:
        return [{"address": f"holder{i}", "amount": str(a)} for i, a in enumerate(self.holders)]

    async def get_token_balance(self, owner: str, mint: str) -> int:
        return self.lp_balance


class _StubRegistry:
    def __init__(self, pool: dict[str, Any] | None = None) -> None:
        self.pool = pool

    async def get_pool(self, mint: str) -> dict[str, Any]:
        if self.pool is None:
            raise NotFoundError(f"No Raydium pool for {mint}")
        return self.pool


class _StubQuoter:
    def __init__(self, buy_out: int, sell_out: int) -> None:
        self.buy_out = buy_out
        self.sell_out = sell_out
        self.quotes: list[tuple[str, str, int]] = []

    async def quote(self, input_mint: str, output_mint: str, amount_in: int) -> SwapQuote:
        self.quotes.append((input_mint, output_mint, amount_in))
        out = self.buy_out if input_mint == NATIVE_MINT else self.sell_out
        return SwapQuote(input_mint, output_mint, amount_in, out)


def _checks(rpc: Any = None, registry: Any = None, quoter: Any = None) -> TokenChecks:
    config = {"SIMULATION_AMOUNT_SOL": 0.01, "HONEYPOT_MAX_IMPACT": 0.30,
              "TOP_HOLDERS_COUNT": 5, "TOP_HOLDERS_MAX_SHARE": 0.50}
    return TokenChecks(config, rpc or _StubRpc(), registry or _StubRegistry(), quoter or _StubQuoter(0, 0))


class HoneypotMathTests(unittest.TestCase):
    def test_large_round_trip_loss_is_honeypot(self) -> None:
        self.assertAlmostEqual(round_trip_impact(100, 40), 60 / 70)
        self.assertTrue(is_honeypot(100, 40))

    def test_small_round_trip_loss_is_not_honeypot(self) -> None:
        self.assertAlmostEqual(round_trip_impact(100, 95), 5 / 97.5)
        self.assertFalse(is_honeypot(100, 95))

    def test_nothing_back_is_honeypot(self) -> None:
        self.assertTrue(is_honeypot(0, 0))
        self.assertTrue(is_honeypot(100, 0))


class TokenChecksTests(unittest.TestCase):
    def test_honeypot_check_uses_round_trip_quotes(self) -> None:
        quoter = _StubQuoter(buy_out=5_000, sell_out=4_000_000)
        checks = _checks(quoter=quoter)
        self.assertTrue(asyncio.run(checks.check_honeypot(MINT)))
        self.assertEqual(quoter.quotes[0], (NATIVE_MINT, MINT, 10_000_000))
        self.assertEqual(quoter.quotes[1], (MINT, NATIVE_MINT, 5_000))

    def test_honeypot_check_passes_fair_round_trip(self) -> None:
        checks = _checks(quoter=_StubQuoter(buy_out=5_000, sell_out=9_500_000))
        self.assertFalse(asyncio.run(checks.check_honeypot(MINT)))

    def test_freeze_authority_means_liquidity_not_locked(self) -> None:
        self.assertFalse(asyncio.run(_checks(_StubRpc(_mint_account(freeze_authority=OWNER))).check_liquidity_locked(MINT)))
        self.assertTrue(asyncio.run(_checks(_StubRpc(_mint_account())).check_liquidity_locked(MINT)))

    def test_renounced_and_centralization(self) -> None:
        checks = _checks(_StubRpc(_mint_account(mint_authority=OWNER)))
        self.assertFalse(asyncio.run(checks.check_renounced(MINT)))
        self.assertTrue(asyncio.run(checks.check_centralization(MINT)))

        clean = _checks(_StubRpc(_mint_account()))
        self.assertTrue(asyncio.run(clean.check_renounced(MINT)))
        self.assertFalse(asyncio.run(clean.check_centralization(MINT)))

    def test_mint_account_is_read_once_per_run(self) -> None:
        rpc = _StubRpc(_mint_account())
        checks = _checks(rpc)

        async def scenario() -> None:
            checks.begin_run()
            await checks.check_centralization(MINT)
            await checks.check_liquidity_locked(MINT)
            await checks.check_renounced(MINT)
            checks.begin_run()
            await checks.check_renounced(MINT)

        asyncio.run(scenario())
        self.assertEqual(rpc.account_reads, 2)

    def test_owner_holding_lp_tokens_has_pool_access(self) -> None:
        registry = _StubRegistry({"id": "pool1", "lpMint": {"address": LP_MINT}, "burnPercent": 100})
        with_lp = _checks(_StubRpc(_mint_account(mint_authority=OWNER), lp_balance=10), registry)
        self.assertTrue(asyncio.run(with_lp.check_owner_pool_access(MINT)))

        without_lp = _checks(_StubRpc(_mint_account(mint_authority=OWNER), lp_balance=0), registry)
        self.assertFalse(asyncio.run(without_lp.check_owner_pool_access(MINT)))

        renounced = _checks(_StubRpc(_mint_account()), registry)
        self.assertFalse(asyncio.run(renounced.check_owner_pool_access(MINT)))

    def test_burn_mechanism_reads_pool_burn_percent(self) -> None:
        burnt = _checks(registry=_StubRegistry({"id": "pool1", "burnPercent": 99.9}))
        self.assertTrue(asyncio.run(burnt.check_burn_mechanism(MINT)))
        unburnt = _checks(registry=_StubRegistry({"id": "pool1", "burnPercent": 0}))
        self.assertFalse(asyncio.run(unburnt.check_burn_mechanism(MINT)))
        missing = _checks(registry=_StubRegistry(None))
        self.assertFalse(asyncio.run(missing.check_burn_mechanism(MINT)))

    def test_distribution_uses_top_five_holders(self) -> None:
        self.assertAlmostEqual(top_holders_share([10, 300, 50, 40, 30, 20, 200], 1000, 5), 0.62)
        fair = _checks(_StubRpc(supply=1000, holders=[100, 100, 100, 100, 100, 100]))
        self.assertTrue(asyncio.run(fair.check_distribution(MINT)))
        unfair = _checks(_StubRpc(supply=1000, holders=[400, 50, 30, 20, 10]))
        self.assertFalse(asyncio.run(unfair.check_distribution(MINT)))
        empty = _checks(_StubRpc(supply=0, holders=[]))
        self.assertFalse(asyncio.run(empty.check_distribution(MINT)))

    def test_approval_rejects_risky_token_2022_extensions(self) -> None:
        delegate = _mint_account(extensions=[{"extension": "permanentDelegate", "state": {"delegate": OWNER}}])
        self.assertFalse(asyncio.run(_checks(_StubRpc(delegate)).check_approval(MINT)))

        taxed = _mint_account(extensions=[{"extension": "transferFeeConfig",
                                           "state": {"newerTransferFee": {"transferFeeBasisPoints": 500}}}])
        self.assertFalse(asyncio.run(_checks(_StubRpc(taxed)).check_approval(MINT)))

        zero_fee = _mint_account(extensions=[{"extension": "transferFeeConfig",
                                              "state": {"newerTransferFee": {"transferFeeBasisPoints": 0}}}])
        self.assertTrue(asyncio.run(_checks(_StubRpc(zero_fee)).check_approval(MINT)))
        self.assertTrue(asyncio.run(_checks(_StubRpc(_mint_account())).check_approval(MINT)))

    def test_mint_validity(self) -> None:
        checks = _checks()
        self.assertTrue(asyncio.run(checks.check_mint_valid(MINT)))
        self.assertFalse(asyncio.run(checks.check_mint_valid("not-a-mint")))
        self.assertFalse(asyncio.run(checks.check_mint_valid("0" * 44)))

    def test_account_existence_requires_token_program_owner(self) -> None:
        self.assertTrue(asyncio.run(_checks(_StubRpc(_mint_account())).check_account_exists(MINT)))
        foreign = _mint_account(owner="11111111111111111111111111111111")
        self.assertFalse(asyncio.run(_checks(_StubRpc(foreign)).check_account_exists(MINT)))
        self.assertFalse(asyncio.run(_checks(_StubRpc(None)).check_account_exists(MINT)))

    def test_errors_fail_closed(self) -> None:
        checks = _checks(_StubRpc(TransientNetworkError("connection reset")))
        self.assertFalse(asyncio.run(checks.check_liquidity_locked(MINT)))
        self.assertTrue(asyncio.run(checks.check_centralization(MINT)))
        self.assertTrue(asyncio.run(checks.check_owner_pool_access(MINT)))
        stats = checks.get_check_statistics()
        self.assertEqual(stats["check_liquidity_locked"], 1)
        checks.reset_check_statistics()
        self.assertEqual(checks.get_check_statistics(), {})

    def test_simulations_without_wallet_fail_closed(self) -> None:
        checks = _checks(_StubRpc(_mint_account()))
        self.assertFalse(asyncio.run(checks.check_basic_simulation(MINT)))
        self.assertFalse(asyncio.run(checks.check_trade_simulation(MINT)))

    def test_rate_limit_escapes_the_check(self) -> None:
        checks = _checks(_StubRpc(RateLimitedError()))
        with self.assertRaises(RateLimitedError):
            asyncio.run(checks.check_renounced(MINT))


if __name__ == "__main__":
    unittest.main()
