from __future__ import annotations

import asyncio
import unittest

from models import ExecutionResult, TradePosition
from trader import TradeController

MINT = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


class _StubOracle:
    async def get_sol_price_usd(self) -> float:
        return 150.0


class _StubRouter:
    def __init__(self, result: ExecutionResult) -> None:
        self.result = result
        self.buys: list[tuple[str, int]] = []

    async def buy(self, mint: str, lamports: int) -> ExecutionResult:
        self.buys.append((mint, lamports))
        return self.result


class _StubMonitor:
    def __init__(self) -> None:
        self.positions: list[TradePosition] = []

    async def monitor(self, position: TradePosition) -> bool:
        self.positions.append(position)
        return True


def _controller(result: ExecutionResult) -> tuple[TradeController, _StubRouter, _StubMonitor]:
    router = _StubRouter(result)
    monitor = _StubMonitor()
    config = {"TRADE_AMOUNT_USD": 15.0, "TAKE_PROFIT_FACTOR": 0.5}
    return TradeController(config, _StubOracle(), router, monitor), router, monitor


class TradeControllerTests(unittest.TestCase):
    def test_buys_fixed_usd_amount_then_monitors(self) -> None:
        fill = ExecutionResult(success=True, transaction_id="buy-sig", amount_in=100_000_000, amount_out=50_000)
        controller, router, monitor = _controller(fill)

        position = asyncio.run(controller.execute(MINT))

        self.assertEqual(router.buys, [(MINT, 100_000_000)])
        self.assertEqual(position.buy_price, 2000.0)
        self.assertEqual(position.target_price, 1000.0)
        self.assertEqual(position.token_amount, 50_000)
        self.assertEqual(monitor.positions, [position])

    def test_failed_buy_is_not_monitored(self) -> None:
        controller, _, monitor = _controller(ExecutionResult(success=False, error="No route found"))
        self.assertIsNone(asyncio.run(controller.execute(MINT)))
        self.assertEqual(monitor.positions, [])


if __name__ == "__main__":
    unittest.main()
