# Filename: position_tracker.py

import asyncio
import logging
from typing import Any, Dict, Optional

from models import NATIVE_MINT, ExecutionResult, TradePosition
from telegram_alert import TelegramNotifier

logger = logging.getLogger("PositionTracker")


def should_take_profit(current_price: float, buy_price: float, take_profit_factor: float) -> bool:
    # Literal trigger: with a factor below 1 this fires on a drawdown, not a gain.
    return current_price >= buy_price * take_profit_factor


class ProfitMonitor:
    """
    Polls the price of an open position and sells the whole wallet balance
    once the take-profit comparison holds. One monitor() call per position.
    """

    def __init__(self, config: Dict[str, Any], rpc, quoter, router,
                 notifier: Optional[TelegramNotifier] = None, sleep=None):
        self.rpc = rpc
        self.quoter = quoter
        self.router = router
        self.notifier = notifier
        self.wallet = config.get("WALLET_ADDRESS", "")
        self.native_mint = config.get("NATIVE_MINT", NATIVE_MINT)
        self.check_interval = float(config.get("PRICE_POLL_INTERVAL_SECONDS", 30))
        self.take_profit_factor = float(config.get("TAKE_PROFIT_FACTOR", 0.5))
        self.tracked_positions: Dict[str, TradePosition] = {}
        self._sleep = sleep or asyncio.sleep

    async def get_current_price(self, position: TradePosition) -> float:
        """Lamports per raw token unit if the whole position were sold now."""
        quote = await self.quoter.quote(position.token_address, self.native_mint, position.token_amount)
        return quote.amount_out / position.token_amount

    async def monitor(self, position: TradePosition) -> bool:
        address = position.token_address
        logger.info(f"[TRACKING] Start monitoring {address} (buy={position.buy_price:.6g}, target={position.target_price:.6g})")
        self.tracked_positions[address] = position

        try:
            while True:
                await self._sleep(self.check_interval)
                current_price = await self.get_current_price(position)
                pnl_pct = ((current_price - position.buy_price) / position.buy_price) * 100
                logger.info(f"[TRACK] {address} price={current_price:.6g} PnL = {pnl_pct:.2f}%")

                if should_take_profit(current_price, position.buy_price, self.take_profit_factor):
                    result = await self.sell_all(position)
                    return result.success
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[PositionTracker Error] {address}: {e}")
            return False
        finally:
            self.tracked_positions.pop(address, None)

    async def sell_all(self, position: TradePosition) -> ExecutionResult:
        address = position.token_address
        balance = await self.rpc.get_token_balance(self.wallet, address)
        if balance <= 0:
            logger.warning(f"[SELL] No {address} balance left in wallet")
            return ExecutionResult(success=False, error="Empty balance")

        result = await self.router.sell(address, balance)
        if result.success:
            sol_back = result.amount_out / 1_000_000_000
            logger.info(f"[SELL] {address} sold {balance} units for ~{sol_back:.4f} SOL ({result.transaction_id})")
            if self.notifier:
                await self.notifier.send(
                    f"💰 *SELL* `{address}`\n*Amount:* {balance}\n*Expected:* {sol_back:.4f} SOL\n"
                    f"[🔄 Transaction on Solscan](https://solscan.io/tx/{result.transaction_id})"
                )
        else:
            logger.error(f"[SELL FAIL] Failed to sell {address}: {result.error}")
        return result
