# Filename: trader.py

import logging
from typing import Any, Dict, Optional

from models import TradePosition
from telegram_alert import TelegramNotifier

logger = logging.getLogger("trader")


class TradeController:
    """
    Classe de trading réel
    Achète un montant fixe en USD d'un token approuvé puis surveille la position
    """

    def __init__(self, config: Dict[str, Any], oracle, router, monitor,
                 notifier: Optional[TelegramNotifier] = None):
        self.oracle = oracle
        self.router = router
        self.monitor = monitor
        self.notifier = notifier
        self.trade_amount_usd = float(config.get("TRADE_AMOUNT_USD", 15.0))
        self.take_profit_factor = float(config.get("TAKE_PROFIT_FACTOR", 0.5))

        logger.info(f"Trader réel initialisé (${self.trade_amount_usd:.2f} par trade)")

    async def open_position(self, token_address: str) -> Optional[TradePosition]:
        sol_price = await self.oracle.get_sol_price_usd()
        amount_sol = self.trade_amount_usd / sol_price
        amount_lamports = int(amount_sol * 1_000_000_000)
        logger.info(f"Achat de token {token_address} pour {amount_sol:.4f} SOL (${self.trade_amount_usd:.2f})")

        result = await self.router.buy(token_address, amount_lamports)
        if not result.success:
            logger.error(f"[BUY FAIL] {token_address}: {result.error}")
            return None
        if result.amount_out <= 0:
            logger.error(f"[BUY FAIL] {token_address}: no tokens expected from {result.transaction_id}")
            return None

        buy_price = result.amount_in / result.amount_out
        position = TradePosition(
            token_address=token_address,
            buy_price=buy_price,
            target_price=buy_price * self.take_profit_factor,
            token_amount=result.amount_out,
            amount_in_lamports=result.amount_in,
            buy_signature=result.transaction_id,
        )
        logger.info(f"[BUY ✅] {token_address} tx={result.transaction_id} tokens={result.amount_out}")

        if self.notifier:
            await self.notifier.send(
                f"🛒 *BUY* `{token_address}`\n*Amount:* {amount_sol:.4f} SOL\n*Qty:* {result.amount_out}\n"
                f"[🔄 Transaction on Solscan](https://solscan.io/tx/{result.transaction_id})"
            )
        return position

    async def execute(self, token_address: str) -> Optional[TradePosition]:
        try:
            position = await self.open_position(token_address)
        except Exception as e:
            logger.error(f"Error buying token {token_address}: {e}")
            return None

        if position is not None:
            await self.monitor.monitor(position)
        return position
