"""
Module de routage des ordres
Construit, signe et envoie les swaps Raydium pour le wallet configuré
"""

import base64
import logging
import time
from typing import Any, Dict

from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from call_scheduler import retry_with_backoff
from models import NATIVE_MINT, ExecutionResult, SwapQuote

logger = logging.getLogger("order_routing")


class SwapRouter:
    """
    Exécute les swaps SOL <-> token
    La signature reste locale, seul le wire format est délégué à l'API Raydium
    """

    def __init__(self, config: Dict[str, Any], rpc, quoter, keypair: Keypair):
        self.rpc = rpc
        self.quoter = quoter
        self.keypair = keypair
        self.wallet = str(keypair.pubkey())
        self.native_mint = config.get("NATIVE_MINT", NATIVE_MINT)
        self.retry_attempts = int(config.get("RETRY_MAX_ATTEMPTS", 5))
        self.retry_base_delay = float(config.get("RETRY_BASE_DELAY_SECONDS", 1.0))

        self.execution_stats = {
            "total_executions": 0,
            "successful_executions": 0,
            "failed_executions": 0,
        }

        logger.info(f"Initialized SwapRouter for wallet {self.wallet}")

    async def buy(self, token_mint: str, amount_lamports: int) -> ExecutionResult:
        return await self.execute_swap(self.native_mint, token_mint, amount_lamports)

    async def sell(self, token_mint: str, token_amount: int) -> ExecutionResult:
        return await self.execute_swap(token_mint, self.native_mint, token_amount)

    async def execute_swap(self, input_mint: str, output_mint: str, amount_in: int) -> ExecutionResult:
        """
        Exécute un swap avec retry automatique sur les erreurs de rate limit

        Args:
            input_mint: Adresse du token d'entrée
            output_mint: Adresse du token de sortie
            amount_in: Montant d'entrée en unités natives

        Returns:
            Résultat de l'exécution
        """
        start_time = time.time()
        self.execution_stats["total_executions"] += 1

        try:
            prepared = await retry_with_backoff(
                self._prepare_swap, input_mint, output_mint, amount_in,
                attempts=self.retry_attempts, base_delay=self.retry_base_delay,
            )
            if prepared is None:
                result = ExecutionResult(success=False, error="No route found")
            else:
                result = await self._send(*prepared)
        except Exception as e:
            self.execution_stats["failed_executions"] += 1
            logger.error(f"Error executing swap {input_mint} -> {output_mint}: {e}")
            return ExecutionResult(success=False, error=str(e))

        if not result.success:
            self.execution_stats["failed_executions"] += 1
            logger.warning(f"Swap {input_mint} -> {output_mint} not sent: {result.error}")
            return result

        self.execution_stats["successful_executions"] += 1
        logger.info(f"Swap sent {result.transaction_id} in {time.time() - start_time:.2f}s "
                    f"(in: {result.amount_in}, expected out: {result.amount_out})")
        return result

    async def _prepare_swap(self, input_mint: str, output_mint: str, amount_in: int):
        """
        Devis puis transaction signée, sans rien envoyer

        Returns:
            (devis, transaction signée) ou None si aucune route
        """
        quote: SwapQuote = await self.quoter.quote(input_mint, output_mint, amount_in)
        if quote.amount_out <= 0:
            return None

        encoded = await self.quoter.build_swap_transaction(quote, self.wallet)
        unsigned = VersionedTransaction.from_bytes(base64.b64decode(encoded))
        return quote, VersionedTransaction(unsigned.message, [self.keypair])

    async def _send(self, quote: SwapQuote, signed: VersionedTransaction) -> ExecutionResult:
        # Sent exactly once. Only rate-limit rejections are retried, by the scheduler.
        signature = await self.rpc.send_raw_transaction(bytes(signed))
        return ExecutionResult(
            success=True,
            transaction_id=signature,
            amount_in=quote.amount_in,
            amount_out=quote.amount_out,
        )
