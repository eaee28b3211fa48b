# Filename: event_resolver.py

import logging
from typing import Any, Dict, Iterator, List, Optional

from call_scheduler import retry_with_backoff
from models import NATIVE_MINT, TokenPair

logger = logging.getLogger("EventResolver")

# initialize2 account layout: 8 = coin mint, 9 = pc mint
COIN_MINT_INDEX = 8
PC_MINT_INDEX = 9
MIN_ACCOUNTS = 10


class EventResolver:
    """
    Turns a pool-creation signature into the pair of mints it created.
    """

    def __init__(self, config: Dict[str, Any], rpc, sleep=None):
        self.rpc = rpc
        self.program_id = config.get("RAYDIUM_AMM_PROGRAM_ID", "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8")
        self.native_mint = config.get("NATIVE_MINT", NATIVE_MINT)
        self.retry_attempts = int(config.get("RETRY_MAX_ATTEMPTS", 5))
        self.retry_base_delay = float(config.get("RETRY_BASE_DELAY_SECONDS", 1.0))
        self._sleep = sleep

    async def resolve(self, transaction_id: str) -> Optional[TokenPair]:
        tx = await retry_with_backoff(
            self.rpc.get_parsed_transaction, transaction_id,
            attempts=self.retry_attempts, base_delay=self.retry_base_delay, sleep=self._sleep,
        )
        if not tx:
            logger.warning(f"[RESOLVE] Transaction {transaction_id} not found")
            return None

        accounts = self._find_pool_accounts(tx)
        if accounts is None:
            logger.info(f"[RESOLVE] No Raydium instruction in {transaction_id}")
            return None
        if len(accounts) < MIN_ACCOUNTS:
            logger.info(f"[RESOLVE] Only {len(accounts)} accounts on instruction in {transaction_id}, no valid pair")
            return None

        pair = TokenPair(
            token_a=accounts[COIN_MINT_INDEX],
            token_b=accounts[PC_MINT_INDEX],
            transaction_id=transaction_id,
            native_mint=self.native_mint,
        )
        if pair.is_native_pair:
            logger.info(f"[RESOLVE] Skip {transaction_id}: both sides are the native mint")
            return None

        logger.info(f"[RESOLVE] {transaction_id} -> {pair.token_a} / {pair.token_b}")
        return pair

    def _find_pool_accounts(self, tx: Dict[str, Any]) -> Optional[List[str]]:
        for ix in self._iter_instructions(tx):
            if ix.get("programId") == self.program_id:
                return [str(a) for a in ix.get("accounts") or []]
        return None

    @staticmethod
    def _iter_instructions(tx: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
        message = (tx.get("transaction") or {}).get("message") or {}
        for ix in message.get("instructions") or []:
            if isinstance(ix, dict):
                yield ix

        meta = tx.get("meta") or {}
        for inner in meta.get("innerInstructions") or []:
            for ix in inner.get("instructions") or []:
                if isinstance(ix, dict):
                    yield ix
