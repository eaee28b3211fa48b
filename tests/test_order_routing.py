from __future__ import annotations

import asyncio
import base64
import unittest

from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from errors import TransientNetworkError
from models import NATIVE_MINT, SwapQuote
from order_routing import SwapRouter

MINT = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


def _unsigned_swap(keypair: Keypair) -> str:
    ix = transfer(TransferParams(from_pubkey=keypair.pubkey(), to_pubkey=keypair.pubkey(), lamports=1))
    message = MessageV0.try_compile(keypair.pubkey(), [ix], [], Hash.default())
    return base64.b64encode(bytes(VersionedTransaction(message, [keypair]))).decode()


class _StubQuoter:
    def __init__(self, keypair: Keypair, quote_errors: list[Exception] | None = None) -> None:
        self.encoded = _unsigned_swap(keypair)
        self.quote_errors = list(quote_errors or [])
        self.quotes = 0

    async def quote(self, input_mint: str, output_mint: str, amount_in: int) -> SwapQuote:
        self.quotes += 1
        if self.quote_errors:
            raise self.quote_errors.pop(0)
        return SwapQuote(input_mint, output_mint, amount_in, 5_000)

    async def build_swap_transaction(self, quote: SwapQuote, wallet: str) -> str:
        return self.encoded


class _StubRpc:
    def __init__(self, send_errors: list[Exception] | None = None) -> None:
        self.send_errors = list(send_errors or [])
        self.sent: list[bytes] = []

    async def send_raw_transaction(self, raw: bytes) -> str:
        self.sent.append(raw)
        if self.send_errors:
            raise self.send_errors.pop(0)
        return f"sig-{len(self.sent)}"


def _router(rpc: _StubRpc, quoter: _StubQuoter, keypair: Keypair) -> SwapRouter:
    config = {"NATIVE_MINT": NATIVE_MINT, "RETRY_MAX_ATTEMPTS": 5, "RETRY_BASE_DELAY_SECONDS": 0}
    return SwapRouter(config, rpc, quoter, keypair)


class SwapRouterTests(unittest.TestCase):
    def test_buy_is_signed_and_sent(self) -> None:
        keypair = Keypair()
        rpc = _StubRpc()
        result = asyncio.run(_router(rpc, _StubQuoter(keypair), keypair).buy(MINT, 10_000_000))

        self.assertTrue(result.success)
        self.assertEqual(result.transaction_id, "sig-1")
        self.assertEqual(result.amount_out, 5_000)
        sent = VersionedTransaction.from_bytes(rpc.sent[0])
        self.assertEqual(sent.message.account_keys[0], keypair.pubkey())

    def test_ambiguous_send_failure_is_not_resent(self) -> None:
        keypair = Keypair()
        rpc = _StubRpc([TransientNetworkError("ReadTimeout")])
        router = _router(rpc, _StubQuoter(keypair), keypair)

        result = asyncio.run(router.buy(MINT, 10_000_000))

        self.assertFalse(result.success)
        self.assertEqual(len(rpc.sent), 1)
        self.assertEqual(router.execution_stats["failed_executions"], 1)

    def test_quote_errors_are_retried_before_sending(self) -> None:
        keypair = Keypair()
        rpc = _StubRpc()
        quoter = _StubQuoter(keypair, [TransientNetworkError("reset"), TransientNetworkError("reset")])

        result = asyncio.run(_router(rpc, quoter, keypair).sell(MINT, 5_000))

        self.assertTrue(result.success)
        self.assertEqual(quoter.quotes, 3)
        self.assertEqual(len(rpc.sent), 1)


if __name__ == "__main__":
    unittest.main()
