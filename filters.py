# Filename: filters.py

import base64
import functools
import math
from typing import Any, Dict, Iterable, Optional

from loguru import logger
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction, VersionedTransaction

from data_sources import PoolRegistry
from errors import MalformedDataError, NotFoundError, SimulationFailureError, is_rate_limited
from models import NATIVE_MINT

TOKEN_PROGRAMS = {
    "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
    "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb",
}

# Token-2022 extensions that let someone other than the holder move, block or tax transfers
RISKY_EXTENSIONS = {"permanentDelegate", "transferHook", "nonTransferable", "defaultAccountState"}


def round_trip_impact(buy_output: float, sell_output: float) -> float:
    """|buy - sell| relative to their mean."""
    mean = (buy_output + sell_output) / 2
    if mean <= 0:
        return math.inf
    return abs(buy_output - sell_output) / mean


def is_honeypot(buy_output: float, sell_output: float, max_impact: float = 0.30) -> bool:
    return round_trip_impact(buy_output, sell_output) > max_impact


def top_holders_share(amounts: Iterable[int], total_supply: int, count: int = 5) -> float:
    if total_supply <= 0:
        return math.inf
    top = sorted((int(a) for a in amounts), reverse=True)[:count]
    return sum(top) / total_supply


def fail_closed(unsafe: bool):
    """
    Turns any error of a check into its unsafe outcome. Rate limiting is the
    exception: it propagates and aborts the whole battery.
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, mint: str, *args, **kwargs):
            try:
                return await func(self, mint, *args, **kwargs)
            except Exception as e:
                if is_rate_limited(e):
                    raise
                logger.error(f"[CHECK ❌] {func.__name__} failed for {mint}: {e}")
                self.check_stats[func.__name__] = self.check_stats.get(func.__name__, 0) + 1
                return unsafe
        return wrapper
    return decorator


class TokenChecks:
    """
    The heuristic safety checks run against a single mint. Every remote
    read goes through the SolanaRpc facade or the Raydium clients, both of
    which are scheduled.
    """

    def __init__(self, config: Dict[str, Any], rpc, registry, quoter):
        self.rpc = rpc
        self.registry = registry
        self.quoter = quoter
        self.wallet = config.get("WALLET_ADDRESS", "")
        self.native_mint = config.get("NATIVE_MINT", NATIVE_MINT)
        self.simulation_lamports = int(float(config.get("SIMULATION_AMOUNT_SOL", 0.01)) * 1_000_000_000)
        self.max_impact = float(config.get("HONEYPOT_MAX_IMPACT", 0.30))
        self.top_holders_count = int(config.get("TOP_HOLDERS_COUNT", 5))
        self.top_holders_max_share = float(config.get("TOP_HOLDERS_MAX_SHARE", 0.50))
        self.min_lp_burn_percent = float(config.get("MIN_LP_BURN_PERCENT", 0.0))
        self.check_stats: Dict[str, int] = {}
        self._accounts: Dict[str, Dict[str, Any]] = {}

    def begin_run(self) -> None:
        """Forget account reads from a previous token."""
        self._accounts = {}

    def get_check_statistics(self) -> Dict[str, int]:
        return self.check_stats

    def reset_check_statistics(self) -> None:
        self.check_stats = {}

    async def _mint_account(self, mint: str) -> Dict[str, Any]:
        if mint not in self._accounts:
            account = await self.rpc.get_account_info(mint)
            if not account:
                raise NotFoundError(f"Mint account {mint} not found")
            self._accounts[mint] = account
        return self._accounts[mint]

    async def _mint_info(self, mint: str) -> Dict[str, Any]:
        account = await self._mint_account(mint)
        try:
            parsed = account["data"]["parsed"]
        except (KeyError, TypeError) as e:
            raise MalformedDataError(f"Account {mint} is not a parsed token account") from e
        if parsed.get("type") != "mint":
            raise MalformedDataError(f"Account {mint} is a {parsed.get('type')}, not a mint")
        return parsed.get("info") or {}

    @fail_closed(unsafe=True)
    async def check_centralization(self, mint: str) -> bool:
        info = await self._mint_info(mint)
        centralized = bool(info.get("mintAuthority") or info.get("freezeAuthority"))
        if centralized:
            logger.warning(f"[CHECK ⚠️] {mint}: authority still set (mint={info.get('mintAuthority')}, freeze={info.get('freezeAuthority')})")
        return centralized

    @fail_closed(unsafe=False)
    async def check_liquidity_locked(self, mint: str) -> bool:
        info = await self._mint_info(mint)
        if info.get("freezeAuthority"):
            logger.warning(f"[CHECK ❌] {mint}: Freeze authority detected.")
            return False
        return True

    @fail_closed(unsafe=True)
    async def check_owner_pool_access(self, mint: str) -> bool:
        info = await self._mint_info(mint)
        owner = info.get("mintAuthority")
        if not owner:
            return False

        pool = await self.registry.get_pool(mint)
        lp_mint = PoolRegistry.lp_mint(pool)
        balance = await self.rpc.get_token_balance(owner, lp_mint)
        if balance > 0:
            logger.warning(f"[CHECK ❌] {mint}: owner {owner} holds {balance} LP tokens of pool {pool.get('id')}")
            return True
        return False

    async def check_mint_valid(self, mint: str) -> bool:
        if not mint or len(mint) < 32:
            logger.error(f"[CHECK ❌] Invalid token address (length={len(mint or '')}): {mint}")
            return False
        try:
            Pubkey.from_string(mint)
        except ValueError:
            logger.error(f"[CHECK ❌] Not a base58 public key: {mint}")
            return False
        return True

    @fail_closed(unsafe=False)
    async def check_account_exists(self, mint: str) -> bool:
        account = await self._mint_account(mint)
        if account.get("owner") not in TOKEN_PROGRAMS:
            logger.warning(f"[CHECK ❌] {mint}: owned by {account.get('owner')}, not a token program.")
            return False
        return True

    @fail_closed(unsafe=False)
    async def check_basic_simulation(self, mint: str) -> bool:
        payer = self._wallet_pubkey()
        ix = transfer(TransferParams(from_pubkey=payer, to_pubkey=Pubkey.from_string(mint), lamports=1))
        blockhash = await self.rpc.get_latest_blockhash()
        tx = Transaction.new_unsigned(Message.new_with_blockhash([ix], payer, blockhash))
        self._raise_on_simulation_error(await self.rpc.simulate_transaction(tx), "transfer")
        return True

    @fail_closed(unsafe=False)
    async def check_trade_simulation(self, mint: str) -> bool:
        self._wallet_pubkey()
        quote = await self.quoter.quote(self.native_mint, mint, self.simulation_lamports)
        if quote.amount_out <= 0:
            logger.warning(f"[CHECK ❌] {mint}: buy quote returns nothing.")
            return False

        encoded = await self.quoter.build_swap_transaction(quote, self.wallet)
        tx = VersionedTransaction.from_bytes(base64.b64decode(encoded))
        self._raise_on_simulation_error(await self.rpc.simulate_transaction(tx), "buy")
        return True

    @fail_closed(unsafe=False)
    async def check_approval(self, mint: str) -> bool:
        info = await self._mint_info(mint)
        for ext in info.get("extensions") or []:
            name = ext.get("extension") if isinstance(ext, dict) else None
            if name in RISKY_EXTENSIONS:
                logger.warning(f"[CHECK ❌] {mint}: Token-2022 extension {name}.")
                return False
            if name == "transferFeeConfig" and self._transfer_fee_bps(ext) > 0:
                logger.warning(f"[CHECK ❌] {mint}: transfer fee of {self._transfer_fee_bps(ext)} bps.")
                return False
        return True

    @fail_closed(unsafe=False)
    async def check_burn_mechanism(self, mint: str) -> bool:
        pool = await self.registry.get_pool(mint)
        burn_percent = float(pool.get("burnPercent") or 0)
        if burn_percent <= self.min_lp_burn_percent:
            logger.warning(f"[CHECK ❌] {mint}: LP burn {burn_percent:.1f}% on pool {pool.get('id')}.")
            return False
        return True

    @fail_closed(unsafe=False)
    async def check_renounced(self, mint: str) -> bool:
        info = await self._mint_info(mint)
        if info.get("mintAuthority"):
            logger.warning(f"[CHECK ❌] {mint}: Mint authority detected.")
            return False
        return True

    @fail_closed(unsafe=False)
    async def check_distribution(self, mint: str) -> bool:
        supply = await self.rpc.get_token_supply(mint)
        total_amount = int(supply["amount"])
        if total_amount == 0:
            logger.warning(f"[CHECK ❌] Token {mint} has zero supply.")
            return False

        holders = await self.rpc.get_token_largest_accounts(mint)
        share = top_holders_share((h["amount"] for h in holders), total_amount, self.top_holders_count)
        if share > self.top_holders_max_share:
            logger.warning(f"[CHECK ❌] {mint}: top {self.top_holders_count} holders own {share:.1%}.")
            return False
        return True

    @fail_closed(unsafe=True)
    async def check_honeypot(self, mint: str) -> bool:
        buy = await self.quoter.quote(self.native_mint, mint, self.simulation_lamports)
        if buy.amount_out <= 0:
            logger.warning(f"[CHECK ❌] {mint}: buy quote returns nothing.")
            return True
        sell = await self.quoter.quote(mint, self.native_mint, buy.amount_out)

        # both sides in lamports: what went in vs what comes back
        impact = round_trip_impact(buy.amount_in, sell.amount_out)
        if impact > self.max_impact:
            logger.warning(f"[CHECK ❌] {mint}: round trip loses {impact:.1%}, honeypot.")
            return True
        return False

    def _wallet_pubkey(self) -> Pubkey:
        if not self.wallet:
            raise MalformedDataError("WALLET_ADDRESS is required for simulations")
        return Pubkey.from_string(self.wallet)

    @staticmethod
    def _raise_on_simulation_error(result: Dict[str, Any], kind: str) -> None:
        if result.get("err") is not None:
            raise SimulationFailureError(f"{kind} simulation rejected: {result.get('err')}", result.get("logs"))

    @staticmethod
    def _transfer_fee_bps(ext: Dict[str, Any]) -> int:
        state = ext.get("state") or {}
        fee: Optional[Dict[str, Any]] = state.get("newerTransferFee") or state.get("olderTransferFee") or {}
        try:
            return int(fee.get("transferFeeBasisPoints", 0))
        except (TypeError, ValueError):
            return 0
