# Filename: models.py

import asyncio
import time
from dataclasses import dataclass, field, fields
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

NATIVE_MINT = "So11111111111111111111111111111111111111112"


@dataclass
class PendingCall:
    """One queued remote call owned by the CallScheduler."""
    operation: Callable[..., Awaitable[Any]]
    args: Tuple[Any, ...]
    kwargs: Dict[str, Any]
    future: asyncio.Future
    max_retries: int = 3
    retries: int = 0

    @property
    def name(self) -> str:
        return getattr(self.operation, "__name__", repr(self.operation))


@dataclass(frozen=True)
class DiscoveryEvent:
    """A pool-creation signal seen on the live subscription."""
    transaction_id: str
    discovered_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class TokenPair:
    """
    The two mints of a freshly initialized pool (coin mint, pc mint).
    """
    token_a: str
    token_b: str
    transaction_id: str = ""
    native_mint: str = NATIVE_MINT

    @property
    def is_native_pair(self) -> bool:
        return self.token_a == self.native_mint and self.token_b == self.native_mint

    def tokens_to_verify(self) -> List[str]:
        tokens = []
        for mint in (self.token_a, self.token_b):
            if mint != self.native_mint and mint not in tokens:
                tokens.append(mint)
        return tokens


@dataclass
class CheckResultSet:
    """
    Outcome of one verification run. None means the check did not run
    (battery aborted before reaching it).
    """
    centralized: Optional[bool] = None
    liquidity_locked: Optional[bool] = None
    owner_pool_access: Optional[bool] = None
    mint_valid: Optional[bool] = None
    account_exists: Optional[bool] = None
    basic_simulation_ok: Optional[bool] = None
    trade_simulation_ok: Optional[bool] = None
    approval_ok: Optional[bool] = None
    burn_mechanism: Optional[bool] = None
    ownership_renounced: Optional[bool] = None
    distribution_fair: Optional[bool] = None
    honeypot: Optional[bool] = None

    def verdict(self) -> bool:
        # centralized is reported but not part of the decision
        return (
            self.liquidity_locked is True
            and self.owner_pool_access is False
            and self.mint_valid is True
            and self.account_exists is True
            and self.basic_simulation_ok is True
            and self.trade_simulation_ok is True
            and self.approval_ok is True
            and self.burn_mechanism is True
            and self.ownership_renounced is True
            and self.distribution_fair is True
            and self.honeypot is False
        )

    def as_dict(self) -> Dict[str, Optional[bool]]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def summary(self) -> str:
        marks = {True: "yes", False: "no", None: "n/a"}
        return " ".join(f"{name}={marks[value]}" for name, value in self.as_dict().items())


@dataclass
class SwapQuote:
    input_mint: str
    output_mint: str
    amount_in: int
    amount_out: int
    price_impact_pct: float = 0.0
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ExecutionResult:
    """Résultat d'une exécution de transaction"""
    success: bool
    transaction_id: str = ""
    error: str = ""
    amount_in: int = 0
    amount_out: int = 0


@dataclass
class TradePosition:
    token_address: str
    buy_price: float                 # lamports per raw token unit
    target_price: float
    token_amount: int = 0            # raw token units received
    amount_in_lamports: int = 0
    buy_signature: str = ""
    opened_at: float = field(default_factory=time.time)
