"""
Module de sources de données HTTP
Prix du SOL, registre des pools Raydium et API de swap Raydium
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp
from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from call_scheduler import CallScheduler
from errors import MalformedDataError, NotFoundError, RateLimitedError, TransientNetworkError
from models import NATIVE_MINT, SwapQuote

logger = logging.getLogger("data_sources")


async def fetch_json(method: str, url: str, params: Optional[Dict[str, Any]] = None,
                     json_body: Optional[Dict[str, Any]] = None, timeout: float = 10) -> Any:
    """
    Exécute une requête HTTP et décode la réponse JSON

    Raises:
        RateLimitedError: statut 429
        NotFoundError: statut 404
        TransientNetworkError: erreur réseau ou statut 5xx
        MalformedDataError: tout autre statut ou un corps non JSON
    """
    try:
        client_timeout = aiohttp.ClientTimeout(total=timeout)
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.request(method, url, params=params, json=json_body) as response:
                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    raise RateLimitedError(
                        f"429 Too Many Requests: {url}",
                        retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                    )
                if response.status == 404:
                    raise NotFoundError(f"404 Not Found: {url}")
                if response.status >= 500:
                    raise TransientNetworkError(f"{response.status} from {url}")
                if response.status != 200:
                    text = await response.text()
                    raise MalformedDataError(f"{response.status} from {url}: {text[:200]}")
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise MalformedDataError(f"Invalid JSON from {url}") from e
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise TransientNetworkError(f"{method} {url}: {e}") from e


def _raydium_data(payload: Any, url: str) -> Any:
    if not isinstance(payload, dict) or not payload.get("success", False):
        msg = payload.get("msg", "") if isinstance(payload, dict) else ""
        if "too many requests" in str(msg).lower():
            raise RateLimitedError(f"429 Too Many Requests: {url}")
        raise MalformedDataError(f"Raydium API error from {url}: {msg or payload}")
    return payload.get("data")


class PriceOracle:
    """
    Prix du SOL en USD, avec un petit cache pour ne pas solliciter l'API
    à chaque conversion
    """

    def __init__(self, config: Dict[str, Any], scheduler: CallScheduler):
        self.scheduler = scheduler
        self.url = config.get("PRICE_ORACLE_URL", "https://api.coingecko.com/api/v3/simple/price")
        self.cache_ttl = config.get("PRICE_CACHE_TTL", 30)
        self.timeout = config.get("HTTP_TIMEOUT_SECONDS", 10)
        self.price_cache = {}  # {key: {timestamp, data}}

    async def get_sol_price_usd(self) -> float:
        cached = self._get_from_cache("sol_usd")
        if cached:
            return cached

        payload = await self.scheduler.submit(
            fetch_json, "GET", self.url,
            params={"ids": "solana", "vs_currencies": "usd"},
            timeout=self.timeout,
        )
        try:
            price = float(payload["solana"]["usd"])
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedDataError(f"Unexpected price payload: {payload}") from e
        if price <= 0:
            raise MalformedDataError(f"Non-positive SOL price: {price}")

        self._add_to_cache("sol_usd", price)
        logger.info(f"SOL price: ${price:.2f}")
        return price

    def _get_from_cache(self, key: str) -> Any:
        if key not in self.price_cache:
            return None

        entry = self.price_cache[key]
        if time.time() - entry["timestamp"] > self.cache_ttl:
            # Cache expiré
            del self.price_cache[key]
            return None

        return entry["data"]

    def _add_to_cache(self, key: str, data: Any) -> None:
        self.price_cache[key] = {
            "timestamp": time.time(),
            "data": data
        }


class PoolRegistry:
    """Recherche des pools Raydium par mint"""

    def __init__(self, config: Dict[str, Any], scheduler: CallScheduler):
        self.scheduler = scheduler
        self.api_url = config.get("RAYDIUM_API_URL", "https://api-v3.raydium.io").rstrip("/")
        self.native_mint = config.get("NATIVE_MINT", NATIVE_MINT)
        self.timeout = config.get("HTTP_TIMEOUT_SECONDS", 10)

    async def find_pools(self, mint: str, other_mint: Optional[str] = None) -> List[Dict[str, Any]]:
        url = f"{self.api_url}/pools/info/mint"
        params = {
            "mint1": mint,
            "poolType": "standard",
            "poolSortField": "liquidity",
            "sortType": "desc",
            "pageSize": 10,
            "page": 1,
        }
        if other_mint:
            params["mint2"] = other_mint

        payload = await self.scheduler.submit(fetch_json, "GET", url, params=params, timeout=self.timeout)
        data = _raydium_data(payload, url)
        pools = data.get("data") if isinstance(data, dict) else None
        if not isinstance(pools, list):
            raise MalformedDataError(f"Unexpected pool listing for {mint}: {data}")
        return pools

    async def get_pool(self, mint: str) -> Dict[str, Any]:
        """Pool SOL/token la plus liquide pour ce mint"""
        pools = await self.find_pools(mint, self.native_mint)
        if not pools:
            raise NotFoundError(f"No Raydium pool for {mint}")
        return pools[0]

    @staticmethod
    def lp_mint(pool: Dict[str, Any]) -> str:
        lp = pool.get("lpMint")
        address = lp.get("address") if isinstance(lp, dict) else lp
        if not address:
            raise MalformedDataError(f"Pool {pool.get('id')} has no LP mint")
        return address


class SwapQuoter:
    """
    Devis et transactions de swap via l'API de transaction Raydium
    """

    def __init__(self, config: Dict[str, Any], scheduler: CallScheduler):
        self.scheduler = scheduler
        self.api_url = config.get("RAYDIUM_API_URL", "https://api-v3.raydium.io").rstrip("/")
        self.tx_api_url = config.get("RAYDIUM_TX_API_URL", "https://transaction-v1.raydium.io").rstrip("/")
        self.native_mint = config.get("NATIVE_MINT", NATIVE_MINT)
        self.slippage_bps = int(float(config.get("DEFAULT_SLIPPAGE_TOLERANCE", 0.03)) * 10000)
        self.timeout = config.get("HTTP_TIMEOUT_SECONDS", 10)

    async def quote(self, input_mint: str, output_mint: str, amount_in: int) -> SwapQuote:
        url = f"{self.tx_api_url}/compute/swap-base-in"
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(int(amount_in)),
            "slippageBps": self.slippage_bps,
            "txVersion": "V0",
        }
        payload = await self.scheduler.submit(fetch_json, "GET", url, params=params, timeout=self.timeout)
        data = _raydium_data(payload, url)

        try:
            amount_out = int(data["outputAmount"])
            impact = float(data.get("priceImpactPct", 0) or 0)
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedDataError(f"Unexpected quote payload: {data}") from e

        return SwapQuote(
            input_mint=input_mint,
            output_mint=output_mint,
            amount_in=int(amount_in),
            amount_out=amount_out,
            price_impact_pct=impact,
            raw=payload,
        )

    async def get_priority_fee(self) -> int:
        url = f"{self.api_url}/main/auto-fee"
        payload = await self.scheduler.submit(fetch_json, "GET", url, timeout=self.timeout)
        data = _raydium_data(payload, url)
        try:
            return int(data["default"]["h"])
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedDataError(f"Unexpected fee payload: {data}") from e

    async def build_swap_transaction(self, quote: SwapQuote, wallet: str) -> str:
        """
        Construit la transaction de swap (base64, non signée) pour le wallet

        Args:
            quote: Devis retourné par quote()
            wallet: Adresse du wallet qui signera

        Returns:
            Transaction sérialisée en base64
        """
        priority_fee = await self.get_priority_fee()
        body = {
            "computeUnitPriceMicroLamports": str(priority_fee),
            "swapResponse": quote.raw,
            "txVersion": "V0",
            "wallet": wallet,
            "wrapSol": quote.input_mint == self.native_mint,
            "unwrapSol": quote.output_mint == self.native_mint,
        }
        if quote.input_mint != self.native_mint:
            body["inputAccount"] = str(get_associated_token_address(
                Pubkey.from_string(wallet), Pubkey.from_string(quote.input_mint)
            ))

        url = f"{self.tx_api_url}/transaction/swap-base-in"
        payload = await self.scheduler.submit(fetch_json, "POST", url, json_body=body, timeout=self.timeout)
        data = _raydium_data(payload, url)
        try:
            return data[0]["transaction"]
        except (IndexError, KeyError, TypeError) as e:
            raise MalformedDataError(f"Unexpected swap transaction payload: {data}") from e
