# Filename: solana_rpc.py

import json
import logging
from typing import Any, Dict, List, Optional

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException
from solana.rpc.types import TokenAccountOpts, TxOpts
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature

from call_scheduler import CallScheduler
from errors import MalformedDataError, RateLimitedError, TransientNetworkError, is_rate_limited

logger = logging.getLogger("SolanaRpc")


def unwrap_response(resp: Any) -> Any:
    """
    Turns a solders RPC response into plain JSON values. Context-wrapped
    results ({"context": ..., "value": ...}) are reduced to their value.
    """
    try:
        payload = json.loads(resp.to_json())
    except (AttributeError, TypeError, ValueError) as e:
        raise MalformedDataError(f"Unexpected RPC response: {resp!r}") from e

    result = payload.get("result")
    if isinstance(result, dict) and "context" in result and "value" in result:
        return result["value"]
    return result


class SolanaRpc:
    """
    solana-py AsyncClient facade. Every request is funneled through the
    CallScheduler; answers come back as dicts/lists/ints.
    """

    def __init__(self, config: Dict[str, Any], scheduler: CallScheduler, client: Optional[AsyncClient] = None):
        self.config = config
        self.scheduler = scheduler
        self.commitment = Commitment(config.get("COMMITMENT", "confirmed"))
        self.client = client or AsyncClient(
            config.get("RPC_HTTP_ENDPOINT", "https://api.mainnet-beta.solana.com"),
            commitment=self.commitment,
        )

    async def close(self) -> None:
        await self.client.close()

    async def _call(self, method_name: str, *args, **kwargs) -> Any:
        method = getattr(self.client, method_name)
        try:
            resp = await method(*args, **kwargs)
        except SolanaRpcException as e:
            if is_rate_limited(e):
                raise RateLimitedError(f"{method_name}: {e}") from e
            raise TransientNetworkError(f"{method_name}: {e}") from e
        except RPCException as e:
            if is_rate_limited(e):
                raise RateLimitedError(f"{method_name}: {e}") from e
            raise MalformedDataError(f"{method_name}: {e}") from e
        return unwrap_response(resp)

    async def request(self, method_name: str, *args, **kwargs) -> Any:
        return await self.scheduler.submit(self._call, method_name, *args, **kwargs)

    async def get_parsed_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        return await self.request(
            "get_transaction",
            Signature.from_string(signature),
            encoding="jsonParsed",
            max_supported_transaction_version=0,
        )

    async def get_account_info(self, address: str) -> Optional[Dict[str, Any]]:
        return await self.request("get_account_info_json_parsed", Pubkey.from_string(address))

    async def get_multiple_accounts(self, addresses: List[str]) -> List[Optional[Dict[str, Any]]]:
        pubkeys = [Pubkey.from_string(a) for a in addresses]
        return await self.request("get_multiple_accounts_json_parsed", pubkeys) or []

    async def get_balance(self, address: str) -> int:
        return int(await self.request("get_balance", Pubkey.from_string(address)) or 0)

    async def get_token_supply(self, mint: str) -> Dict[str, Any]:
        supply = await self.request("get_token_supply", Pubkey.from_string(mint))
        if not isinstance(supply, dict) or "amount" not in supply:
            raise MalformedDataError(f"Supply response invalid for {mint}: {supply}")
        return supply

    async def get_token_largest_accounts(self, mint: str) -> List[Dict[str, Any]]:
        return await self.request("get_token_largest_accounts", Pubkey.from_string(mint)) or []

    async def get_token_accounts_by_owner(self, owner: str, mint: str) -> List[Dict[str, Any]]:
        return await self.request(
            "get_token_accounts_by_owner_json_parsed",
            Pubkey.from_string(owner),
            TokenAccountOpts(mint=Pubkey.from_string(mint)),
        ) or []

    async def get_token_balance(self, owner: str, mint: str) -> int:
        """Raw amount of `mint` held by `owner` across all its token accounts."""
        total = 0
        for entry in await self.get_token_accounts_by_owner(owner, mint):
            try:
                info = entry["account"]["data"]["parsed"]["info"]
                total += int(info["tokenAmount"]["amount"])
            except (KeyError, TypeError, ValueError) as e:
                raise MalformedDataError(f"Unexpected token account shape: {entry}") from e
        return total

    async def get_latest_blockhash(self) -> Hash:
        value = await self.request("get_latest_blockhash")
        try:
            return Hash.from_string(value["blockhash"])
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedDataError(f"Blockhash response invalid: {value}") from e

    async def simulate_transaction(self, transaction) -> Dict[str, Any]:
        result = await self.request("simulate_transaction", transaction, sig_verify=False)
        if not isinstance(result, dict):
            raise MalformedDataError(f"Simulation response invalid: {result}")
        return result

    async def send_raw_transaction(self, raw: bytes) -> str:
        opts = TxOpts(skip_preflight=True, preflight_commitment=self.commitment)
        signature = await self.request("send_raw_transaction", raw, opts=opts)
        return str(signature)
