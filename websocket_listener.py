# Filename: websocket_listener.py

import asyncio
import json
import logging
from typing import Any, Dict

import websockets

from errors import FatalStartupError, ReconnectExhaustedError
from models import DiscoveryEvent

logger = logging.getLogger("WebSocketListener")


class PoolListener:
    """
    logsSubscribe on the Raydium AMM program. Every successful transaction
    whose logs carry the pool-creation marker becomes a DiscoveryEvent on
    `event_queue`.
    """

    def __init__(self, config: Dict[str, Any], event_queue: asyncio.Queue, connect=None):
        self.uri = config.get("RPC_WEBSOCKET_ENDPOINT", "wss://api.mainnet-beta.solana.com")
        self.program_id = config.get("RAYDIUM_AMM_PROGRAM_ID", "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8")
        self.marker = config.get("POOL_CREATION_LOG_MARKER", "initialize2")
        self.commitment = config.get("COMMITMENT", "confirmed")
        self.reconnect_delay = float(config.get("RECONNECT_DELAY_SECONDS", 5))
        self.max_reconnect_attempts = int(config.get("MAX_RECONNECT_ATTEMPTS", 5))
        self.event_queue = event_queue
        self._connect = connect or websockets.connect
        self._ws = None
        self._running = True

    async def stop(self):
        self._running = False
        ws = self._ws
        if ws is not None:
            await ws.close()

    async def run(self):
        attempts = 0
        connected_once = False

        while self._running:
            try:
                async with self._connect(self.uri, ping_interval=20, ping_timeout=20, max_size=10**7) as ws:
                    self._ws = ws
                    await self._subscribe(ws)
                    connected_once = True
                    attempts = 0
                    async for raw_msg in ws:
                        self.handle_message(raw_msg)
                if not self._running:
                    break
                logger.warning("[WS] Connection closed by server")
            except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
                if not self._running:
                    break
                if not connected_once:
                    raise FatalStartupError(f"Cannot subscribe on {self.uri}: {e}") from e
                logger.error(f"[WS] WebSocket connection error: {e}")
            finally:
                self._ws = None

            attempts += 1
            if attempts > self.max_reconnect_attempts:
                raise ReconnectExhaustedError(f"Gave up after {self.max_reconnect_attempts} reconnect attempts")
            logger.info(f"[WS] Reconnecting in {self.reconnect_delay:.0f}s ({attempts}/{self.max_reconnect_attempts})")
            await asyncio.sleep(self.reconnect_delay)

    async def _subscribe(self, ws):
        await ws.send(json.dumps({
            "jsonrpc": "2.0",
            "id": 1,
            "method": "logsSubscribe",
            "params": [
                {"mentions": [self.program_id]},
                {"commitment": self.commitment}
            ]
        }))
        response = json.loads(await asyncio.wait_for(ws.recv(), timeout=10))
        if "result" not in response:
            raise ConnectionError(f"Subscription refused: {response}")
        logger.info(f"[WS] Connected and subscribed to {self.program_id} (id {response['result']})")

    def handle_message(self, raw_msg) -> bool:
        try:
            msg = json.loads(raw_msg)
            value = msg.get("params", {}).get("result", {}).get("value", {})
        except (ValueError, AttributeError) as e:
            logger.error(f"[WS] Failed to parse message: {e}")
            return False

        if not value or value.get("err") is not None:
            return False
        if not any(self.marker in line for line in value.get("logs") or []):
            return False

        signature = value.get("signature")
        if not signature:
            return False
        self.event_queue.put_nowait(DiscoveryEvent(transaction_id=signature))
        logger.info(f"[WS] Pool creation spotted: {signature}")
        return True
