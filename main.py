# Filename: main.py

import asyncio
import logging
import signal
import sys
from typing import Any, Dict, Optional

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from call_scheduler import CallScheduler
from config import load_config
from data_sources import PoolRegistry, PriceOracle, SwapQuoter
from errors import FatalStartupError
from event_resolver import EventResolver
from filters import TokenChecks
from order_routing import SwapRouter
from position_tracker import ProfitMonitor
from solana_rpc import SolanaRpc
from telegram_alert import TelegramNotifier
from token_monitor import PoolMonitor
from trader import TradeController
from verdict_cache import VerdictCache
from verifier import VerificationOrchestrator
from websocket_listener import PoolListener

logger = logging.getLogger("Main")

STATUS_REPORT_INTERVAL = 300


def load_wallet(config: Dict[str, Any]) -> Optional[Keypair]:
    """Validates the wallet address; returns the signing keypair when trading is enabled."""
    address = config.get("WALLET_ADDRESS", "")
    try:
        pubkey = Pubkey.from_string(address)
    except ValueError as e:
        raise FatalStartupError(f"Invalid wallet address: {address!r}") from e

    if not config.get("AUTO_BUY_ENABLED", True):
        return None

    secret = config.get("WALLET_PRIVATE_KEY", "")
    if not secret:
        raise FatalStartupError("WALLET_PRIVATE_KEY is required when AUTO_BUY_ENABLED is true")
    try:
        keypair = Keypair.from_base58_string(secret)
    except ValueError as e:
        raise FatalStartupError(f"Invalid wallet private key: {e}") from e
    if keypair.pubkey() != pubkey:
        raise FatalStartupError("WALLET_PRIVATE_KEY does not match WALLET_ADDRESS")
    return keypair


async def _report_loop(pool_monitor: PoolMonitor, scheduler: CallScheduler, checks: TokenChecks):
    while True:
        await asyncio.sleep(STATUS_REPORT_INTERVAL)
        logger.info(pool_monitor.status_report(scheduler, checks))
        checks.reset_check_statistics()


async def run(config: Dict[str, Any], keypair: Optional[Keypair]) -> int:
    event_queue: asyncio.Queue = asyncio.Queue()
    scheduler = CallScheduler.from_config(config)
    rpc = SolanaRpc(config, scheduler)
    registry = PoolRegistry(config, scheduler)
    quoter = SwapQuoter(config, scheduler)
    notifier = TelegramNotifier.from_config(config)

    checks = TokenChecks(config, rpc, registry, quoter)
    verifier = VerificationOrchestrator(config, checks, VerdictCache.from_config(config))
    resolver = EventResolver(config, rpc)

    trader = None
    if keypair is not None:
        router = SwapRouter(config, rpc, quoter, keypair)
        monitor = ProfitMonitor(config, rpc, quoter, router, notifier=notifier)
        trader = TradeController(config, PriceOracle(config, scheduler), router, monitor, notifier=notifier)
    else:
        logger.info("🧪 Auto-buy disabled, verification only")

    pool_monitor = PoolMonitor(config, event_queue, resolver, verifier, trader=trader, notifier=notifier)
    listener = PoolListener(config, event_queue)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # no signal handlers on Windows event loops; KeyboardInterrupt still ends asyncio.run
            pass

    listener_task = asyncio.create_task(listener.run())
    stop_task = asyncio.create_task(stop_event.wait())
    background = [
        asyncio.create_task(pool_monitor.run()),
        asyncio.create_task(_report_loop(pool_monitor, scheduler, checks)),
    ]

    exit_code = 0
    try:
        done, _ = await asyncio.wait({listener_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        if listener_task in done and listener_task.exception() is not None:
            logger.error(f"❌ Live subscription lost: {listener_task.exception()}")
            exit_code = 1
        else:
            logger.info("❌ Bot stopped by user.")
    finally:
        pool_monitor.stop()
        await listener.stop()
        for task in [listener_task, stop_task, *background]:
            task.cancel()
        logger.info("🛑 " + pool_monitor.status_report(scheduler, checks))
        await rpc.close()

    return exit_code


def main():
    config = load_config()

    logging.basicConfig(
        level=getattr(logging, str(config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )
    logger.info("🚀 Starting Raydium pool sniper...")

    try:
        keypair = load_wallet(config)
        exit_code = asyncio.run(run(config, keypair))
    except FatalStartupError as e:
        logger.error(f"Fatal startup error: {e}")
        exit_code = 1
    except KeyboardInterrupt:
        logger.info("❌ Bot stopped by user.")
        exit_code = 0

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
