"""
Configuration du sniper de pools Raydium
"""

import os
import json
import logging
from typing import Dict, Any

logger = logging.getLogger("config")

# Configuration par défaut
DEFAULT_CONFIG = {
    "AUTO_BUY_ENABLED": True,
    "LOG_LEVEL": "INFO",

    # RPC + Wallet
    "RPC_HTTP_ENDPOINT": "https://api.mainnet-beta.solana.com",
    "RPC_WEBSOCKET_ENDPOINT": "wss://api.mainnet-beta.solana.com",
    "COMMITMENT": "confirmed",
    "WALLET_PRIVATE_KEY": "",
    "WALLET_ADDRESS": "",

    # Programmes
    "RAYDIUM_AMM_PROGRAM_ID": "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8",
    "NATIVE_MINT": "So11111111111111111111111111111111111111112",
    "POOL_CREATION_LOG_MARKER": "initialize2",

    # Scheduler
    "SCHEDULER_MAX_RETRIES": 3,
    "SCHEDULER_PACING_SECONDS": 0.5,
    "SCHEDULER_BACKOFF_BASE_SECONDS": 1.0,
    "RETRY_MAX_ATTEMPTS": 5,
    "RETRY_BASE_DELAY_SECONDS": 1.0,

    # Verification
    "VERDICT_CACHE_CAPACITY": 150,
    "CHECK_INTERVAL_SECONDS": 1.5,
    "HONEYPOT_MAX_IMPACT": 0.30,
    "TOP_HOLDERS_COUNT": 5,
    "TOP_HOLDERS_MAX_SHARE": 0.50,
    "MIN_LP_BURN_PERCENT": 0.0,
    "SIMULATION_AMOUNT_SOL": 0.01,

    # Trading
    "TRADE_AMOUNT_USD": 15.0,
    "TAKE_PROFIT_FACTOR": 0.5,
    "PRICE_POLL_INTERVAL_SECONDS": 30,
    "DEFAULT_SLIPPAGE_TOLERANCE": 0.03,

    # Websocket
    "RECONNECT_DELAY_SECONDS": 5,
    "MAX_RECONNECT_ATTEMPTS": 5,

    # APIs HTTP
    "PRICE_ORACLE_URL": "https://api.coingecko.com/api/v3/simple/price",
    "PRICE_CACHE_TTL": 30,
    "RAYDIUM_API_URL": "https://api-v3.raydium.io",
    "RAYDIUM_TX_API_URL": "https://transaction-v1.raydium.io",
    "HTTP_TIMEOUT_SECONDS": 10,

    # Notifier
    "ENABLE_TELEGRAM": False,
    "TELEGRAM_BOT_TOKEN": "",
    "TELEGRAM_CHAT_ID": "",
}

def load_config(config_file: str = "config.json") -> Dict[str, Any]:
    """
    Charge la configuration depuis le fichier config.json
    Si le fichier n'existe pas, crée un fichier avec la configuration par défaut

    Returns:
        Dictionnaire de configuration
    """
    if os.environ.get("USE_ENV_CONFIG", "").lower() == "true":
        logger.info("Chargement de la configuration depuis les variables d'environnement")
        config = load_config_from_env()
    else:
        if not os.path.exists(config_file):
            with open(config_file, "w") as f:
                json.dump(DEFAULT_CONFIG, f, indent=2)
            logger.info(f"Fichier de configuration créé: {config_file}")
            return dict(DEFAULT_CONFIG)

        try:
            with open(config_file, "r") as f:
                config = json.load(f)
            logger.info(f"Configuration chargée depuis: {config_file}")
        except (OSError, ValueError) as e:
            logger.error(f"Erreur lors du chargement de la configuration: {e}")
            logger.info("Utilisation de la configuration par défaut")
            return dict(DEFAULT_CONFIG)

    # Fusion avec les clés manquantes
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = value

    return config

def load_config_from_env() -> Dict[str, Any]:
    """
    Charge la configuration depuis les variables d'environnement

    Returns:
        Dictionnaire de configuration
    """
    config = {}

    for key, default_value in DEFAULT_CONFIG.items():
        env_value = os.environ.get(key)

        if env_value is not None:
            try:
                if isinstance(default_value, bool):
                    config[key] = env_value.lower() == "true"
                elif isinstance(default_value, int):
                    config[key] = int(env_value)
                elif isinstance(default_value, float):
                    config[key] = float(env_value)
                else:
                    config[key] = env_value
            except ValueError as parse_err:
                logger.warning(f"Impossible de parser la variable d'env {key}: {parse_err}. Valeur par défaut utilisée.")
                config[key] = default_value
        else:
            config[key] = default_value

    return config

def save_config(config: Dict[str, Any], config_file: str = "config.json") -> bool:
    """
    Sauvegarde la configuration dans le fichier config.json

    Args:
        config: Dictionnaire de configuration

    Returns:
        True si la sauvegarde a réussi, False sinon
    """
    try:
        with open(config_file, "w") as f:
            json.dump(config, f, indent=2)
        logger.info(f"Configuration sauvegardée dans: {config_file}")
        return True
    except OSError as e:
        logger.error(f"Erreur lors de la sauvegarde de la configuration: {e}")
        return False
