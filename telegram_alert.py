# Filename: telegram_alert.py

import asyncio
import os
import logging
from typing import Optional

import requests

logger = logging.getLogger("TelegramNotifier")


class TelegramNotifier:
    def __init__(self, bot_token: str = None, chat_id: str = None):
        self.bot_token = bot_token or os.getenv("TELEGRAM_BOT_TOKEN", "")
        self.chat_id = chat_id or os.getenv("TELEGRAM_CHAT_ID", "")

        if not self.bot_token or not self.chat_id:
            logger.error("[Telegram] Missing bot token or chat ID!")

    @classmethod
    def from_config(cls, config) -> Optional["TelegramNotifier"]:
        if not config.get("ENABLE_TELEGRAM"):
            return None
        return cls(config.get("TELEGRAM_BOT_TOKEN"), config.get("TELEGRAM_CHAT_ID"))

    async def send_token_alert(self, mint: str, pool_tx: str = "", summary: str = ""):
        """
        Sends an alert for a token that passed every check.
        """
        solscan_link = f"https://solscan.io/token/{mint}"
        msg = f"""
🚀 *Token approved!*

*Mint:* `{mint}`
*Checks:* `{summary}`

🔍 [View on Solscan]({solscan_link})
        """.strip()
        if pool_tx:
            msg += f"\n🧾 [Pool creation](https://solscan.io/tx/{pool_tx})"

        await self.send(msg)

    async def send(self, text: str):
        """
        Sends a Markdown message from the event loop without blocking it.
        """
        await asyncio.to_thread(self.send_markdown, text)

    def send_markdown(self, text: str):
        """
        Sends a raw Markdown message.
        """
        if not self.bot_token or not self.chat_id:
            return

        url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "Markdown",
            "disable_web_page_preview": True
        }

        try:
            response = requests.post(url, data=payload, timeout=10)
            if response.status_code != 200:
                logger.error(f"[Telegram] Failed: {response.status_code} - {response.text}")
            else:
                logger.info("[Telegram] ✅ Message sent successfully.")
        except requests.RequestException as e:
            logger.error(f"[Telegram] Request exception: {e}")
