"""Telegram notification service."""
import logging
import ssl

import aiohttp
import certifi

from ..config import TelegramConfig

logger = logging.getLogger(__name__)

# Telegram rejects messages longer than 4096 characters.
MAX_MESSAGE_LENGTH = 4096


def split_message(message: str, limit: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split *message* on line boundaries into chunks no longer than *limit*."""
    chunks: list[str] = []
    current = ""
    for line in message.splitlines(keepends=True):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]
        if len(current) + len(line) > limit:
            chunks.append(current)
            current = ""
        current += line
    if current:
        chunks.append(current)
    return chunks


class TelegramNotifier:
    """Send portfolio reports via Telegram bots.

    Alerts go through the alert bot, routine reports through the log bot.
    """

    def __init__(self, config: TelegramConfig) -> None:
        self.alert_bot_token = config.alert_bot_token
        self.log_bot_token = config.log_bot_token
        self.chat_id = config.chat_id

    async def _send_message(
        self, message: str, bot_token: str, silent: bool = False
    ) -> bool:
        if not bot_token or not self.chat_id:
            logger.warning("Telegram credentials not configured")
            return False

        url = f"https://api.telegram.org/bot{bot_token}/sendMessage"
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            for chunk in split_message(message):
                payload = {
                    "chat_id": self.chat_id,
                    "text": chunk,
                    "disable_notification": silent,
                }
                async with session.post(url, json=payload) as response:
                    if response.status != 200:
                        logger.error(
                            "Failed to send Telegram message: %s", response.status
                        )
                        return False
        return True

    async def send_alert(self, message: str, subject: str = "") -> bool:
        text = f"{subject}\n\n{message}" if subject else message
        if await self._send_message(text, self.alert_bot_token, silent=False):
            logger.info("Telegram alert sent")
            return True
        return False

    async def send_log(self, message: str, silent: bool = True) -> bool:
        if await self._send_message(message, self.log_bot_token, silent=silent):
            logger.info("Telegram report sent")
            return True
        return False
