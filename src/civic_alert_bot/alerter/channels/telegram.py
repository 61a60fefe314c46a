"""Telegram Bot API channel implementation."""

from __future__ import annotations

import asyncio
import logging

import httpx

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org/bot{token}/{method}"


class TelegramChannel:
    """Telegram Bot API channel for sending broadcast messages.

    One channel instance is bound to one bot token; the chat ID is given
    per send so the same bot can reach every configured chat.
    """

    def __init__(
        self,
        bot_token: str,
        *,
        max_retries: int = 1,
        timeout: float = 10.0,
    ) -> None:
        """Initialize Telegram channel.

        Args:
            bot_token: Telegram bot token.
            max_retries: Attempts per message. Only a provider 429 is
                retried, after the advertised ``retry_after`` delay.
            timeout: HTTP request timeout in seconds.
        """
        self.bot_token = bot_token
        self.max_retries = max_retries
        self.timeout = timeout
        self.name = "telegram"

        self._api_url = TELEGRAM_API_BASE.format(token=bot_token, method="sendMessage")

    async def send(self, recipient: str, text: str) -> bool:
        """Send a message to a Telegram chat.

        Args:
            recipient: Target chat/channel ID.
            text: Message text (HTML parse mode).

        Returns:
            True if the Bot API reported ``ok``, False otherwise.
        """
        payload = {
            "chat_id": recipient,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self._api_url, json=payload)
                    result = response.json()
            except httpx.TimeoutException:
                logger.warning(f"Telegram API timeout for chat {recipient} (attempt {attempt + 1})")
                continue
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"Telegram send error for chat {recipient}: {e}")
                return False

            if result.get("ok"):
                logger.info(f"Telegram message delivered to chat {recipient}")
                return True

            error_code = result.get("error_code", 0)
            description = result.get("description", "Unknown error")

            if error_code == 429 and attempt < self.max_retries - 1:
                retry_after = result.get("parameters", {}).get("retry_after", 1)
                logger.warning(f"Telegram rate limited, retry after {retry_after}s")
                await asyncio.sleep(retry_after)
                continue

            logger.error(f"Telegram API error for chat {recipient}: {error_code} - {description}")
            return False

        logger.error(f"Telegram delivery to chat {recipient} failed after all retries")
        return False
