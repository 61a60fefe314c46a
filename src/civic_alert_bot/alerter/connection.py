"""Credential checks for the messaging channels."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from civic_alert_bot.alerter.channels.telegram import TELEGRAM_API_BASE
from civic_alert_bot.alerter.channels.whatsapp import GRAPH_API_BASE
from civic_alert_bot.alerter.models import ConnectionStatus

logger = logging.getLogger(__name__)

SUPPORTED_PLATFORMS = ("telegram", "whatsapp")


class ConnectionTester:
    """Validates channel credentials against lightweight identity endpoints.

    Failures come back as a ``ConnectionStatus`` with one of three kinds of
    message: missing credentials (no request is made), an error reported by
    the provider, or a transport failure.
    """

    def __init__(
        self,
        *,
        telegram_bot_token: str | None = None,
        whatsapp_access_token: str | None = None,
        whatsapp_phone_number_id: str | None = None,
        whatsapp_api_version: str = "v18.0",
        timeout: float = 10.0,
    ) -> None:
        """Initialize the tester with the process-wide credentials.

        Args:
            telegram_bot_token: Bot token used by ``status``.
            whatsapp_access_token: Default WhatsApp bearer token.
            whatsapp_phone_number_id: Default WhatsApp phone number ID.
            whatsapp_api_version: Graph API version.
            timeout: HTTP request timeout in seconds.
        """
        self.telegram_bot_token = telegram_bot_token
        self.whatsapp_access_token = whatsapp_access_token
        self.whatsapp_phone_number_id = whatsapp_phone_number_id
        self.whatsapp_api_version = whatsapp_api_version
        self.timeout = timeout

    async def test(self, platform: str, credentials: dict[str, Any] | None) -> ConnectionStatus:
        """Check the credentials of one platform.

        Args:
            platform: ``telegram`` or ``whatsapp``.
            credentials: Request-supplied credentials. Telegram reads
                ``bot_token``; WhatsApp reads ``access_token`` and
                ``phone_number_id``, falling back to the process-wide ones.

        Returns:
            ConnectionStatus describing the outcome.
        """
        credentials = credentials or {}
        if platform == "telegram":
            return await self.test_telegram(credentials.get("bot_token"))
        if platform == "whatsapp":
            return await self.test_whatsapp(
                credentials.get("access_token") or self.whatsapp_access_token,
                credentials.get("phone_number_id") or self.whatsapp_phone_number_id,
            )
        return ConnectionStatus(success=False, error="Unknown platform")

    async def test_telegram(self, bot_token: str | None) -> ConnectionStatus:
        """Call ``getMe`` for a bot token."""
        if not bot_token:
            return ConnectionStatus(success=False, error="Telegram bot token not configured")

        url = TELEGRAM_API_BASE.format(token=bot_token, method="getMe")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url)
                result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Telegram connection test failed: {e}")
            return ConnectionStatus(success=False, error=f"Connection failed: {e}")

        if result.get("ok"):
            bot = result.get("result") or {}
            return ConnectionStatus(
                success=True,
                info={
                    "bot_username": bot.get("username", ""),
                    "bot_name": bot.get("first_name", ""),
                },
            )

        return ConnectionStatus(
            success=False,
            error=result.get("description") or "Invalid bot token",
        )

    async def test_whatsapp(
        self,
        access_token: str | None,
        phone_number_id: str | None,
    ) -> ConnectionStatus:
        """Fetch the phone number metadata for a set of credentials."""
        if not access_token or not phone_number_id:
            return ConnectionStatus(success=False, error="WhatsApp credentials not configured")

        url = GRAPH_API_BASE.format(
            version=self.whatsapp_api_version, phone_number_id=phone_number_id
        )
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    url, headers={"Authorization": f"Bearer {access_token}"}
                )
                if not response.is_success:
                    logger.warning(
                        f"WhatsApp connection test rejected: {response.status_code}"
                    )
                    return ConnectionStatus(success=False, error="WhatsApp API connection failed")
                result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"WhatsApp connection test failed: {e}")
            return ConnectionStatus(success=False, error=f"WhatsApp connection failed: {e}")

        return ConnectionStatus(
            success=True,
            info={"phone_number": result.get("display_phone_number") or phone_number_id},
        )

    async def status(self) -> dict[str, dict[str, Any]]:
        """Report the connection state of both channels.

        Uses the process-wide credentials only.
        """
        if self.telegram_bot_token:
            telegram = await self.test_telegram(self.telegram_bot_token)
        else:
            telegram = ConnectionStatus(success=False, error="Token not configured")

        if self.whatsapp_access_token and self.whatsapp_phone_number_id:
            whatsapp = await self.test_whatsapp(
                self.whatsapp_access_token, self.whatsapp_phone_number_id
            )
        else:
            whatsapp = ConnectionStatus(success=False, error="Credentials not configured")

        return {
            "telegram": {
                "connected": telegram.success,
                "bot_username": (telegram.info or {}).get("bot_username", ""),
                "error": telegram.error,
            },
            "whatsapp": {
                "connected": whatsapp.success,
                "phone_number": (whatsapp.info or {}).get("phone_number", ""),
                "error": whatsapp.error,
            },
        }
