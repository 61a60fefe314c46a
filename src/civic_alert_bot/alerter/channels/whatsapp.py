"""WhatsApp Business Graph API channel implementation."""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

GRAPH_API_BASE = "https://graph.facebook.com/{version}/{phone_number_id}"


class WhatsAppChannel:
    """WhatsApp Business channel for sending plain-text messages.

    Credentials are process-wide; without them every send fails
    immediately and no request is made.
    """

    def __init__(
        self,
        access_token: str | None,
        phone_number_id: str | None,
        *,
        api_version: str = "v18.0",
        timeout: float = 10.0,
    ) -> None:
        """Initialize WhatsApp channel.

        Args:
            access_token: WhatsApp Business API bearer token.
            phone_number_id: Sending phone number ID.
            api_version: Graph API version.
            timeout: HTTP request timeout in seconds.
        """
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.api_version = api_version
        self.timeout = timeout
        self.name = "whatsapp"

    @property
    def configured(self) -> bool:
        """Check if both credentials are present."""
        return bool(self.access_token and self.phone_number_id)

    @property
    def messages_url(self) -> str:
        return (
            GRAPH_API_BASE.format(version=self.api_version, phone_number_id=self.phone_number_id)
            + "/messages"
        )

    async def send(self, recipient: str, text: str) -> bool:
        """Send a text message to a WhatsApp group or number.

        Args:
            recipient: Target group ID or phone number.
            text: Message body.

        Returns:
            True if the Graph API answered with a 2xx status.
        """
        if not self.configured:
            logger.warning("WhatsApp credentials not configured, skipping send")
            return False

        payload = {
            "messaging_product": "whatsapp",
            "to": recipient,
            "type": "text",
            "text": {"body": text},
        }
        headers = {"Authorization": f"Bearer {self.access_token}"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.messages_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"WhatsApp send error for {recipient}: {e}")
            return False

        if response.is_success:
            logger.info(f"WhatsApp message delivered to {recipient}")
            return True

        logger.error(f"WhatsApp send to {recipient} failed: {response.status_code} {response.text}")
        return False
