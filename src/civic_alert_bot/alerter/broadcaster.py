"""Broadcast orchestration across messaging channels."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

from prometheus_client import Counter

from civic_alert_bot.alerter.channels.telegram import TelegramChannel
from civic_alert_bot.alerter.formatter import select_template
from civic_alert_bot.alerter.history import DIGEST_SUBJECT
from civic_alert_bot.alerter.models import BroadcastResult
from civic_alert_bot.alerter.voice import VoiceSynthesizer
from civic_alert_bot.storage.repos import AlertRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from civic_alert_bot.alerter.channels.whatsapp import WhatsAppChannel
    from civic_alert_bot.alerter.digest import DigestBuilder
    from civic_alert_bot.alerter.formatter import MessageFormatter
    from civic_alert_bot.alerter.history import BroadcastHistory
    from civic_alert_bot.alerter.models import AlertBotConfig

logger = logging.getLogger(__name__)

ACKNOWLEDGED_BY = "civic-alert-bot"

MESSAGES_SENT = Counter(
    "civic_alert_bot_messages_total",
    "Messages sent to individual recipients",
    ["platform", "outcome"],
)

BROADCASTS_TOTAL = Counter(
    "civic_alert_bot_broadcasts_total",
    "Completed broadcasts",
    ["message_type"],
)


class AlertBotError(Exception):
    """Base exception for broadcast pipeline errors."""


class AlertNotFoundError(AlertBotError):
    """Raised when the alert to broadcast does not exist."""

    def __init__(self, alert_id: str) -> None:
        super().__init__("Alert not found")
        self.alert_id = alert_id


class MessageChannel(Protocol):
    """Protocol for message delivery channels."""

    name: str

    async def send(self, recipient: str, text: str) -> bool:
        """Send text to one recipient. Returns True on success."""
        ...


def summarize(results: Sequence[BroadcastResult]) -> dict[str, Any]:
    """Build the response document for a finished broadcast.

    ``success`` only says the pipeline ran; per-channel failures are in
    the nested counts.
    """
    return {
        "success": True,
        "recipient_count": sum(r.recipient_count for r in results),
        "success_count": sum(r.success_count for r in results),
        "results": [r.to_dict() for r in results],
    }


class Broadcaster:
    """Sends alerts and digests to every configured recipient.

    Recipients of a channel are sent to one after another, so a result's
    error list follows recipient order. A failed recipient never stops
    the rest of the batch.

    Store steps (loading the alert, logging, acknowledging) each run in
    their own transaction; a failure in a later step does not undo an
    earlier one.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        formatter: MessageFormatter,
        whatsapp: WhatsAppChannel | MessageChannel,
        history: BroadcastHistory,
        digest_builder: DigestBuilder,
        *,
        telegram_factory: Callable[[str], MessageChannel] | None = None,
        voice: VoiceSynthesizer | None = None,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the broadcaster.

        Args:
            session_factory: Factory for store sessions.
            formatter: Alert message formatter.
            whatsapp: WhatsApp channel bound to the process credentials.
            history: Rolling broadcast log.
            digest_builder: Daily digest builder.
            telegram_factory: Builds a Telegram channel for a bot token.
            voice: Voice synthesizer used when voice alerts are enabled.
            timeout: HTTP timeout for channels built by the default factory.
        """
        self._sessions = session_factory
        self.formatter = formatter
        self.whatsapp = whatsapp
        self.history = history
        self.digest_builder = digest_builder
        self.voice = voice or VoiceSynthesizer()
        self._telegram_factory = telegram_factory or (
            lambda token: TelegramChannel(token, timeout=timeout)
        )

    async def broadcast_alert(
        self,
        alert_id: str,
        config: AlertBotConfig,
    ) -> list[BroadcastResult]:
        """Broadcast one alert to all enabled channels.

        The alert is acknowledged once delivery has been attempted, even if
        some recipients failed.

        Args:
            alert_id: ID of the alert to broadcast.
            config: Bot configuration for this request.

        Returns:
            One BroadcastResult per channel used.

        Raises:
            AlertNotFoundError: If the alert does not exist.
        """
        async with self._sessions() as session:
            alert = await AlertRepository(session).get_by_id(alert_id)

        if alert is None:
            raise AlertNotFoundError(alert_id)

        template = select_template(alert.alert_type, config.message_templates)
        message = self.formatter.format(template, alert)

        results = await self.fan_out(message, config, with_voice=config.voice_alerts_enabled)

        await self.history.log(alert_id, results)

        async with self._sessions() as session, session.begin():
            await AlertRepository(session).acknowledge(
                alert_id, ACKNOWLEDGED_BY, datetime.now(UTC)
            )

        BROADCASTS_TOTAL.labels(message_type="alert_broadcast").inc()
        logger.info(
            f"Alert {alert_id} broadcast: "
            f"{sum(r.success_count for r in results)}/"
            f"{sum(r.recipient_count for r in results)} recipients reached"
        )
        return results

    async def send_digest(
        self,
        config: AlertBotConfig,
        now: datetime | None = None,
    ) -> list[BroadcastResult]:
        """Build and broadcast the daily digest.

        Args:
            config: Bot configuration for this request.
            now: Reference time for the digest day.

        Returns:
            One BroadcastResult per channel used.
        """
        message = await self.digest_builder.build(now)
        results = await self.fan_out(message, config)
        await self.history.log(DIGEST_SUBJECT, results)

        BROADCASTS_TOTAL.labels(message_type="daily_digest").inc()
        logger.info(
            f"Daily digest sent to {sum(r.success_count for r in results)}/"
            f"{sum(r.recipient_count for r in results)} recipients"
        )
        return results

    async def fan_out(
        self,
        message: str,
        config: AlertBotConfig,
        *,
        with_voice: bool = False,
    ) -> list[BroadcastResult]:
        """Send a message through every enabled channel.

        Args:
            message: Final message text.
            config: Bot configuration for this request.
            with_voice: Also attempt a voice rendition per WhatsApp recipient.

        Returns:
            Telegram result first (if enabled), then WhatsApp.
        """
        results: list[BroadcastResult] = []

        if config.telegram_enabled and config.telegram_bot_token:
            telegram = self._telegram_factory(config.telegram_bot_token)
            results.append(
                await self._deliver(telegram, config.telegram_recipients, message, "chat")
            )

        whatsapp_recipients = config.whatsapp_recipients
        if config.whatsapp_enabled and whatsapp_recipients:
            results.append(
                await self._deliver(
                    self.whatsapp,
                    whatsapp_recipients,
                    message,
                    "group",
                    with_voice=with_voice,
                )
            )

        if not results:
            logger.warning("No channels enabled for broadcast")

        return results

    async def _deliver(
        self,
        channel: MessageChannel,
        recipients: Sequence[str],
        message: str,
        recipient_kind: str,
        *,
        with_voice: bool = False,
    ) -> BroadcastResult:
        """Send to each recipient of one channel in order and tally outcomes."""
        success_count = 0
        errors: list[str] = []

        for recipient in recipients:
            try:
                sent = await channel.send(recipient, message)
            except Exception as e:
                logger.error(f"Error sending to {channel.name} {recipient_kind} {recipient}: {e}")
                sent = False

            if sent:
                success_count += 1
            else:
                errors.append(f"Failed to send to {recipient_kind} {recipient}")
            MESSAGES_SENT.labels(
                platform=channel.name, outcome="success" if sent else "failure"
            ).inc()

            if with_voice:
                await self._send_voice(recipient, message)

        return BroadcastResult(
            platform=channel.name,
            recipient_count=len(recipients),
            success_count=success_count,
            failure_count=len(errors),
            errors=tuple(errors),
        )

    async def _send_voice(self, recipient: str, message: str) -> None:
        """Attempt a voice rendition; never affects the text send."""
        try:
            voice_note = await self.voice.synthesize(message)
        except Exception as e:
            logger.error(f"Voice generation error for {recipient}: {e}")
            return

        if voice_note:
            # TODO: deliver voice notes once the Graph API audio upload is wired in
            logger.info(f"Voice message generated for WhatsApp recipient {recipient}")
