"""Alerting layer - message formatting, delivery and broadcast history."""

from civic_alert_bot.alerter.broadcaster import (
    AlertBotError,
    AlertNotFoundError,
    Broadcaster,
    MessageChannel,
)
from civic_alert_bot.alerter.channels.telegram import TelegramChannel
from civic_alert_bot.alerter.channels.whatsapp import WhatsAppChannel
from civic_alert_bot.alerter.connection import ConnectionTester
from civic_alert_bot.alerter.digest import DigestBuilder
from civic_alert_bot.alerter.formatter import MessageFormatter
from civic_alert_bot.alerter.history import BroadcastHistory
from civic_alert_bot.alerter.models import (
    AlertBotConfig,
    BroadcastLogEntry,
    BroadcastResult,
    ConnectionStatus,
    MessageTemplates,
)

__all__ = [
    "AlertBotConfig",
    "AlertBotError",
    "AlertNotFoundError",
    "BroadcastHistory",
    "BroadcastLogEntry",
    "BroadcastResult",
    "Broadcaster",
    "ConnectionStatus",
    "ConnectionTester",
    "DigestBuilder",
    "MessageChannel",
    "MessageFormatter",
    "MessageTemplates",
    "TelegramChannel",
    "WhatsAppChannel",
]
