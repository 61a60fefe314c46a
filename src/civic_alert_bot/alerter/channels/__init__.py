"""Message channel implementations for the supported platforms."""

from civic_alert_bot.alerter.channels.telegram import TelegramChannel
from civic_alert_bot.alerter.channels.whatsapp import WhatsAppChannel

__all__ = [
    "TelegramChannel",
    "WhatsAppChannel",
]
