"""Data models for the alerter module."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_DANGER_ALERT_TEMPLATE = """🚨 Civic Alert – {region}
📊 Civic Danger: {danger_score}/100 ({severity})
😡 Emotion: {emotion}
📈 Topic: {topic}
🕒 Time: {timestamp}
🔗 View Dashboard: {dashboard_url}"""

DEFAULT_MOOD_SHIFT_TEMPLATE = """📈 Mood Shift Alert – {region}
⚡ Change: {from_emotion} → {to_emotion}
📊 Severity: {severity}
🕒 Detected: {timestamp}
🔗 Details: {dashboard_url}"""

DEFAULT_DISINFORMATION_TEMPLATE = """⚠️ Disinformation Alert
🎯 Target: {topic}
📈 Spread Rate: {spread_rate}
🌐 Platforms: {platforms}
🔗 Monitor: {dashboard_url}"""

DEFAULT_UNREST_PREDICTION_TEMPLATE = """🔮 Unrest Prediction – {region}
📊 Risk Level: {risk_level}/100
⏰ Timeframe: {timeframe}
🎯 Triggers: {triggers}
🔗 Analysis: {dashboard_url}"""

MessageType = Literal["alert_broadcast", "daily_digest"]


class MessageTemplates(BaseModel):
    """Message templates keyed by alert category."""

    model_config = ConfigDict(extra="ignore")

    danger_alert: str = DEFAULT_DANGER_ALERT_TEMPLATE
    mood_shift: str = DEFAULT_MOOD_SHIFT_TEMPLATE
    disinformation: str = DEFAULT_DISINFORMATION_TEMPLATE
    unrest_prediction: str = DEFAULT_UNREST_PREDICTION_TEMPLATE


class AlertBotConfig(BaseModel):
    """Bot configuration supplied by the caller on every request.

    Nothing in this model is cached between requests; the HTTP layer
    validates a fresh instance for each broadcast.
    """

    model_config = ConfigDict(extra="ignore")

    enabled: bool = False
    telegram_enabled: bool = False
    whatsapp_enabled: bool = False
    telegram_bot_token: str = ""
    telegram_admin_chat_id: str = ""
    telegram_public_chat_id: str = ""
    whatsapp_admin_groups: list[str] = Field(default_factory=list)
    alert_frequency: Literal["immediate", "hourly", "daily"] = "immediate"
    danger_threshold: int = Field(default=65, ge=0, le=100)
    digest_schedule: str = "08:00"
    voice_alerts_enabled: bool = False
    message_templates: MessageTemplates = Field(default_factory=MessageTemplates)

    @property
    def telegram_recipients(self) -> list[str]:
        """Configured Telegram chat IDs, admin chat first."""
        return [
            chat_id
            for chat_id in (self.telegram_admin_chat_id, self.telegram_public_chat_id)
            if chat_id
        ]

    @property
    def whatsapp_recipients(self) -> list[str]:
        """Configured WhatsApp group IDs."""
        return [group_id for group_id in self.whatsapp_admin_groups if group_id]


@dataclass(frozen=True)
class BroadcastResult:
    """Per-channel outcome of one broadcast.

    Attributes:
        platform: Channel name (``telegram`` or ``whatsapp``).
        recipient_count: Number of recipients attempted.
        success_count: Number of successful sends.
        failure_count: Number of failed sends.
        errors: One message per failed recipient, in send order.
    """

    platform: str
    recipient_count: int
    success_count: int
    failure_count: int
    errors: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.success_count + self.failure_count != self.recipient_count:
            raise ValueError(
                f"{self.platform}: success_count + failure_count must equal recipient_count"
            )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the JSON response."""
        return {
            "platform": self.platform,
            "recipient_count": self.recipient_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "errors": list(self.errors),
        }


@dataclass
class BroadcastLogEntry:
    """One row of the rolling broadcast log.

    Attributes:
        platform: Channel the broadcast went to.
        message_type: ``alert_broadcast`` or ``daily_digest``.
        recipient_count: Recipients attempted.
        success_count: Successful sends.
        failure_count: Failed sends.
        alert_id: Source alert, absent for digests.
        id: Unique identifier of the entry.
        created_at: When the broadcast was logged.
    """

    platform: str
    message_type: MessageType
    recipient_count: int
    success_count: int
    failure_count: int
    alert_id: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_result(
        cls,
        result: BroadcastResult,
        message_type: MessageType,
        alert_id: str | None = None,
    ) -> BroadcastLogEntry:
        """Flatten a broadcast result into a log entry."""
        return cls(
            platform=result.platform,
            message_type=message_type,
            recipient_count=result.recipient_count,
            success_count=result.success_count,
            failure_count=result.failure_count,
            alert_id=alert_id,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for storage."""
        data: dict[str, Any] = {
            "id": self.id,
            "platform": self.platform,
            "message_type": self.message_type,
            "recipient_count": self.recipient_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "created_at": self.created_at.isoformat(),
        }
        if self.alert_id is not None:
            data["alert_id"] = self.alert_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BroadcastLogEntry:
        """Deserialize from dictionary."""
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        elif created_at is None:
            created_at = datetime.now(UTC)

        return cls(
            id=data["id"],
            platform=data["platform"],
            message_type=data["message_type"],
            recipient_count=int(data.get("recipient_count", 0)),
            success_count=int(data.get("success_count", 0)),
            failure_count=int(data.get("failure_count", 0)),
            alert_id=data.get("alert_id"),
            created_at=created_at,
        )


@dataclass(frozen=True)
class ConnectionStatus:
    """Outcome of a channel credential check."""

    success: bool
    error: str | None = None
    info: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize, omitting unset fields."""
        data: dict[str, Any] = {"success": self.success}
        if self.error is not None:
            data["error"] = self.error
        if self.info is not None:
            data["info"] = self.info
        return data
