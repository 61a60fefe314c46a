"""SQLAlchemy models for the civic intelligence tables.

The bot reads alerts and aggregate tables owned by the wider platform and
writes only two things: alert acknowledgement columns and rows of the
generic key-value config table.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    Index,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class IntelligenceAlertModel(Base):
    """SQLAlchemy model for civic intelligence alerts."""

    __tablename__ = "camerpulse_intelligence_alerts"

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_new_id)
    alert_type: Mapped[str] = mapped_column(String(64), nullable=False)
    severity: Mapped[str | None] = mapped_column(String(20), nullable=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    affected_regions: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    emotional_tone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    acknowledged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    acknowledged_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("idx_intelligence_alerts_created", "created_at"),
        Index("idx_intelligence_alerts_acknowledged", "acknowledged"),
    )


class SentimentLogModel(Base):
    """SQLAlchemy model for per-conversation sentiment classifications."""

    __tablename__ = "camerpulse_intelligence_sentiment_logs"

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_new_id)
    sentiment_polarity: Mapped[str] = mapped_column(String(20), nullable=False)
    sentiment_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (Index("idx_sentiment_logs_created", "created_at"),)


class TrendingTopicModel(Base):
    """SQLAlchemy model for trending topics."""

    __tablename__ = "camerpulse_intelligence_trending_topics"

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_new_id)
    topic_text: Mapped[str] = mapped_column(Text, nullable=False)
    volume_score: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (Index("idx_trending_topics_volume", "volume_score"),)


class IntelligenceConfigModel(Base):
    """SQLAlchemy model for the generic key-value config table."""

    __tablename__ = "camerpulse_intelligence_config"

    config_key: Mapped[str] = mapped_column(String(128), primary_key=True)
    config_type: Mapped[str] = mapped_column(String(32), nullable=False, default="system")
    config_value: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )
