"""Repository pattern implementations for data access.

This module provides data access abstractions for civic alerts, the
aggregate tables summarised by the daily digest, and the key-value
config table that holds the bot configuration and broadcast log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from civic_alert_bot.storage.models import (
    IntelligenceAlertModel,
    IntelligenceConfigModel,
    SentimentLogModel,
    TrendingTopicModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

TRENDING_TOPICS_LIMIT = 5


@dataclass
class AlertDTO:
    """Data transfer object for civic intelligence alerts."""

    id: str
    alert_type: str
    severity: str | None
    title: str | None
    description: str | None
    affected_regions: list[str]
    emotional_tone: str | None
    acknowledged: bool
    created_at: datetime | None
    acknowledged_at: datetime | None = None
    acknowledged_by: str | None = None

    @classmethod
    def from_model(cls, model: IntelligenceAlertModel) -> AlertDTO:
        """Create DTO from SQLAlchemy model."""
        return cls(
            id=model.id,
            alert_type=model.alert_type,
            severity=model.severity,
            title=model.title,
            description=model.description,
            affected_regions=list(model.affected_regions or []),
            emotional_tone=model.emotional_tone,
            acknowledged=model.acknowledged,
            created_at=model.created_at,
            acknowledged_at=model.acknowledged_at,
            acknowledged_by=model.acknowledged_by,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "id": self.id,
            "alert_type": self.alert_type,
            "severity": self.severity,
            "title": self.title,
            "description": self.description or "",
            "affected_regions": self.affected_regions,
            "emotional_tone": self.emotional_tone,
            "acknowledged": self.acknowledged,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class TrendingTopic:
    """A trending topic and its volume score."""

    text: str
    volume: float


@dataclass
class DigestStats:
    """Same-day aggregate counts summarised by the daily digest."""

    total_sentiments: int = 0
    positive_count: int = 0
    negative_count: int = 0
    alert_count: int = 0
    critical_alerts: int = 0
    trending: list[TrendingTopic] = field(default_factory=list)


class AlertRepository:
    """Repository for civic intelligence alerts."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def get_by_id(self, alert_id: str) -> AlertDTO | None:
        """Get an alert by ID.

        Args:
            alert_id: Alert primary key.

        Returns:
            AlertDTO if found, None otherwise.
        """
        result = await self.session.execute(
            select(IntelligenceAlertModel).where(IntelligenceAlertModel.id == alert_id)
        )
        model = result.scalar_one_or_none()
        return AlertDTO.from_model(model) if model else None

    async def acknowledge(
        self,
        alert_id: str,
        acknowledged_by: str,
        acknowledged_at: datetime | None = None,
    ) -> bool:
        """Mark an alert as acknowledged.

        Args:
            alert_id: Alert primary key.
            acknowledged_by: Identifier recorded in ``acknowledged_by``.
            acknowledged_at: Acknowledgement time, defaults to now.

        Returns:
            True if a row was updated.
        """
        result = await self.session.execute(
            update(IntelligenceAlertModel)
            .where(IntelligenceAlertModel.id == alert_id)
            .values(
                acknowledged=True,
                acknowledged_at=acknowledged_at or datetime.now(UTC),
                acknowledged_by=acknowledged_by,
            )
        )
        return result.rowcount > 0

    async def list_unacknowledged(self, limit: int = 10) -> list[AlertDTO]:
        """Get the newest alerts that have not been acknowledged yet.

        Args:
            limit: Maximum number of results.

        Returns:
            List of AlertDTOs, newest first.
        """
        result = await self.session.execute(
            select(IntelligenceAlertModel)
            .where(IntelligenceAlertModel.acknowledged.is_(False))
            .order_by(IntelligenceAlertModel.created_at.desc())
            .limit(limit)
        )
        return [AlertDTO.from_model(m) for m in result.scalars().all()]


class DigestStatsRepository:
    """Aggregate queries over sentiment, alert and trending topic tables."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def collect(self, since: datetime) -> DigestStats:
        """Collect digest counts for everything created at or after ``since``.

        Trending topics are not time-bounded: the top topics by volume
        are reported regardless of when they were first seen.
        """
        polarity_rows = await self.session.execute(
            select(SentimentLogModel.sentiment_polarity, func.count())
            .where(SentimentLogModel.created_at >= since)
            .group_by(SentimentLogModel.sentiment_polarity)
        )
        polarity_counts: dict[str, int] = {row[0]: row[1] for row in polarity_rows.all()}

        severity_rows = await self.session.execute(
            select(IntelligenceAlertModel.severity, func.count())
            .where(IntelligenceAlertModel.created_at >= since)
            .group_by(IntelligenceAlertModel.severity)
        )
        severity_counts: dict[str | None, int] = {row[0]: row[1] for row in severity_rows.all()}

        trending_rows = await self.session.execute(
            select(TrendingTopicModel)
            .order_by(TrendingTopicModel.volume_score.desc())
            .limit(TRENDING_TOPICS_LIMIT)
        )
        trending = [
            TrendingTopic(text=m.topic_text, volume=m.volume_score)
            for m in trending_rows.scalars().all()
        ]

        return DigestStats(
            total_sentiments=sum(polarity_counts.values()),
            positive_count=polarity_counts.get("positive", 0),
            negative_count=polarity_counts.get("negative", 0),
            alert_count=sum(severity_counts.values()),
            critical_alerts=severity_counts.get("critical", 0),
            trending=trending,
        )


class ConfigRepository:
    """Repository for the generic key-value config table."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, config_key: str) -> dict[str, Any] | None:
        """Get the JSON value stored under a key.

        Args:
            config_key: Config key.

        Returns:
            The stored value, or None if the key is absent.
        """
        result = await self.session.execute(
            select(IntelligenceConfigModel.config_value).where(
                IntelligenceConfigModel.config_key == config_key
            )
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        config_key: str,
        config_value: dict[str, Any],
        *,
        config_type: str = "system",
        description: str | None = None,
    ) -> None:
        """Insert or replace the value stored under a key.

        Args:
            config_key: Config key.
            config_value: JSON-serializable value.
            config_type: Config category.
            description: Human-readable description.
        """
        values = {
            "config_key": config_key,
            "config_type": config_type,
            "config_value": config_value,
            "description": description,
            "updated_at": datetime.now(UTC),
        }

        # PostgreSQL in production, SQLite for local runs and tests
        dialect = self.session.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = insert(IntelligenceConfigModel).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["config_key"],
            set_={
                "config_type": stmt.excluded.config_type,
                "config_value": stmt.excluded.config_value,
                "description": stmt.excluded.description,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()
        logger.debug(f"Upserted config key {config_key}")
