"""Shared fixtures: a throwaway SQLite store with the bot's tables."""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from civic_alert_bot.storage.database import create_engine, create_session_factory, init_models
from civic_alert_bot.storage.models import (
    IntelligenceAlertModel,
    SentimentLogModel,
    TrendingTopicModel,
)


class StoreSeeder:
    """Inserts fixture rows into the test database."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self.sessions = sessions

    async def alert(self, **overrides: Any) -> str:
        """Insert an alert row and return its ID."""
        values: dict[str, Any] = {
            "alert_type": "danger_spike",
            "severity": "high",
            "title": "Fuel price protests",
            "description": "Crowds gathering near the market",
            "affected_regions": ["Littoral", "Centre"],
            "emotional_tone": "Anger",
            "created_at": datetime(2026, 10, 19, 8, 30, tzinfo=UTC),
        }
        values.update(overrides)
        alert = IntelligenceAlertModel(**values)
        async with self.sessions() as session, session.begin():
            session.add(alert)
        return alert.id

    async def sentiments(self, polarities: list[str], created_at: datetime) -> None:
        """Insert sentiment log rows."""
        async with self.sessions() as session, session.begin():
            session.add_all(
                [
                    SentimentLogModel(
                        sentiment_polarity=p, sentiment_score=0.5, created_at=created_at
                    )
                    for p in polarities
                ]
            )

    async def topics(self, topics: dict[str, float]) -> None:
        """Insert trending topic rows."""
        async with self.sessions() as session, session.begin():
            session.add_all(
                [
                    TrendingTopicModel(topic_text=text, volume_score=volume)
                    for text, volume in topics.items()
                ]
            )


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Create an on-disk SQLite database with all tables."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'bot.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return create_session_factory(engine)


@pytest.fixture
def seed(session_factory: async_sessionmaker[AsyncSession]) -> StoreSeeder:
    """Row seeding helper for the test database."""
    return StoreSeeder(session_factory)
