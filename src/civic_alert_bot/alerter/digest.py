"""Daily civic digest.

Summarises today's sentiment, alerts and trending topics into a fixed
plain-text report that goes out through the regular broadcast path.
"""

from __future__ import annotations

import math
from datetime import UTC, date, datetime, time
from typing import TYPE_CHECKING

from civic_alert_bot.storage.repos import DigestStats, DigestStatsRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

NO_TRENDING_TOPICS = "No trending topics detected"


def percentage(part: int, total: int) -> int:
    """Whole percentage of ``part`` in ``total``, rounding halves up.

    Returns 0 for an empty total.
    """
    if total <= 0:
        return 0
    return math.floor(part * 100 / total + 0.5)


def format_day(day: date) -> str:
    return f"{day.day}/{day.month}/{day.year}"


def format_volume(volume: float) -> str:
    """Render a volume score at full precision, without a trailing ``.0``."""
    volume = float(volume)
    if volume.is_integer():
        return str(int(volume))
    return str(volume)


def render_digest(stats: DigestStats, dashboard_url: str, day: date) -> str:
    """Render digest statistics as the broadcast report."""
    if stats.trending:
        trending = "\n".join(
            f"{i}. {topic.text} (Volume: {format_volume(topic.volume)})"
            for i, topic in enumerate(stats.trending, start=1)
        )
    else:
        trending = NO_TRENDING_TOPICS

    positive_pct = percentage(stats.positive_count, stats.total_sentiments)
    negative_pct = percentage(stats.negative_count, stats.total_sentiments)

    return f"""📊 CamerPulse Daily Civic Digest - {format_day(day)}

🌍 NATIONAL SENTIMENT OVERVIEW
📈 Total Conversations Monitored: {stats.total_sentiments:,}
😊 Positive Sentiment: {stats.positive_count} ({positive_pct}%)
😠 Negative Sentiment: {stats.negative_count} ({negative_pct}%)

🚨 ALERTS & INCIDENTS
📢 Total Alerts: {stats.alert_count}
⚠️ Critical Alerts: {stats.critical_alerts}

📈 TOP TRENDING TOPICS
{trending}

🔗 Full Dashboard: {dashboard_url}

Generated by CamerPulse Intelligence System"""


class DigestBuilder:
    """Builds the daily digest from the store."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dashboard_url: str,
    ) -> None:
        self._sessions = session_factory
        self.dashboard_url = dashboard_url

    async def collect(self, now: datetime | None = None) -> DigestStats:
        """Collect counts from UTC midnight of ``now`` onwards."""
        now = now or datetime.now(UTC)
        since = datetime.combine(now.astimezone(UTC).date(), time.min, tzinfo=UTC)
        async with self._sessions() as session:
            return await DigestStatsRepository(session).collect(since)

    async def build(self, now: datetime | None = None) -> str:
        """Build today's digest text.

        Args:
            now: Reference time, defaults to the current UTC time.

        Returns:
            The rendered digest.
        """
        now = now or datetime.now(UTC)
        stats = await self.collect(now)
        return render_digest(stats, self.dashboard_url, now.astimezone(UTC).date())
