"""Storage layer - civic intelligence tables and repositories."""

from civic_alert_bot.storage.database import (
    create_engine,
    create_session_factory,
    init_models,
)
from civic_alert_bot.storage.repos import (
    AlertDTO,
    AlertRepository,
    ConfigRepository,
    DigestStats,
    DigestStatsRepository,
    TrendingTopic,
)

__all__ = [
    "AlertDTO",
    "AlertRepository",
    "ConfigRepository",
    "DigestStats",
    "DigestStatsRepository",
    "TrendingTopic",
    "create_engine",
    "create_session_factory",
    "init_models",
]
