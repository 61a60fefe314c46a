"""Rolling broadcast log.

The log is a single JSON document ``{"broadcasts": [...]}`` stored in the
key-value config table. Each write reads the whole list, prepends the new
entries and writes it back, keeping only the newest ``max_entries``.

There is no locking around the read-modify-write: two broadcasts logging
at the same moment can race and the last writer wins. The log is an
operator convenience, not an audit trail.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from civic_alert_bot.alerter.models import BroadcastLogEntry, BroadcastResult, MessageType
from civic_alert_bot.storage.repos import ConfigRepository

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

LOG_CONFIG_KEY = "alert_bot_broadcast_logs"
LOG_DESCRIPTION = "Alert Bot Broadcast History"
DIGEST_SUBJECT = "daily-digest"
MAX_LOG_ENTRIES = 100


def message_type_for(subject_id: str) -> MessageType:
    """Classify a broadcast subject for the log."""
    return "daily_digest" if "digest" in subject_id else "alert_broadcast"


def stored_broadcasts(stored: Any) -> list[dict[str, Any]]:
    """Extract the entry list from a stored log value.

    A value of the wrong shape reads as an empty log, and entries that are
    not objects are dropped.
    """
    if not isinstance(stored, dict):
        return []
    broadcasts = stored.get("broadcasts")
    if not isinstance(broadcasts, list):
        return []
    return [item for item in broadcasts if isinstance(item, dict)]


def merge_entries(
    new_entries: Sequence[dict[str, Any]],
    current: Sequence[dict[str, Any]],
    limit: int = MAX_LOG_ENTRIES,
) -> list[dict[str, Any]]:
    """Prepend new entries to the stored list and keep the newest ``limit``."""
    return [*new_entries, *current][:limit]


class BroadcastHistory:
    """Bounded, newest-first history of broadcast attempts."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        max_entries: int = MAX_LOG_ENTRIES,
    ) -> None:
        """Initialize broadcast history.

        Args:
            session_factory: Factory for store sessions.
            max_entries: Maximum number of entries kept.
        """
        self._sessions = session_factory
        self.max_entries = max_entries

    async def log(
        self,
        subject_id: str,
        results: Sequence[BroadcastResult],
    ) -> list[BroadcastLogEntry]:
        """Record one entry per channel result.

        Store failures are logged and swallowed: a broadcast that reached
        its recipients is not failed because its log entry was lost.

        Args:
            subject_id: Alert ID, or ``daily-digest`` for digests.
            results: Per-channel broadcast results.

        Returns:
            The entries built for this broadcast.
        """
        message_type = message_type_for(subject_id)
        alert_id = None if subject_id == DIGEST_SUBJECT else subject_id
        entries = [BroadcastLogEntry.from_result(r, message_type, alert_id) for r in results]

        if not entries:
            logger.debug(f"No channel results to log for {subject_id}")
            return entries

        try:
            async with self._sessions() as session, session.begin():
                repo = ConfigRepository(session)
                stored = await repo.get(LOG_CONFIG_KEY)
                current = stored_broadcasts(stored)
                updated = merge_entries(
                    [entry.to_dict() for entry in entries], current, self.max_entries
                )
                await repo.upsert(
                    LOG_CONFIG_KEY,
                    {"broadcasts": updated},
                    config_type="system",
                    description=LOG_DESCRIPTION,
                )
        except SQLAlchemyError:
            logger.exception(f"Error logging broadcast for {subject_id}")
            return entries

        logger.info(f"Logged {len(entries)} broadcast entries for {subject_id}")
        return entries

    async def recent(self, limit: int | None = None) -> list[BroadcastLogEntry]:
        """Get logged broadcasts, newest first.

        Args:
            limit: Maximum number of entries, all stored entries if None.
        """
        async with self._sessions() as session:
            stored = await ConfigRepository(session).get(LOG_CONFIG_KEY)

        entries: list[BroadcastLogEntry] = []
        for item in stored_broadcasts(stored):
            if limit is not None and len(entries) >= limit:
                break
            try:
                entries.append(BroadcastLogEntry.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed broadcast log entry: {e!r}")
        return entries
