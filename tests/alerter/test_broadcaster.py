"""Tests for the broadcast orchestrator."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

import pytest

from civic_alert_bot.alerter.broadcaster import (
    ACKNOWLEDGED_BY,
    AlertNotFoundError,
    Broadcaster,
    summarize,
)
from civic_alert_bot.alerter.digest import DigestBuilder
from civic_alert_bot.alerter.formatter import MessageFormatter
from civic_alert_bot.alerter.history import LOG_CONFIG_KEY, BroadcastHistory
from civic_alert_bot.alerter.models import AlertBotConfig, BroadcastResult
from civic_alert_bot.storage.repos import AlertRepository, ConfigRepository

if TYPE_CHECKING:
    from conftest import StoreSeeder
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

DASHBOARD_URL = "https://camerpulse.example/intel"


class FakeChannel:
    """Records sends and fails for chosen recipients."""

    def __init__(
        self,
        name: str,
        failing: tuple[str, ...] = (),
        raising: tuple[str, ...] = (),
    ) -> None:
        self.name = name
        self.failing = failing
        self.raising = raising
        self.sent: list[tuple[str, str]] = []

    async def send(self, recipient: str, text: str) -> bool:
        self.sent.append((recipient, text))
        if recipient in self.raising:
            raise RuntimeError("socket closed")
        return recipient not in self.failing


class Harness:
    """Broadcaster wired to fake channels and the test store."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        telegram: FakeChannel | None = None,
        whatsapp: FakeChannel | None = None,
        voice: Any = None,
    ) -> None:
        self.telegram = telegram or FakeChannel("telegram")
        self.whatsapp = whatsapp or FakeChannel("whatsapp")
        self.tokens: list[str] = []
        self.history = BroadcastHistory(session_factory)

        def telegram_factory(token: str) -> FakeChannel:
            self.tokens.append(token)
            return self.telegram

        self.broadcaster = Broadcaster(
            session_factory,
            MessageFormatter(DASHBOARD_URL),
            self.whatsapp,
            self.history,
            DigestBuilder(session_factory, DASHBOARD_URL),
            telegram_factory=telegram_factory,
            voice=voice,
        )


def _config(**overrides: Any) -> AlertBotConfig:
    values: dict[str, Any] = {
        "enabled": True,
        "telegram_enabled": True,
        "telegram_bot_token": "123:bot",
        "telegram_admin_chat_id": "-100111",
        "telegram_public_chat_id": "-100222",
    }
    values.update(overrides)
    return AlertBotConfig.model_validate(values)


class TestBroadcastAlert:
    """Tests for alert broadcasts."""

    @pytest.mark.asyncio
    async def test_partial_failure(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        seed: StoreSeeder,
    ) -> None:
        """Test one failed Telegram chat is reported and the rest still sent."""
        alert_id = await seed.alert()
        harness = Harness(session_factory, telegram=FakeChannel("telegram", failing=("-100222",)))

        results = await harness.broadcaster.broadcast_alert(alert_id, _config())

        assert results == [
            BroadcastResult(
                platform="telegram",
                recipient_count=2,
                success_count=1,
                failure_count=1,
                errors=("Failed to send to chat -100222",),
            )
        ]
        assert harness.tokens == ["123:bot"]
        assert [recipient for recipient, _ in harness.telegram.sent] == ["-100111", "-100222"]
        assert summarize(results) == {
            "success": True,
            "recipient_count": 2,
            "success_count": 1,
            "results": [
                {
                    "platform": "telegram",
                    "recipient_count": 2,
                    "success_count": 1,
                    "failure_count": 1,
                    "errors": ["Failed to send to chat -100222"],
                }
            ],
        }

    @pytest.mark.asyncio
    async def test_danger_message_text(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        seed: StoreSeeder,
    ) -> None:
        """Test the danger template is filled from the alert."""
        alert_id = await seed.alert()
        harness = Harness(session_factory)

        await harness.broadcaster.broadcast_alert(alert_id, _config())

        _, text = harness.telegram.sent[0]
        assert text == (
            "🚨 Civic Alert – Littoral, Centre\n"
            "📊 Civic Danger: 75/100 (HIGH)\n"
            "😡 Emotion: Anger\n"
            "📈 Topic: Fuel price protests\n"
            "🕒 Time: 19/10/2026, 08:30:00\n"
            f"🔗 View Dashboard: {DASHBOARD_URL}"
        )

    @pytest.mark.asyncio
    async def test_unrest_template(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        seed: StoreSeeder,
    ) -> None:
        """Test unrest predictions use the unrest template."""
        alert_id = await seed.alert(alert_type="unrest_prediction_surge")
        harness = Harness(session_factory)

        await harness.broadcaster.broadcast_alert(alert_id, _config())

        _, text = harness.telegram.sent[0]
        assert text.startswith("🔮 Unrest Prediction – Littoral, Centre")
        assert "📊 Risk Level: 75/100" in text

    @pytest.mark.asyncio
    async def test_custom_template(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        seed: StoreSeeder,
    ) -> None:
        """Test caller templates replace the defaults."""
        alert_id = await seed.alert(alert_type="mood_shift")
        config = _config(message_templates={"mood_shift": "Mood {region}: {severity} {unknown}"})
        harness = Harness(session_factory)

        await harness.broadcaster.broadcast_alert(alert_id, config)

        assert harness.telegram.sent[0][1] == "Mood Littoral, Centre: HIGH {unknown}"

    @pytest.mark.asyncio
    async def test_acknowledges_after_partial_failure(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        seed: StoreSeeder,
    ) -> None:
        """Test the alert is acknowledged even when a send failed."""
        alert_id = await seed.alert()
        harness = Harness(session_factory, telegram=FakeChannel("telegram", failing=("-100111",)))

        await harness.broadcaster.broadcast_alert(alert_id, _config())

        async with session_factory() as session:
            alert = await AlertRepository(session).get_by_id(alert_id)
        assert alert is not None
        assert alert.acknowledged is True
        assert alert.acknowledged_by == ACKNOWLEDGED_BY
        assert alert.acknowledged_at is not None

    @pytest.mark.asyncio
    async def test_acknowledges_with_unexpected_stored_log(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        seed: StoreSeeder,
    ) -> None:
        """Test a stored log of the wrong shape does not block acknowledgement."""
        alert_id = await seed.alert()
        async with session_factory() as session, session.begin():
            repo = ConfigRepository(session)
            await repo.upsert(LOG_CONFIG_KEY, ["legacy"])  # type: ignore[arg-type]
        harness = Harness(session_factory)

        results = await harness.broadcaster.broadcast_alert(alert_id, _config())

        assert results[0].success_count == 2
        async with session_factory() as session:
            alert = await AlertRepository(session).get_by_id(alert_id)
        assert alert is not None
        assert alert.acknowledged is True

    @pytest.mark.asyncio
    async def test_logs_one_entry_per_channel(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        seed: StoreSeeder,
    ) -> None:
        """Test every channel result lands in the broadcast log."""
        alert_id = await seed.alert()
        config = _config(whatsapp_enabled=True, whatsapp_admin_groups=["grp-1", "grp-2"])
        harness = Harness(session_factory)

        await harness.broadcaster.broadcast_alert(alert_id, config)

        entries = await harness.history.recent()
        assert {entry.platform for entry in entries} == {"telegram", "whatsapp"}
        assert all(entry.alert_id == alert_id for entry in entries)
        assert all(entry.message_type == "alert_broadcast" for entry in entries)

    @pytest.mark.asyncio
    async def test_missing_alert(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Test a missing alert raises before any send or log."""
        harness = Harness(session_factory)
        missing = str(uuid.uuid4())

        with pytest.raises(AlertNotFoundError, match="Alert not found") as exc_info:
            await harness.broadcaster.broadcast_alert(missing, _config())

        assert exc_info.value.alert_id == missing
        assert harness.telegram.sent == []
        assert await harness.history.recent() == []

    @pytest.mark.asyncio
    async def test_channel_exception_counts_as_failure(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        seed: StoreSeeder,
    ) -> None:
        """Test an exception from one recipient does not stop the batch."""
        alert_id = await seed.alert()
        whatsapp = FakeChannel("whatsapp", raising=("grp-1",))
        config = _config(
            telegram_enabled=False,
            whatsapp_enabled=True,
            whatsapp_admin_groups=["grp-1", "grp-2"],
        )
        harness = Harness(session_factory, whatsapp=whatsapp)

        results = await harness.broadcaster.broadcast_alert(alert_id, config)

        assert results == [
            BroadcastResult(
                platform="whatsapp",
                recipient_count=2,
                success_count=1,
                failure_count=1,
                errors=("Failed to send to group grp-1",),
            )
        ]
        assert [recipient for recipient, _ in whatsapp.sent] == ["grp-1", "grp-2"]

    @pytest.mark.asyncio
    async def test_voice_does_not_block_text(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        seed: StoreSeeder,
    ) -> None:
        """Test voice failures leave the text sends untouched."""
        alert_id = await seed.alert()
        voice = AsyncMock()
        voice.synthesize.side_effect = RuntimeError("no voice backend")
        config = _config(
            telegram_enabled=False,
            whatsapp_enabled=True,
            whatsapp_admin_groups=["grp-1", "grp-2"],
            voice_alerts_enabled=True,
        )
        harness = Harness(session_factory, voice=voice)

        results = await harness.broadcaster.broadcast_alert(alert_id, config)

        assert results[0].success_count == 2
        assert voice.synthesize.await_count == 2

    @pytest.mark.asyncio
    async def test_voice_skipped_when_disabled(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        seed: StoreSeeder,
    ) -> None:
        """Test no voice rendition is attempted by default."""
        alert_id = await seed.alert()
        voice = AsyncMock()
        config = _config(whatsapp_enabled=True, whatsapp_admin_groups=["grp-1"])
        harness = Harness(session_factory, voice=voice)

        await harness.broadcaster.broadcast_alert(alert_id, config)

        voice.synthesize.assert_not_called()


class TestFanOut:
    """Tests for channel selection."""

    @pytest.mark.asyncio
    async def test_telegram_without_recipients(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Test an enabled Telegram channel with no chats yields an empty result."""
        harness = Harness(session_factory)
        config = _config(telegram_admin_chat_id="", telegram_public_chat_id="")

        results = await harness.broadcaster.fan_out("hello", config)

        assert results == [BroadcastResult("telegram", 0, 0, 0)]

    @pytest.mark.asyncio
    async def test_telegram_without_token(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Test Telegram is skipped without a bot token."""
        harness = Harness(session_factory)

        results = await harness.broadcaster.fan_out("hello", _config(telegram_bot_token=""))

        assert results == []
        assert harness.tokens == []

    @pytest.mark.asyncio
    async def test_blank_whatsapp_groups_not_counted(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Test blank group IDs are neither sent to nor counted."""
        harness = Harness(session_factory)
        config = _config(
            telegram_enabled=False,
            whatsapp_enabled=True,
            whatsapp_admin_groups=["grp-1", "", "grp-2"],
        )

        results = await harness.broadcaster.fan_out("hello", config)

        assert results == [BroadcastResult("whatsapp", 2, 2, 0)]
        assert [recipient for recipient, _ in harness.whatsapp.sent] == ["grp-1", "grp-2"]

    @pytest.mark.asyncio
    async def test_whatsapp_without_groups(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Test WhatsApp is skipped without groups."""
        harness = Harness(session_factory)
        config = _config(telegram_enabled=False, whatsapp_enabled=True)

        assert await harness.broadcaster.fan_out("hello", config) == []

    @pytest.mark.asyncio
    async def test_order_telegram_then_whatsapp(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Test results come back Telegram first."""
        harness = Harness(session_factory)
        config = _config(whatsapp_enabled=True, whatsapp_admin_groups=["grp-1"])

        results = await harness.broadcaster.fan_out("hello", config)

        assert [r.platform for r in results] == ["telegram", "whatsapp"]
        for result in results:
            assert result.success_count + result.failure_count == result.recipient_count


class TestSendDigest:
    """Tests for the daily digest broadcast."""

    @pytest.mark.asyncio
    async def test_send_digest(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        seed: StoreSeeder,
    ) -> None:
        """Test the digest is sent and logged without an alert ID."""
        now = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
        await seed.sentiments(["positive", "negative", "neutral"], now)
        harness = Harness(session_factory)

        results = await harness.broadcaster.send_digest(_config(), now=now)

        assert results[0].success_count == 2
        text = harness.telegram.sent[0][1]
        assert text.startswith("📊 CamerPulse Daily Civic Digest - 19/10/2026")
        assert "📈 Total Conversations Monitored: 3" in text

        entries = await harness.history.recent()
        assert len(entries) == 1
        assert entries[0].message_type == "daily_digest"
        assert entries[0].alert_id is None
        assert "alert_id" not in entries[0].to_dict()
