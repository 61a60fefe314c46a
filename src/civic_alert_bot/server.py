"""HTTP entry point for the alert bot.

A single JSON endpoint dispatches on the ``action`` field of the request
body. Every response carries permissive CORS headers so the dashboard can
call the bot from the browser.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from aiohttp import web
from prometheus_client import Counter, generate_latest
from pydantic import ValidationError

from civic_alert_bot.alerter.broadcaster import AlertBotError, Broadcaster, summarize
from civic_alert_bot.alerter.channels.whatsapp import WhatsAppChannel
from civic_alert_bot.alerter.connection import ConnectionTester
from civic_alert_bot.alerter.digest import DigestBuilder
from civic_alert_bot.alerter.formatter import MessageFormatter
from civic_alert_bot.alerter.history import BroadcastHistory
from civic_alert_bot.alerter.models import AlertBotConfig
from civic_alert_bot.storage.repos import AlertRepository, ConfigRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from civic_alert_bot.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_HTTP_PORT = 8080

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

BOT_CONFIG_KEY = "alert_bot_config"
BOT_CONFIG_DESCRIPTION = "Civic Alert Bot Configuration"
DEFAULT_ACTIVE_ALERTS_LIMIT = 10

ACTION_PATHS = ("/", "/civic-alert-bot")

REQUESTS_TOTAL = Counter(
    "civic_alert_bot_requests_total",
    "Bot endpoint requests",
    ["action", "status"],
)

ActionHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


class BadRequestError(AlertBotError):
    """Raised when a request is missing or has malformed fields."""


@web.middleware
async def cors_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Attach CORS headers to every response."""
    response = await handler(request)
    response.headers.update(CORS_HEADERS)
    return response


def _parse_limit(value: Any, default: int | None) -> int | None:
    if value is None:
        return default
    try:
        limit = int(value)
    except (TypeError, ValueError) as e:
        raise BadRequestError("limit must be an integer") from e
    if limit < 1:
        raise BadRequestError("limit must be positive")
    return limit


def _validation_message(error: ValidationError) -> str:
    details = "; ".join(
        f"{'.'.join(str(loc) for loc in item['loc']) or 'config'}: {item['msg']}"
        for item in error.errors()
    )
    return f"Invalid config: {details}"


class AlertBotServer:
    """aiohttp application serving the bot actions.

    Example:
        ```python
        server = AlertBotServer.from_settings(settings, session_factory)
        await server.start_http_server(port=8080)
        ```
    """

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        broadcaster: Broadcaster,
        connection_tester: ConnectionTester,
        history: BroadcastHistory,
    ) -> None:
        """Initialize the server.

        Args:
            session_factory: Factory for store sessions.
            broadcaster: Broadcast orchestrator.
            connection_tester: Channel credential checker.
            history: Rolling broadcast log.
        """
        self._sessions = session_factory
        self.broadcaster = broadcaster
        self.connection_tester = connection_tester
        self.history = history

        self._actions: dict[str, ActionHandler] = {
            "status": self._status,
            "test_connection": self._test_connection,
            "broadcast_alert": self._broadcast_alert,
            "send_digest": self._send_digest,
            "get_config": self._get_config,
            "save_config": self._save_config,
            "broadcast_history": self._broadcast_history,
            "active_alerts": self._active_alerts,
        }

        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> AlertBotServer:
        """Wire the server from process settings."""
        whatsapp_token = settings.whatsapp.token_value()
        telegram_token = (
            settings.telegram.bot_token.get_secret_value() if settings.telegram.bot_token else None
        )

        history = BroadcastHistory(session_factory)
        broadcaster = Broadcaster(
            session_factory,
            MessageFormatter(settings.dashboard_url),
            WhatsAppChannel(
                whatsapp_token,
                settings.whatsapp.phone_number_id,
                api_version=settings.whatsapp.api_version,
                timeout=settings.http_timeout,
            ),
            history,
            DigestBuilder(session_factory, settings.dashboard_url),
            timeout=settings.http_timeout,
        )
        tester = ConnectionTester(
            telegram_bot_token=telegram_token,
            whatsapp_access_token=whatsapp_token,
            whatsapp_phone_number_id=settings.whatsapp.phone_number_id,
            whatsapp_api_version=settings.whatsapp.api_version,
            timeout=settings.http_timeout,
        )
        return cls(
            session_factory=session_factory,
            broadcaster=broadcaster,
            connection_tester=tester,
            history=history,
        )

    @property
    def available_actions(self) -> list[str]:
        return list(self._actions)

    async def load_bot_config(self) -> AlertBotConfig:
        """Load the stored bot configuration, falling back to defaults."""
        async with self._sessions() as session:
            stored = await ConfigRepository(session).get(BOT_CONFIG_KEY)
        return AlertBotConfig.model_validate(stored or {})

    async def _resolve_config(self, raw: Any) -> AlertBotConfig:
        """Use the request config if given, else the stored one."""
        if raw is None:
            return await self.load_bot_config()
        return AlertBotConfig.model_validate(raw)

    # Actions

    async def _status(self, _body: dict[str, Any]) -> dict[str, Any]:
        return await self.connection_tester.status()

    async def _test_connection(self, body: dict[str, Any]) -> dict[str, Any]:
        platform = body.get("platform")
        credentials = body.get("config")
        if credentials is not None and not isinstance(credentials, dict):
            raise BadRequestError("config must be an object")
        result = await self.connection_tester.test(str(platform), credentials)
        return result.to_dict()

    async def _broadcast_alert(self, body: dict[str, Any]) -> dict[str, Any]:
        alert_id = body.get("alert_id")
        if not alert_id:
            raise BadRequestError("alert_id is required")
        config = await self._resolve_config(body.get("config"))
        results = await self.broadcaster.broadcast_alert(str(alert_id), config)
        return summarize(results)

    async def _send_digest(self, body: dict[str, Any]) -> dict[str, Any]:
        config = await self._resolve_config(body.get("config"))
        results = await self.broadcaster.send_digest(config)
        return summarize(results)

    async def _get_config(self, _body: dict[str, Any]) -> dict[str, Any]:
        config = await self.load_bot_config()
        return {"success": True, "config": config.model_dump()}

    async def _save_config(self, body: dict[str, Any]) -> dict[str, Any]:
        if body.get("config") is None:
            raise BadRequestError("config is required")
        config = AlertBotConfig.model_validate(body["config"])
        async with self._sessions() as session, session.begin():
            await ConfigRepository(session).upsert(
                BOT_CONFIG_KEY,
                config.model_dump(),
                config_type="system",
                description=BOT_CONFIG_DESCRIPTION,
            )
        logger.info("Alert bot configuration saved")
        return {"success": True, "config": config.model_dump()}

    async def _broadcast_history(self, body: dict[str, Any]) -> dict[str, Any]:
        limit = _parse_limit(body.get("limit"), None)
        entries = await self.history.recent(limit)
        return {"success": True, "broadcasts": [entry.to_dict() for entry in entries]}

    async def _active_alerts(self, body: dict[str, Any]) -> dict[str, Any]:
        limit = _parse_limit(body.get("limit"), DEFAULT_ACTIVE_ALERTS_LIMIT)
        async with self._sessions() as session:
            alerts = await AlertRepository(session).list_unacknowledged(
                limit or DEFAULT_ACTIVE_ALERTS_LIMIT
            )
        return {"success": True, "alerts": [alert.to_dict() for alert in alerts]}

    # HTTP handlers

    async def _handle_action(self, request: web.Request) -> web.Response:
        """Handle a bot action request."""
        action = "unknown"
        try:
            body = await request.json()
            if not isinstance(body, dict):
                raise BadRequestError("Request body must be a JSON object")

            requested = body.get("action")
            handler = self._actions.get(requested) if isinstance(requested, str) else None
            if handler is None:
                REQUESTS_TOTAL.labels(action="unknown", status="400").inc()
                return web.json_response(
                    {"error": f"Unknown action. Available: {', '.join(self.available_actions)}"},
                    status=400,
                )

            action = requested
            payload = await handler(body)
        except (BadRequestError, ValidationError) as e:
            message = _validation_message(e) if isinstance(e, ValidationError) else str(e)
            logger.warning(f"Rejected {action} request: {message}")
            REQUESTS_TOTAL.labels(action=action, status="400").inc()
            return web.json_response({"error": message, "success": False}, status=400)
        except Exception as e:
            logger.exception(f"Error in civic-alert-bot while handling {action}")
            REQUESTS_TOTAL.labels(action=action, status="500").inc()
            return web.json_response({"error": str(e), "success": False}, status=500)

        REQUESTS_TOTAL.labels(action=action, status="200").inc()
        return web.json_response(payload)

    async def _handle_options(self, _request: web.Request) -> web.Response:
        """Handle CORS preflight requests."""
        return web.Response(status=204)

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle /health endpoint."""
        return web.json_response({"status": "ok"})

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        """Handle /metrics endpoint (Prometheus format)."""
        return web.Response(
            body=generate_latest(),
            content_type="text/plain",
            charset="utf-8",
        )

    def _create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application(middlewares=[cors_middleware])
        for path in ACTION_PATHS:
            app.router.add_post(path, self._handle_action)
            app.router.add_route("OPTIONS", path, self._handle_options)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        for path in ("/health", "/metrics"):
            app.router.add_route("OPTIONS", path, self._handle_options)
        return app

    async def start_http_server(self, port: int = DEFAULT_HTTP_PORT) -> None:
        """Start the HTTP server.

        Args:
            port: Port to listen on.
        """
        if self._runner:
            logger.warning("HTTP server already running")
            return

        self._app = self._create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, "0.0.0.0", port)
        await site.start()

        logger.info("Alert bot HTTP server started on port %d", port)

    async def stop_http_server(self) -> None:
        """Stop the HTTP server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._app = None
            logger.info("Alert bot HTTP server stopped")
