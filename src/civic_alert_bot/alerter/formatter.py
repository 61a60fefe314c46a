"""Alert message formatter.

This module turns a civic intelligence alert into broadcast text by
substituting ``{name}`` placeholders in a caller-supplied template.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from civic_alert_bot.alerter.models import MessageTemplates
    from civic_alert_bot.storage.repos import AlertDTO

TOKEN_PATTERN = re.compile(r"\{[a-z_]+\}")

TIMESTAMP_FORMAT = "%d/%m/%Y, %H:%M:%S"

# Values for tokens the alert row cannot provide yet
STATIC_VALUES = {
    "{danger_score}": "75",
    "{from_emotion}": "Calm",
    "{to_emotion}": "Agitated",
    "{spread_rate}": "250%",
    "{platforms}": "WhatsApp, Facebook",
    "{risk_level}": "75",
    "{timeframe}": "Next 6 hours",
    "{triggers}": "Economic concerns, Political tensions",
}

DEFAULT_REGION = "Multiple Regions"
DEFAULT_SEVERITY = "UNKNOWN"
DEFAULT_EMOTION = "Tension"
DEFAULT_TOPIC = "Civic Alert"
DEFAULT_TIMESTAMP = "Unknown time"


def format_timestamp(value: datetime | None) -> str:
    """Render an alert timestamp for humans."""
    if value is None:
        return DEFAULT_TIMESTAMP
    return value.strftime(TIMESTAMP_FORMAT)


def select_template(alert_type: str, templates: MessageTemplates) -> str:
    """Pick the message template for an alert category.

    Matching is by substring, checked in order: mood, disinformation,
    unrest/prediction. Anything else uses the danger template.
    """
    category = (alert_type or "").lower()
    if "mood" in category:
        return templates.mood_shift
    if "disinformation" in category:
        return templates.disinformation
    if "unrest" in category or "prediction" in category:
        return templates.unrest_prediction
    return templates.danger_alert


class MessageFormatter:
    """Formats alerts into broadcast text.

    Substitution is a single pass over the template: values inserted for
    one token are never scanned for further tokens, and tokens outside
    the substitution table are left untouched.
    """

    def __init__(self, dashboard_url: str) -> None:
        """Initialize the formatter.

        Args:
            dashboard_url: Link substituted for ``{dashboard_url}``.
        """
        self.dashboard_url = dashboard_url

    def variables(self, alert: AlertDTO) -> dict[str, str]:
        """Build the substitution table for an alert."""
        values = {
            "{region}": ", ".join(alert.affected_regions) or DEFAULT_REGION,
            "{severity}": alert.severity.upper() if alert.severity else DEFAULT_SEVERITY,
            "{emotion}": alert.emotional_tone or DEFAULT_EMOTION,
            "{topic}": alert.title or DEFAULT_TOPIC,
            "{timestamp}": format_timestamp(alert.created_at),
            "{dashboard_url}": self.dashboard_url,
        }
        values.update(STATIC_VALUES)
        return values

    def format(self, template: str, alert: AlertDTO) -> str:
        """Format a template with values taken from an alert.

        Args:
            template: Template text containing ``{name}`` tokens.
            alert: Alert providing the values.

        Returns:
            The message text.
        """
        values = self.variables(alert)
        return TOKEN_PATTERN.sub(lambda m: values.get(m.group(0), m.group(0)), template)
