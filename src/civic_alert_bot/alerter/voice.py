"""Voice rendition of broadcast messages."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class VoiceSynthesizer:
    """Produces voice notes for WhatsApp broadcasts.

    No synthesis backend is wired in: ``synthesize`` always returns None,
    so callers fall back to the text message alone.
    """

    name = "voice"

    async def synthesize(self, text: str) -> str | None:
        """Return a reference to a synthesized voice note, or None."""
        logger.debug(f"Voice synthesis requested for {len(text)} characters, none available")
        return None
