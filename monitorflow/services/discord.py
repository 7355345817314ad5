"""
Discord notification channel - direct messages with an embed per event.
"""
import logging
from typing import Optional

import httpx

from monitorflow.config import get_settings
from monitorflow.utils.errors import TransportError

logger = logging.getLogger(__name__)


class DiscordClient:
    """Minimal Discord REST client for bot DMs."""

    def __init__(self, token: Optional[str] = None):
        settings = get_settings()
        self.token = token if token is not None else settings.discord_bot_token
        self.api_base = settings.discord_api_base.rstrip("/")
        self.timeout = settings.discord_timeout_seconds

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bot {self.token}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, payload: dict) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.api_base}{path}", headers=self._headers(), json=payload,
                )
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Discord API returned {e.response.status_code} for {path}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Discord API request failed: {str(e)}") from e

    async def create_dm(self, recipient_id: str) -> dict:
        """Open (or reuse) the DM channel with a user."""
        return await self._post("/users/@me/channels", {"recipient_id": recipient_id})

    async def send_embed(self, channel_id: str, embed: dict) -> dict:
        return await self._post(f"/channels/{channel_id}/messages", {"embeds": [embed]})

    async def notify(self, recipient_id: str, embed: dict) -> dict:
        """Send an embed to a user's DMs. Raises TransportError on any failure."""
        channel = await self.create_dm(recipient_id)
        channel_id = channel.get("id")
        if not channel_id:
            raise TransportError("Discord did not return a DM channel id")
        message = await self.send_embed(channel_id, embed)
        logger.debug("Discord DM sent to channel %s", channel_id)
        return message
