"""
Tests for monitorflow/services/discord.py - DM notification channel.
"""
import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from monitorflow.services.discord import DiscordClient
from monitorflow.utils.errors import TransportError


def _response(json_data=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data or {}
    if status_code >= 400:
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "error", request=MagicMock(), response=response,
        )
    return response


def _mock_client(*responses, side_effect=None):
    mock_client = AsyncMock()
    mock_client.post = AsyncMock(side_effect=side_effect or list(responses))
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


EMBED = {"title": "\U0001f4b0 Sale", "description": "A new sale event has occurred!", "color": 1}


class TestDiscordClient:
    @pytest.mark.asyncio
    async def test_notify_creates_dm_then_sends_embed(self):
        mock_client = _mock_client(_response({"id": "chan-9"}), _response({"id": "msg-1"}))

        with patch("monitorflow.services.discord.httpx.AsyncClient", return_value=mock_client):
            result = await DiscordClient(token="bot-token").notify("user-42", EMBED)

        assert result == {"id": "msg-1"}
        first, second = mock_client.post.call_args_list
        assert first.args[0] == "https://discord.com/api/v10/users/@me/channels"
        assert first.kwargs["json"] == {"recipient_id": "user-42"}
        assert first.kwargs["headers"]["Authorization"] == "Bot bot-token"
        assert second.args[0] == "https://discord.com/api/v10/channels/chan-9/messages"
        assert second.kwargs["json"] == {"embeds": [EMBED]}

    def test_token_defaults_to_settings(self):
        assert DiscordClient().token == "test-bot-token"

    @pytest.mark.asyncio
    async def test_http_error_status_raises_transport_error(self):
        mock_client = _mock_client(_response(status_code=403))

        with patch("monitorflow.services.discord.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(TransportError) as exc_info:
                await DiscordClient(token="t").notify("user-42", EMBED)

        assert "403" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_network_error_raises_transport_error(self):
        mock_client = _mock_client(side_effect=httpx.ConnectTimeout("timed out"))

        with patch("monitorflow.services.discord.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(TransportError) as exc_info:
                await DiscordClient(token="t").create_dm("user-42")

        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_channel_id_raises(self):
        mock_client = _mock_client(_response({}))

        with patch("monitorflow.services.discord.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(TransportError):
                await DiscordClient(token="t").notify("user-42", EMBED)
