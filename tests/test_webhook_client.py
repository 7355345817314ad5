"""
Tests for monitorflow/services/webhook_client.py - the outbound delivery transport.
"""
import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from monitorflow.services.webhook_client import build_headers, send_webhook
from monitorflow.utils.signatures import serialize_payload, sign, verify


def _mock_client(status_code=200, text="ok", side_effect=None):
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.text = text

    mock_client = AsyncMock()
    if side_effect is not None:
        mock_client.post = AsyncMock(side_effect=side_effect)
    else:
        mock_client.post = AsyncMock(return_value=mock_response)
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


PAYLOAD = {"id": "delivery-1", "event": {"name": "sale", "fields": {"amount": 42}}}


# ---------------------------------------------------------------------------
# build_headers - header precedence
# ---------------------------------------------------------------------------


class TestBuildHeaders:
    def test_system_headers_present(self):
        headers = build_headers("abc123")
        assert headers["Content-Type"] == "application/json"
        assert headers["X-MonitorFlow-Signature"] == "abc123"
        assert headers["User-Agent"] == "MonitorFlow-Webhook/1.0"

    def test_custom_headers_merged(self):
        headers = build_headers("abc123", {"X-Api-Key": "k-1"})
        assert headers["X-Api-Key"] == "k-1"

    def test_custom_header_cannot_override_signature(self):
        headers = build_headers("real", {"x-monitorflow-signature": "forged"})
        assert headers["X-MonitorFlow-Signature"] == "real"
        assert "x-monitorflow-signature" not in headers

    def test_custom_header_cannot_override_content_type_or_agent(self, caplog):
        headers = build_headers("sig", {"content-type": "text/plain", "USER-AGENT": "curl"})
        assert headers["Content-Type"] == "application/json"
        assert headers["User-Agent"] == "MonitorFlow-Webhook/1.0"
        assert "content-type" not in headers
        assert "USER-AGENT" not in headers
        assert "Ignoring custom webhook header" in caplog.text


# ---------------------------------------------------------------------------
# send_webhook
# ---------------------------------------------------------------------------


class TestSendWebhook:
    @pytest.mark.asyncio
    async def test_posts_signed_canonical_body(self):
        mock_client = _mock_client()
        with patch("monitorflow.services.webhook_client.httpx.AsyncClient", return_value=mock_client):
            result = await send_webhook("https://hooks.example.com/a", PAYLOAD, "s3cret")

        assert result.success is True
        assert result.status_code == 200
        assert result.response_body == "ok"

        call = mock_client.post.call_args
        assert call.args[0] == "https://hooks.example.com/a"
        body = call.kwargs["content"]
        assert body == serialize_payload(PAYLOAD).encode("utf-8")
        signature = call.kwargs["headers"]["X-MonitorFlow-Signature"]
        assert signature == sign(body, "s3cret")
        assert verify(body, signature, "s3cret") is True

    @pytest.mark.asyncio
    async def test_client_configured_with_timeout_and_no_redirects(self):
        mock_client = _mock_client()
        with patch(
            "monitorflow.services.webhook_client.httpx.AsyncClient", return_value=mock_client,
        ) as mock_cls:
            await send_webhook("https://hooks.example.com/a", PAYLOAD, "s")

        kwargs = mock_cls.call_args.kwargs
        assert kwargs["timeout"] == 10.0
        assert kwargs["follow_redirects"] is False

    @pytest.mark.asyncio
    async def test_non_2xx_is_failure_with_status(self):
        mock_client = _mock_client(status_code=500, text="server exploded")
        with patch("monitorflow.services.webhook_client.httpx.AsyncClient", return_value=mock_client):
            result = await send_webhook("https://hooks.example.com/a", PAYLOAD, "s")

        assert result.success is False
        assert result.status_code == 500
        assert result.response_body == "server exploded"
        assert result.error is None

    @pytest.mark.asyncio
    async def test_redirect_is_not_success(self):
        mock_client = _mock_client(status_code=302, text="")
        with patch("monitorflow.services.webhook_client.httpx.AsyncClient", return_value=mock_client):
            result = await send_webhook("https://hooks.example.com/a", PAYLOAD, "s")

        assert result.success is False
        assert result.status_code == 302

    @pytest.mark.asyncio
    async def test_timeout_returns_failure_not_raise(self):
        mock_client = _mock_client(side_effect=httpx.ReadTimeout("timed out"))
        with patch("monitorflow.services.webhook_client.httpx.AsyncClient", return_value=mock_client):
            result = await send_webhook("https://hooks.example.com/a", PAYLOAD, "s")

        assert result.success is False
        assert result.status_code is None
        assert "timed out" in result.error

    @pytest.mark.asyncio
    async def test_connect_error_returns_failure(self):
        mock_client = _mock_client(side_effect=httpx.ConnectError("dns failure"))
        with patch("monitorflow.services.webhook_client.httpx.AsyncClient", return_value=mock_client):
            result = await send_webhook("https://nowhere.invalid/a", PAYLOAD, "s")

        assert result.success is False
        assert result.error == "dns failure"

    @pytest.mark.asyncio
    async def test_makes_exactly_one_attempt(self):
        mock_client = _mock_client(status_code=503, text="")
        with patch("monitorflow.services.webhook_client.httpx.AsyncClient", return_value=mock_client):
            await send_webhook("https://hooks.example.com/a", PAYLOAD, "s")

        assert mock_client.post.await_count == 1

    @pytest.mark.asyncio
    async def test_custom_headers_sent(self):
        mock_client = _mock_client()
        with patch("monitorflow.services.webhook_client.httpx.AsyncClient", return_value=mock_client):
            await send_webhook(
                "https://hooks.example.com/a", PAYLOAD, "s", {"Authorization": "Token abc"},
            )

        headers = mock_client.post.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Token abc"

    @pytest.mark.asyncio
    async def test_unencodable_header_returns_failure(self):
        mock_client = _mock_client(
            side_effect=UnicodeEncodeError("ascii", "caf\xe9", 3, 4, "ordinal not in range(128)"),
        )
        with patch("monitorflow.services.webhook_client.httpx.AsyncClient", return_value=mock_client):
            result = await send_webhook(
                "https://hooks.example.com/a", PAYLOAD, "s", {"X-Note": "caf\xe9 \u2603"},
            )

        assert result.success is False
        assert result.status_code is None
        assert result.error.startswith("Invalid request")

    @pytest.mark.asyncio
    async def test_non_ascii_header_with_real_client_does_not_raise(self):
        result = await send_webhook(
            "https://127.0.0.1:9/receive", PAYLOAD, "s", {"X-Note": "caf\xe9 \u2603"},
        )
        assert result.success is False
        assert result.error
