"""
Outbound webhook transport - one signed POST per call, never retried.

Header precedence: the webhook's custom headers are applied first; any custom
header named Content-Type, User-Agent or the signature header is dropped so
receivers can always trust those three.
"""
import logging
from typing import Any, Optional

import httpx

from monitorflow.config import get_settings
from monitorflow.schemas.webhook_payloads import DeliveryResult
from monitorflow.utils.signatures import serialize_payload, sign

logger = logging.getLogger(__name__)


def build_headers(signature: str, extra_headers: Optional[dict[str, str]] = None) -> dict[str, str]:
    """Merge custom headers under the protected system headers."""
    settings = get_settings()
    system_headers = {
        "Content-Type": "application/json",
        settings.webhook_signature_header: signature,
        "User-Agent": settings.webhook_user_agent,
    }
    protected = {name.lower() for name in system_headers}

    headers: dict[str, str] = {}
    for name, value in (extra_headers or {}).items():
        if name.lower() in protected:
            logger.warning("Ignoring custom webhook header that overrides %s", name)
            continue
        headers[name] = str(value)

    headers.update(system_headers)
    return headers


async def send_webhook(
    url: str,
    payload: Any,
    secret: str,
    extra_headers: Optional[dict[str, str]] = None,
) -> DeliveryResult:
    """
    POST a signed JSON payload to a webhook URL.
    Transport failures are returned as success=False, never raised.
    """
    settings = get_settings()
    body = serialize_payload(payload)
    signature = sign(body, secret)
    headers = build_headers(signature, extra_headers)

    try:
        async with httpx.AsyncClient(
            timeout=settings.webhook_timeout_seconds,
            follow_redirects=False,
        ) as client:
            response = await client.post(url, content=body.encode("utf-8"), headers=headers)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning("Webhook transport error for %s: %s", url, str(e))
        return DeliveryResult(success=False, error=str(e) or e.__class__.__name__)
    except (UnicodeError, ValueError) as e:
        # Raised while httpx encodes headers, e.g. non-ASCII custom header values
        logger.warning("Webhook request for %s could not be built: %s", url, str(e))
        return DeliveryResult(success=False, error=f"Invalid request: {e}")

    return DeliveryResult(
        success=200 <= response.status_code < 300,
        status_code=response.status_code,
        response_body=response.text,
    )
