from __future__ import annotations

import logging

import httpx

from src.config import settings

logger = logging.getLogger("creative_approval.alerts")

_ALERT_TIMEOUT_SECONDS = 10.0


async def send_alert(message: str, *, client: httpx.AsyncClient | None = None) -> bool:
    """Post a plain-text alert to the configured webhook.

    Returns False without raising when the webhook is not configured or the
    call fails; alerting must never break the caller.
    """

    url = settings.alert_webhook_url
    if not url:
        logger.debug("alert_skipped reason=no_webhook message=%s", message)
        return False

    try:
        if client is not None:
            response = await client.post(url, json={"text": message})
        else:
            async with httpx.AsyncClient(timeout=_ALERT_TIMEOUT_SECONDS) as own_client:
                response = await own_client.post(url, json={"text": message})
    except httpx.HTTPError:
        logger.exception("alert_failed url=%s", url)
        return False

    if response.is_error:
        logger.error("alert_rejected status=%s body=%s", response.status_code, response.text[:200])
        return False
    return True
