from __future__ import annotations

import logging
import re

from src.services.alerts import send_alert

logger = logging.getLogger("creative_approval.notifications")

REQUEST_APPROVED_BY_ADMIN = "request.approved_by_admin"
REQUEST_REJECTED_BY_ADMIN = "request.rejected_by_admin"
RESPONSE_APPROVED_BY_ADVERTISER = "response.approved_by_advertiser"
RESPONSE_REJECTED_BY_ADVERTISER = "response.rejected_by_advertiser"
RESPONSE_SENT_BACK_BY_ADVERTISER = "response.sent_back_by_advertiser"

_HEADLINES = {
    REQUEST_APPROVED_BY_ADMIN: "Request approved by Admin",
    REQUEST_REJECTED_BY_ADMIN: "Request rejected by Admin",
    RESPONSE_APPROVED_BY_ADVERTISER: "Response approved by Advertiser",
    RESPONSE_REJECTED_BY_ADVERTISER: "Response rejected by Advertiser",
    RESPONSE_SENT_BACK_BY_ADVERTISER: "Response sent back by Advertiser",
}

_TELEGRAM_ID_RE = re.compile(r"^-?\d+$")


def format_workflow_message(event: str, *, request_id: str, offer_name: str) -> str | None:
    headline = _HEADLINES.get(event)
    if headline is None:
        return None
    return f"*{headline}*\nRequest: {request_id}\nOffer: {offer_name}"


async def notify_workflow_event(event: str, *, request_id: str, offer_name: str) -> None:
    """Best-effort workflow notification; never raises."""

    message = format_workflow_message(event, request_id=request_id, offer_name=offer_name)
    if message is None:
        logger.warning("workflow_notification_unknown_event event=%s", event)
        return

    try:
        await send_alert(message)
    except Exception:
        logger.exception("workflow_notification_failed event=%s request_id=%s", event, request_id)


def is_valid_telegram_id(value: str | None) -> bool:
    return bool(value) and bool(_TELEGRAM_ID_RE.match(value))
