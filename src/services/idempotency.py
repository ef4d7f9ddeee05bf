from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
import hashlib
import logging
from typing import Any

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.models.idempotency_key import IdempotencyKey
from src.timeutils import ensure_aware, utcnow

logger = logging.getLogger("creative_approval.idempotency")

HIT = "hit"
MISS = "miss"
CONFLICT = "conflict"


@dataclass(frozen=True)
class IdempotencyCheck:
    outcome: str
    response_body: Any = None
    response_status: int | None = None


def hash_request(method: str, url: str, body: bytes | str) -> str:
    raw = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    return hashlib.sha256(f"{method.upper()}:{url}:{raw}".encode("utf-8")).hexdigest()


async def check_idempotency_key(session: AsyncSession, *, key: str, request_hash: str) -> IdempotencyCheck:
    row = await session.get(IdempotencyKey, key)
    if row is None:
        return IdempotencyCheck(outcome=MISS)

    if ensure_aware(row.expires_at) <= utcnow():
        return IdempotencyCheck(outcome=MISS)

    if row.request_hash != request_hash:
        logger.warning("idempotency_conflict key=%s", key)
        return IdempotencyCheck(outcome=CONFLICT)

    return IdempotencyCheck(outcome=HIT, response_body=row.response_body, response_status=row.response_status)


async def store_idempotency_key(
    session: AsyncSession,
    *,
    key: str,
    request_hash: str,
    response_body: Any,
    response_status: int,
    ttl_seconds: int | None = None,
) -> None:
    """Upsert the stored response for a key. Does not commit."""

    now = utcnow()
    expires_at = now + timedelta(seconds=ttl_seconds or settings.idempotency_ttl_seconds)

    row = await session.get(IdempotencyKey, key)
    if row is None:
        session.add(
            IdempotencyKey(
                id=key,
                request_hash=request_hash,
                response_body=response_body,
                response_status=response_status,
                created_at=now,
                expires_at=expires_at,
            )
        )
    else:
        row.request_hash = request_hash
        row.response_body = response_body
        row.response_status = response_status
        row.created_at = now
        row.expires_at = expires_at
    await session.flush()


async def cleanup_expired_keys(session: AsyncSession) -> int:
    r = await session.execute(delete(IdempotencyKey).where(IdempotencyKey.expires_at < utcnow()))
    await session.commit()
    deleted = r.rowcount or 0
    logger.info("idempotency_cleanup deleted=%s", deleted)
    return deleted
