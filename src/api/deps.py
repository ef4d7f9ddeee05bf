from __future__ import annotations

from dataclasses import dataclass
import secrets
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.database import get_db, get_sessionmaker
from src.models.advertiser import Advertiser
from src.models.user import User
from src.services.auth import resolve_session_user
from src.services.errors import PermissionDenied
from src.services.job_queue import JobQueueService

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db),
) -> User:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    user = await resolve_session_user(session, credentials.credentials)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired session")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise PermissionDenied("Admin access required")
    return user


@dataclass(frozen=True)
class AdvertiserPrincipal:
    user: User
    advertiser: Advertiser


async def require_advertiser(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> AdvertiserPrincipal:
    if user.role != "advertiser":
        raise PermissionDenied("Advertiser access required")

    r = await session.execute(
        select(Advertiser).where(func.lower(Advertiser.contact_email) == user.email.lower()).limit(1)
    )
    advertiser = r.scalar_one_or_none()
    if advertiser is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Advertiser profile not found")
    return AdvertiserPrincipal(user=user, advertiser=advertiser)


async def require_cron_or_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db),
) -> User | None:
    """Accept the scheduler's shared secret, or fall back to an admin session.

    Returns None for the scheduler, the admin user otherwise.
    """

    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    token = credentials.credentials
    if settings.cron_secret and secrets.compare_digest(token.encode(), settings.cron_secret.encode()):
        return None

    user = await resolve_session_user(session, token)
    if user is None or user.role != "admin":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


def get_job_queue(session_maker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker)) -> JobQueueService:
    return JobQueueService(session_maker)


def parse_uuid(value: str, *, not_found: str) -> UUID:
    """Parse a path id; malformed ids read as missing rows."""

    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=not_found)
