from __future__ import annotations

from datetime import timedelta
import logging

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.models.user import User, UserSession
from src.services.errors import AuthenticationFailed
from src.services.security import new_session_token, verify_password
from src.timeutils import ensure_aware, utcnow

logger = logging.getLogger("creative_approval.auth")


async def sign_in(
    session: AsyncSession,
    *,
    email: str,
    password: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> tuple[UserSession, User]:
    r = await session.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    user = r.scalar_one_or_none()
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        logger.info("sign_in_failed email=%s", email)
        raise AuthenticationFailed()

    now = utcnow()
    user_session = UserSession(
        user_id=user.id,
        token=new_session_token(),
        expires_at=now + timedelta(hours=settings.session_ttl_hours),
        ip_address=ip_address,
        user_agent=user_agent,
        created_at=now,
    )
    user.last_login_at = now
    session.add(user_session)
    await session.commit()

    logger.info("sign_in user_id=%s role=%s", user.id, user.role)
    return user_session, user


async def sign_out(session: AsyncSession, *, token: str) -> None:
    await session.execute(delete(UserSession).where(UserSession.token == token))
    await session.commit()


async def resolve_session_user(session: AsyncSession, token: str) -> User | None:
    """Return the active user owning an unexpired session token."""

    r = await session.execute(
        select(UserSession, User).join(User, User.id == UserSession.user_id).where(UserSession.token == token)
    )
    row = r.first()
    if row is None:
        return None
    user_session, user = row
    if ensure_aware(user_session.expires_at) <= utcnow() or not user.is_active:
        return None
    return user
