"""Async helpers that insert rows directly for test setup."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any

from src.database import SessionLocal
from src.models.advertiser import Advertiser
from src.models.background_job import BackgroundJob
from src.models.creative import Creative
from src.models.creative_request import CreativeRequest
from src.models.offer import Offer
from src.models.user import User, UserSession
from src.services.security import hash_password, new_session_token, new_tracking_code
from src.timeutils import utcnow

PASSWORD = "s3cret-pass"


def run(coro):
    return asyncio.run(coro)


async def _add(obj):
    async with SessionLocal() as session:
        session.add(obj)
        await session.commit()
    return obj


async def create_user(*, email: str, role: str = "admin", name: str = "Test User", is_active: bool = True) -> User:
    return await _add(
        User(email=email, name=name, role=role, password_hash=hash_password(PASSWORD), is_active=is_active)
    )


async def create_token(user: User, *, expires_in: timedelta = timedelta(hours=1)) -> str:
    token = new_session_token()
    await _add(UserSession(user_id=user.id, token=token, expires_at=utcnow() + expires_in))
    return token


async def auth_headers_for(*, email: str, role: str) -> dict[str, str]:
    user = await create_user(email=email, role=role)
    return {"Authorization": f"Bearer {await create_token(user)}"}


async def create_advertiser(*, name: str = "Acme Ads", contact_email: str | None = "ads@acme.example.com", **kw) -> Advertiser:
    return await _add(Advertiser(name=name, contact_email=contact_email, **kw))


async def create_offer(*, advertiser: Advertiser | None = None, offer_name: str = "Summer Sale", **kw) -> Offer:
    return await _add(
        Offer(
            offer_name=offer_name,
            advertiser_id=advertiser.id if advertiser else None,
            advertiser_name=advertiser.name if advertiser else None,
            **kw,
        )
    )


async def create_request(
    *,
    advertiser: Advertiser | None = None,
    status: str = "new",
    approval_stage: str = "admin",
    advertiser_status: str | None = None,
    submitted_at=None,
    creatives: int = 0,
) -> CreativeRequest:
    now = utcnow()
    request = CreativeRequest(
        offer_name="Summer Sale",
        creative_type="email",
        creative_count=creatives,
        publisher_name="Pat Publisher",
        email="pat@publisher.example.com",
        advertiser_id=advertiser.id if advertiser else None,
        advertiser_name=advertiser.name if advertiser else None,
        tracking_code=new_tracking_code(),
        status=status,
        approval_stage=approval_stage,
        advertiser_status=advertiser_status,
        submitted_at=submitted_at or now,
        updated_at=now,
    )
    async with SessionLocal() as session:
        session.add(request)
        await session.flush()
        for i in range(creatives):
            session.add(
                Creative(
                    request_id=request.id,
                    name=f"banner-{i}.png",
                    url=f"https://files.test/banner-{i}.png",
                    type="image/png",
                    format="image",
                    status="pending",
                )
            )
        await session.commit()
    return request


async def create_creative(*, status: str = "pending", status_updated_at=None, created_at=None, **kw) -> Creative:
    now = utcnow()
    return await _add(
        Creative(
            name=kw.pop("name", "banner.png"),
            url=kw.pop("url", "https://files.test/banner.png"),
            type=kw.pop("type", "image/png"),
            format="image",
            status=status,
            status_updated_at=status_updated_at or now,
            created_at=created_at or now,
            **kw,
        )
    )


async def create_job(*, type: str = "noop", status: str = "pending", payload: dict[str, Any] | None = None, **kw) -> BackgroundJob:
    return await _add(BackgroundJob(type=type, status=status, payload=payload or {}, **kw))


async def get(model, pk):
    async with SessionLocal() as session:
        return await session.get(model, pk)


async def all_rows(model, *where):
    from sqlalchemy import select

    async with SessionLocal() as session:
        q = select(model)
        for clause in where:
            q = q.where(clause)
        return list((await session.execute(q)).scalars().all())
