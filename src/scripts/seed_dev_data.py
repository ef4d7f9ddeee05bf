from __future__ import annotations

import asyncio
from dataclasses import dataclass
import os
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.config import settings
from src.models.advertiser import Advertiser
from src.models.offer import Offer
from src.models.user import User
from src.services.security import hash_password


@dataclass(frozen=True)
class SeedUserSpec:
    email: str
    role: str
    name: str


@dataclass(frozen=True)
class SeedResult:
    admin_id: uuid.UUID
    advertiser_user_id: uuid.UUID
    advertiser_id: uuid.UUID
    offer_id: uuid.UUID


DEMO_PASSWORD = os.environ.get("SEED_DEMO_PASSWORD", "demo-password")

DEMO_USERS: tuple[SeedUserSpec, ...] = (
    SeedUserSpec(email="admin@demo.example.com", role="admin", name="Demo Admin"),
    SeedUserSpec(email="advertiser@demo.example.com", role="advertiser", name="Demo Advertiser"),
)

DEMO_ADVERTISER_NAME = "Demo Advertiser Inc."
DEMO_OFFER_NAME = "Demo Offer"


async def _get_or_create_user(session: AsyncSession, *, spec: SeedUserSpec) -> User:
    res = await session.execute(select(User).where(User.email == spec.email))
    user = res.scalar_one_or_none()

    if user is None:
        user = User(
            email=spec.email,
            name=spec.name,
            role=spec.role,
            password_hash=hash_password(DEMO_PASSWORD),
            is_active=True,
        )
        session.add(user)
        await session.flush()
    else:
        # Keep demo users usable if someone changed them locally.
        user.is_active = True
        user.role = spec.role

    return user


async def _get_or_create_advertiser(session: AsyncSession, *, contact_email: str) -> Advertiser:
    res = await session.execute(select(Advertiser).where(Advertiser.contact_email == contact_email))
    advertiser = res.scalar_one_or_none()
    if advertiser is None:
        advertiser = Advertiser(name=DEMO_ADVERTISER_NAME, contact_email=contact_email, status="active")
        session.add(advertiser)
        await session.flush()
    return advertiser


async def _get_or_create_offer(session: AsyncSession, *, advertiser: Advertiser, created_by: uuid.UUID) -> Offer:
    res = await session.execute(
        select(Offer).where(Offer.offer_name == DEMO_OFFER_NAME, Offer.advertiser_id == advertiser.id)
    )
    offer = res.scalar_one_or_none()
    if offer is None:
        offer = Offer(
            offer_name=DEMO_OFFER_NAME,
            advertiser_id=advertiser.id,
            advertiser_name=advertiser.name,
            created_method="Manually",
            status="Active",
            visibility="Public",
            created_by=str(created_by),
        )
        session.add(offer)
        await session.flush()
    return offer


async def seed_dev_data(database_url: str | None = None) -> SeedResult:
    """Create demo users, an advertiser profile and an offer. Safe to run repeatedly."""

    engine = create_async_engine(database_url or settings.database_url, pool_pre_ping=True)
    session_maker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        async with session_maker() as session:
            async with session.begin():
                users = {spec.role: await _get_or_create_user(session, spec=spec) for spec in DEMO_USERS}
                advertiser_user = users["advertiser"]
                advertiser = await _get_or_create_advertiser(session, contact_email=advertiser_user.email)
                offer = await _get_or_create_offer(session, advertiser=advertiser, created_by=users["admin"].id)

                result = SeedResult(
                    admin_id=users["admin"].id,
                    advertiser_user_id=advertiser_user.id,
                    advertiser_id=advertiser.id,
                    offer_id=offer.id,
                )
    finally:
        await engine.dispose()

    return result


def main() -> None:
    result = asyncio.run(seed_dev_data())
    print(f"Seeded admin={result.admin_id} advertiser={result.advertiser_id} offer={result.offer_id}")


if __name__ == "__main__":
    main()
