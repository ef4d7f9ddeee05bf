from __future__ import annotations

import uuid

from sqlalchemy import DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from src.timeutils import utcnow

from .base import Base, JSONType


class Advertiser(Base):
    __tablename__ = "advertisers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Advertiser users are matched to their profile through this address.
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, server_default="active", default="active")

    everflow_advertiser_id: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    everflow_data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    brand_guidelines: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), default=utcnow)
    updated_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), default=utcnow)
