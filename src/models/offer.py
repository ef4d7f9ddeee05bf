from __future__ import annotations

import uuid

from sqlalchemy import DateTime, ForeignKey, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from src.timeutils import utcnow

from .base import Base, JSONType


class Offer(Base):
    __tablename__ = "offers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    offer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    advertiser_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("advertisers.id", ondelete="SET NULL"), nullable=True)
    advertiser_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Manually | API
    created_method: Mapped[str] = mapped_column(String(20), nullable=False, server_default="Manually", default="Manually")
    # Active | Inactive
    status: Mapped[str] = mapped_column(String(20), nullable=False, server_default="Active", default="Active")
    # Public | Internal | Hidden
    visibility: Mapped[str] = mapped_column(String(20), nullable=False, server_default="Public", default="Public")

    everflow_offer_id: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    everflow_advertiser_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    everflow_data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), default=utcnow)
    updated_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), default=utcnow)
