from __future__ import annotations

import uuid

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from src.timeutils import utcnow

from .base import Base


class CreativeRequest(Base):
    __tablename__ = "creative_requests"
    __table_args__ = (
        Index("idx_creative_requests_status_stage", "status", "approval_stage"),
        Index("idx_creative_requests_advertiser", "advertiser_id", "submitted_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    offer_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("offers.id", ondelete="SET NULL"), nullable=True)
    offer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    creative_type: Mapped[str] = mapped_column(String(50), nullable=False)
    creative_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)
    from_lines_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)
    subject_lines_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)

    publisher_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("publishers.id", ondelete="SET NULL"), nullable=True)
    publisher_name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    telegram_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    advertiser_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("advertisers.id", ondelete="SET NULL"), nullable=True)
    advertiser_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # "High Priority" | "Medium Priority"
    priority: Mapped[str] = mapped_column(String(30), nullable=False, server_default="Medium Priority", default="Medium Priority")
    tracking_code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    # new | pending | approved | rejected | sent-back
    status: Mapped[str] = mapped_column(String(20), nullable=False, server_default="new", default="new")
    # admin | advertiser | completed
    approval_stage: Mapped[str] = mapped_column(String(20), nullable=False, server_default="admin", default="admin")

    admin_status: Mapped[str] = mapped_column(String(20), nullable=False, server_default="pending", default="pending")
    admin_approved_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    admin_approved_at: Mapped[object | None] = mapped_column(DateTime(timezone=True), nullable=True)
    admin_comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    # pending | approved | rejected | sent_back
    advertiser_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    advertiser_responded_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    advertiser_responded_at: Mapped[object | None] = mapped_column(DateTime(timezone=True), nullable=True)
    advertiser_comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    from_lines: Mapped[str | None] = mapped_column(Text, nullable=True)
    subject_lines: Mapped[str | None] = mapped_column(Text, nullable=True)
    additional_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    submitted_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), default=utcnow)
    updated_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), default=utcnow)
