from __future__ import annotations

import uuid

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from src.timeutils import utcnow

from .base import Base, JSONType


class Creative(Base):
    __tablename__ = "creatives"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    request_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("creative_requests.id", ondelete="CASCADE"), nullable=True, index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)
    # image | html | other
    format: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # pending | scanning | clean | infected | failed | sent-back
    status: Mapped[str] = mapped_column(String(20), nullable=False, server_default="pending", default="pending", index=True)
    file_metadata: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)

    status_updated_at: Mapped[object | None] = mapped_column(DateTime(timezone=True), nullable=True)
    scan_attempts: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)
    last_scan_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), default=utcnow)
    updated_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), default=utcnow)
