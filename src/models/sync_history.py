from __future__ import annotations

import uuid

from sqlalchemy import DateTime, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from src.timeutils import utcnow

from .base import Base, JSONType


class SyncHistory(Base):
    __tablename__ = "sync_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # offers | advertisers
    sync_type: Mapped[str] = mapped_column(String(30), nullable=False)
    # in_progress | completed | failed
    status: Mapped[str] = mapped_column(String(20), nullable=False, server_default="in_progress", default="in_progress")
    started_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    total_records: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)
    synced_records: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)
    created_records: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)
    updated_records: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)
    skipped_records: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)
    failed_records: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    sync_options: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    started_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), default=utcnow)
    completed_at: Mapped[object | None] = mapped_column(DateTime(timezone=True), nullable=True)
