from __future__ import annotations

import uuid

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from src.timeutils import utcnow

from .base import Base, JSONType


class BackgroundJobEvent(Base):
    __tablename__ = "background_job_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("background_jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # started | progress | chunk_processed | cancelled | failed | completed | retry_scheduled | manual_retry
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), default=utcnow)
