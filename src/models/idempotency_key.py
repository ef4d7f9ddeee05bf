from __future__ import annotations

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.timeutils import utcnow

from .base import Base, JSONType


class IdempotencyKey(Base):
    __tablename__ = "idempotency_keys"

    # The client-supplied Idempotency-Key header value.
    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    request_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    response_body: Mapped[dict | list | None] = mapped_column(JSONType, nullable=True)
    response_status: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), default=utcnow)
    expires_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
