from __future__ import annotations

from dataclasses import dataclass
import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.creative import Creative
from src.models.creative_request import CreativeRequest
from src.models.offer import Offer
from src.models.publisher import Publisher
from src.schemas.submission import SubmissionCreate, SubmissionFile
from src.services.errors import NotFoundError, ValidationFailed
from src.services.notifications import is_valid_telegram_id
from src.services.security import new_tracking_code
from src.timeutils import utcnow

logger = logging.getLogger("creative_approval.intake")

PRIORITY_LABELS = {"high": "High Priority", "medium": "Medium Priority"}
_TRACKING_CODE_ATTEMPTS = 5


@dataclass(frozen=True)
class SubmissionOutcome:
    request: CreativeRequest
    creatives: list[Creative]


def count_lines(text: object) -> int:
    # Per-file metadata is free-form; only string values carry copy lines.
    if not isinstance(text, str) or not text:
        return 0
    return sum(1 for line in text.splitlines() if line.strip())


def creative_format(file: SubmissionFile) -> str:
    content_type = (file.type or "").lower()
    name = file.name.lower()
    if content_type.startswith("image/"):
        return "image"
    if content_type == "text/html" or name.endswith((".html", ".htm")):
        return "html"
    return "other"


async def _unique_tracking_code(session: AsyncSession) -> str:
    for _ in range(_TRACKING_CODE_ATTEMPTS):
        code = new_tracking_code()
        r = await session.execute(select(CreativeRequest.id).where(CreativeRequest.tracking_code == code))
        if r.scalar_one_or_none() is None:
            return code
    raise RuntimeError("Could not allocate a unique tracking code")


async def _get_or_create_publisher(session: AsyncSession, payload: SubmissionCreate) -> Publisher:
    r = await session.execute(select(Publisher).where(Publisher.contact_email == payload.email).limit(1))
    publisher = r.scalar_one_or_none()
    if publisher is None:
        publisher = Publisher(
            name=payload.company_name or f"{payload.first_name} {payload.last_name}".strip(),
            contact_email=payload.email,
            telegram_id=payload.telegram_id,
            created_at=utcnow(),
            updated_at=utcnow(),
        )
        session.add(publisher)
        await session.flush()
    elif payload.telegram_id and publisher.telegram_id != payload.telegram_id:
        publisher.telegram_id = payload.telegram_id
        publisher.updated_at = utcnow()
    return publisher


async def submit_request(session: AsyncSession, payload: SubmissionCreate) -> SubmissionOutcome:
    """Create a creative request in the admin stage plus one creative per uploaded file."""

    if payload.telegram_id and not is_valid_telegram_id(payload.telegram_id):
        raise ValidationFailed("Invalid Telegram ID")

    offer = await session.get(Offer, payload.offer_id)
    if offer is None:
        raise NotFoundError("Offer not found")

    publisher = await _get_or_create_publisher(session, payload)

    from_lines_count = count_lines(payload.from_lines)
    subject_lines_count = count_lines(payload.subject_lines)
    for file in payload.files:
        meta = file.metadata or {}
        from_lines_count += count_lines(meta.get("from_lines"))
        subject_lines_count += count_lines(meta.get("subject_lines"))

    now = utcnow()
    request = CreativeRequest(
        offer_id=offer.id,
        offer_name=offer.offer_name,
        creative_type=payload.creative_type,
        creative_count=len(payload.files),
        from_lines_count=from_lines_count,
        subject_lines_count=subject_lines_count,
        publisher_id=publisher.id,
        publisher_name=f"{payload.first_name} {payload.last_name}".strip(),
        company_name=payload.company_name,
        email=payload.email,
        telegram_id=payload.telegram_id,
        advertiser_id=offer.advertiser_id,
        advertiser_name=offer.advertiser_name,
        priority=PRIORITY_LABELS[payload.priority],
        tracking_code=await _unique_tracking_code(session),
        status="new",
        approval_stage="admin",
        admin_status="pending",
        from_lines=payload.from_lines,
        subject_lines=payload.subject_lines,
        additional_notes=payload.additional_notes,
        submitted_at=now,
        updated_at=now,
    )
    session.add(request)
    await session.flush()

    creatives = [
        Creative(
            request_id=request.id,
            name=file.name,
            url=file.url,
            type=file.type,
            size=file.size,
            format=creative_format(file),
            status="pending",
            file_metadata=file.metadata,
            status_updated_at=now,
            scan_attempts=0,
            created_at=now,
            updated_at=now,
        )
        for file in payload.files
    ]
    session.add_all(creatives)
    await session.commit()

    logger.info(
        "request_submitted request_id=%s tracking_code=%s offer_id=%s creatives=%s",
        request.id,
        request.tracking_code,
        offer.id,
        len(creatives),
    )
    return SubmissionOutcome(request=request, creatives=creatives)


async def find_request_for_tracking(
    session: AsyncSession, *, request_id: UUID | None = None, code: str | None = None
) -> tuple[CreativeRequest, list[Creative]]:
    if request_id is None and not code:
        raise ValidationFailed("Either id or code is required")

    q = select(CreativeRequest)
    if request_id is not None:
        q = q.where(CreativeRequest.id == request_id)
    else:
        q = q.where(CreativeRequest.tracking_code == code.strip().upper())

    request = (await session.execute(q)).scalar_one_or_none()
    if request is None:
        raise NotFoundError("Request not found")

    r = await session.execute(
        select(Creative).where(Creative.request_id == request.id).order_by(Creative.created_at.asc())
    )
    return request, list(r.scalars().all())
