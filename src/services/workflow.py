from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.models.creative import Creative
from src.models.creative_request import CreativeRequest
from src.models.request_status_history import RequestStatusHistory
from src.services import creative_status, notifications
from src.services.errors import InvalidTransitionError, NotFoundError, ValidationFailed
from src.timeutils import utcnow

logger = logging.getLogger("creative_approval.workflow")

# Request statuses
NEW = "new"
PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
SENT_BACK = "sent-back"

# Approval stages
STAGE_ADMIN = "admin"
STAGE_ADVERTISER = "advertiser"
STAGE_COMPLETED = "completed"

# advertiser_status values
ADV_PENDING = "pending"
ADV_APPROVED = "approved"
ADV_REJECTED = "rejected"
ADV_SENT_BACK = "sent_back"

ADMIN_FORWARDABLE = (NEW, PENDING)
ADMIN_RETURNABLE = (NEW, PENDING, SENT_BACK)


@dataclass(frozen=True)
class WorkflowDefaults:
    auto_transition_after_days: int = 15


class RequestWorkflowService:
    """Approval transitions for creative requests.

    Each transition locks the request row, checks the (status, approval_stage)
    guard, applies the update and records history in one transaction. The
    notification goes out after commit and never fails the transition.
    """

    def __init__(self, *, defaults: WorkflowDefaults | None = None) -> None:
        self._defaults = defaults or WorkflowDefaults(auto_transition_after_days=settings.request_auto_transition_days)

    async def _lock(self, session: AsyncSession, request_id: UUID, *, advertiser_id: UUID | None = None) -> CreativeRequest:
        q = select(CreativeRequest).where(CreativeRequest.id == request_id)
        if advertiser_id is not None:
            q = q.where(CreativeRequest.advertiser_id == advertiser_id)
        r = await session.execute(q.with_for_update())
        request = r.scalar_one_or_none()
        if request is None:
            raise NotFoundError("Request not found")
        return request

    @staticmethod
    def _history(
        session: AsyncSession,
        request: CreativeRequest,
        *,
        from_status: str | None,
        actor_role: str,
        actor_id: UUID | None,
        reason: str | None = None,
    ) -> None:
        session.add(
            RequestStatusHistory(
                request_id=request.id,
                from_status=from_status,
                to_status=request.status,
                actor_role=actor_role,
                actor_id=actor_id,
                reason=reason,
                created_at=utcnow(),
            )
        )

    async def _commit_and_notify(self, session: AsyncSession, request: CreativeRequest, event: str) -> CreativeRequest:
        await session.commit()
        logger.info(
            "request_transition request_id=%s status=%s stage=%s event=%s",
            request.id,
            request.status,
            request.approval_stage,
            event,
        )
        await notifications.notify_workflow_event(event, request_id=str(request.id), offer_name=request.offer_name)
        return request

    # Admin

    async def forward(self, session: AsyncSession, request_id: UUID, *, admin_id: UUID) -> CreativeRequest:
        """Hand a request to the advertiser, or finalize it once the advertiser has approved."""

        request = await self._lock(session, request_id)
        if request.approval_stage != STAGE_ADMIN or request.status not in ADMIN_FORWARDABLE:
            raise InvalidTransitionError()

        now = utcnow()
        previous = request.status
        request.admin_status = "approved"
        request.admin_approved_by = admin_id
        request.admin_approved_at = now
        request.updated_at = now

        if request.advertiser_status == ADV_APPROVED:
            request.status = APPROVED
            request.approval_stage = STAGE_COMPLETED
            reason = "Finalized after advertiser approval"
        else:
            request.status = PENDING
            request.approval_stage = STAGE_ADVERTISER
            request.advertiser_status = ADV_PENDING
            reason = "Forwarded to advertiser"

        self._history(session, request, from_status=previous, actor_role="admin", actor_id=admin_id, reason=reason)
        return await self._commit_and_notify(session, request, notifications.REQUEST_APPROVED_BY_ADMIN)

    async def return_to_publisher(
        self, session: AsyncSession, request_id: UUID, *, admin_id: UUID, feedback: str | None
    ) -> CreativeRequest:
        feedback = (feedback or "").strip()
        if not feedback:
            raise ValidationFailed("Feedback is required")

        request = await self._lock(session, request_id)
        if request.approval_stage != STAGE_ADMIN or request.status not in ADMIN_RETURNABLE:
            raise InvalidTransitionError()

        previous = request.status
        request.status = SENT_BACK
        request.admin_status = REJECTED
        request.admin_comments = feedback
        request.updated_at = utcnow()

        r = await session.execute(select(Creative.id).where(Creative.request_id == request.id))
        await creative_status.update_creative_statuses(session, r.scalars().all(), status=creative_status.SENT_BACK)

        self._history(session, request, from_status=previous, actor_role="admin", actor_id=admin_id, reason=feedback)
        return await self._commit_and_notify(session, request, notifications.REQUEST_REJECTED_BY_ADMIN)

    # Advertiser

    async def _advertiser_transition(
        self,
        session: AsyncSession,
        request_id: UUID,
        *,
        advertiser_id: UUID,
        user_id: UUID,
        status: str,
        advertiser_status: str,
        comments: str | None,
        event: str,
    ) -> CreativeRequest:
        request = await self._lock(session, request_id, advertiser_id=advertiser_id)
        if request.status != PENDING or request.approval_stage != STAGE_ADVERTISER:
            raise InvalidTransitionError()

        now = utcnow()
        previous = request.status
        request.status = status
        request.approval_stage = STAGE_ADMIN
        request.advertiser_status = advertiser_status
        request.advertiser_responded_by = user_id
        request.advertiser_responded_at = now
        if comments is not None:
            request.advertiser_comments = comments
        request.updated_at = now

        self._history(session, request, from_status=previous, actor_role="advertiser", actor_id=user_id, reason=comments)
        return await self._commit_and_notify(session, request, event)

    async def advertiser_approve(
        self, session: AsyncSession, request_id: UUID, *, advertiser_id: UUID, user_id: UUID, comments: str | None = None
    ) -> CreativeRequest:
        # Stays pending: the admin finalizes with a second forward.
        return await self._advertiser_transition(
            session,
            request_id,
            advertiser_id=advertiser_id,
            user_id=user_id,
            status=PENDING,
            advertiser_status=ADV_APPROVED,
            comments=comments,
            event=notifications.RESPONSE_APPROVED_BY_ADVERTISER,
        )

    async def advertiser_reject(
        self, session: AsyncSession, request_id: UUID, *, advertiser_id: UUID, user_id: UUID, reason: str | None = None
    ) -> CreativeRequest:
        return await self._advertiser_transition(
            session,
            request_id,
            advertiser_id=advertiser_id,
            user_id=user_id,
            status=REJECTED,
            advertiser_status=ADV_REJECTED,
            comments=(reason or "").strip() or None,
            event=notifications.RESPONSE_REJECTED_BY_ADVERTISER,
        )

    async def advertiser_send_back(
        self, session: AsyncSession, request_id: UUID, *, advertiser_id: UUID, user_id: UUID, reason: str | None
    ) -> CreativeRequest:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationFailed("Reason is required")
        return await self._advertiser_transition(
            session,
            request_id,
            advertiser_id=advertiser_id,
            user_id=user_id,
            status=SENT_BACK,
            advertiser_status=ADV_SENT_BACK,
            comments=reason,
            event=notifications.RESPONSE_SENT_BACK_BY_ADVERTISER,
        )

    # Scheduler

    async def auto_transition_stale(self, session: AsyncSession) -> list[UUID]:
        """Move requests left in new for too long to pending."""

        cutoff = utcnow() - timedelta(days=self._defaults.auto_transition_after_days)
        r = await session.execute(
            select(CreativeRequest)
            .where(CreativeRequest.status == NEW)
            .where(CreativeRequest.approval_stage == STAGE_ADMIN)
            .where(CreativeRequest.submitted_at < cutoff)
            .with_for_update(skip_locked=True)
        )
        requests = list(r.scalars().all())

        now = utcnow()
        for request in requests:
            request.status = PENDING
            request.updated_at = now
            self._history(
                session,
                request,
                from_status=NEW,
                actor_role="system",
                actor_id=None,
                reason=f"Auto-transitioned after {self._defaults.auto_transition_after_days} days in new",
            )
        await session.commit()

        ids = [req.id for req in requests]
        logger.info("requests_auto_transitioned count=%s", len(ids))
        return ids
