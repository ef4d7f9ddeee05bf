"""creative requests, status history and creatives

Revision ID: 002_creative_requests
Revises: 001_users_and_directory
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "002_creative_requests"
down_revision = "001_users_and_directory"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "creative_requests",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("offer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("offers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("offer_name", sa.String(length=255), nullable=False),
        sa.Column("creative_type", sa.String(length=50), nullable=False),
        sa.Column("creative_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("from_lines_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("subject_lines_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("publisher_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("publishers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("publisher_name", sa.String(length=255), nullable=False),
        sa.Column("company_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("telegram_id", sa.String(length=64), nullable=True),
        sa.Column("advertiser_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("advertisers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("advertiser_name", sa.String(length=255), nullable=True),
        sa.Column("priority", sa.String(length=30), server_default=sa.text("'Medium Priority'"), nullable=False),
        sa.Column("tracking_code", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=20), server_default=sa.text("'new'"), nullable=False),
        sa.Column("approval_stage", sa.String(length=20), server_default=sa.text("'admin'"), nullable=False),
        sa.Column("admin_status", sa.String(length=20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("admin_approved_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("admin_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_comments", sa.Text(), nullable=True),
        sa.Column("advertiser_status", sa.String(length=20), nullable=True),
        sa.Column("advertiser_responded_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("advertiser_responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("advertiser_comments", sa.Text(), nullable=True),
        sa.Column("from_lines", sa.Text(), nullable=True),
        sa.Column("subject_lines", sa.Text(), nullable=True),
        sa.Column("additional_notes", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.UniqueConstraint("tracking_code", name="uq_creative_requests_tracking_code"),
        sa.CheckConstraint(
            "status IN ('new', 'pending', 'approved', 'rejected', 'sent-back')",
            name="ck_creative_requests_status",
        ),
        sa.CheckConstraint(
            "approval_stage IN ('admin', 'advertiser', 'completed')",
            name="ck_creative_requests_approval_stage",
        ),
    )
    op.create_index("idx_creative_requests_status_stage", "creative_requests", ["status", "approval_stage"])
    op.create_index("idx_creative_requests_advertiser", "creative_requests", ["advertiser_id", "submitted_at"])

    op.create_table(
        "request_status_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "request_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("creative_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("from_status", sa.String(length=20), nullable=True),
        sa.Column("to_status", sa.String(length=20), nullable=False),
        sa.Column("actor_role", sa.String(length=20), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index("ix_request_status_history_request_id", "request_status_history", ["request_id"])

    op.create_table(
        "creatives",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "request_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("creative_requests.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=100), nullable=False),
        sa.Column("size", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("format", sa.String(length=20), nullable=True),
        sa.Column("status", sa.String(length=20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("status_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scan_attempts", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("last_scan_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index("ix_creatives_request_id", "creatives", ["request_id"])
    op.create_index("ix_creatives_status", "creatives", ["status"])


def downgrade() -> None:
    op.drop_index("ix_creatives_status", table_name="creatives")
    op.drop_index("ix_creatives_request_id", table_name="creatives")
    op.drop_table("creatives")
    op.drop_index("ix_request_status_history_request_id", table_name="request_status_history")
    op.drop_table("request_status_history")
    op.drop_index("idx_creative_requests_advertiser", table_name="creative_requests")
    op.drop_index("idx_creative_requests_status_stage", table_name="creative_requests")
    op.drop_table("creative_requests")
