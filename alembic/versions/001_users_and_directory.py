"""users, sessions, advertisers, publishers and offers

Revision ID: 001_users_and_directory
Revises: 
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001_users_and_directory"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("role", sa.String(length=20), server_default=sa.text("'publisher'"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("role IN ('admin', 'advertiser', 'publisher')", name="ck_users_role"),
    )

    op.create_table(
        "sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token", sa.String(length=128), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.UniqueConstraint("token", name="uq_sessions_token"),
    )
    op.create_index("idx_sessions_user_id", "sessions", ["user_id"])

    op.create_table(
        "advertisers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("contact_email", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), server_default=sa.text("'active'"), nullable=False),
        sa.Column("everflow_advertiser_id", sa.String(length=64), nullable=True),
        sa.Column("everflow_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("brand_guidelines", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("everflow_advertiser_id", name="uq_advertisers_everflow_advertiser_id"),
    )
    op.create_index("ix_advertisers_contact_email", "advertisers", ["contact_email"])

    op.create_table(
        "publishers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("contact_email", sa.String(length=255), nullable=True),
        sa.Column("telegram_id", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=20), server_default=sa.text("'active'"), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "offers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("offer_name", sa.String(length=255), nullable=False),
        sa.Column("advertiser_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("advertisers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("advertiser_name", sa.String(length=255), nullable=True),
        sa.Column("created_method", sa.String(length=20), server_default=sa.text("'Manually'"), nullable=False),
        sa.Column("status", sa.String(length=20), server_default=sa.text("'Active'"), nullable=False),
        sa.Column("visibility", sa.String(length=20), server_default=sa.text("'Public'"), nullable=False),
        sa.Column("everflow_offer_id", sa.String(length=64), nullable=True),
        sa.Column("everflow_advertiser_id", sa.String(length=64), nullable=True),
        sa.Column("everflow_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("updated_by", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("everflow_offer_id", name="uq_offers_everflow_offer_id"),
        sa.CheckConstraint("status IN ('Active', 'Inactive')", name="ck_offers_status"),
    )


def downgrade() -> None:
    op.drop_table("offers")
    op.drop_table("publishers")
    op.drop_index("ix_advertisers_contact_email", table_name="advertisers")
    op.drop_table("advertisers")
    op.drop_index("idx_sessions_user_id", table_name="sessions")
    op.drop_table("sessions")
    op.drop_table("users")
