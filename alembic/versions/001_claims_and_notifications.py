"""Claims and notifications tables.

Revision ID: 001
Revises:
Create Date: 2025-07-02

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

CLAIM_STATUSES = (
    "SUBMITTED",
    "UNDER_REVIEW",
    "APPROVED",
    "REJECTED",
    "SETTLED",
    "CANCELLED",
)


def upgrade() -> None:
    """Create claims and notifications."""
    op.create_table(
        "claims",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("claim_number", sa.String(32), nullable=False),
        sa.Column("policy_number", sa.String(50), nullable=False),
        sa.Column("policy_type", sa.String(16), nullable=False),
        sa.Column("claim_type", sa.String(40), nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column("owner_email", sa.String(320), nullable=True),
        sa.Column("incident_date", sa.Date(), nullable=False),
        sa.Column("claimed_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("incident_location", sa.String(500), nullable=True),
        sa.Column(
            "severity", sa.String(16), nullable=False, server_default="MEDIUM"
        ),
        sa.Column("documents_path", sa.String(500), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("approved_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("approved_date", sa.Date(), nullable=True),
        sa.Column("rejected_date", sa.Date(), nullable=True),
        sa.Column("rejection_reason", sa.String(1000), nullable=True),
        sa.Column("settled_date", sa.Date(), nullable=True),
        sa.Column("admin_notes", sa.String(1000), nullable=True),
        sa.Column("reviewed_by", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_claims")),
        sa.UniqueConstraint("claim_number", name=op.f("uq_claims_claim_number")),
        sa.CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in CLAIM_STATUSES) + ")",
            name=op.f("ck_claims_status_valid"),
        ),
        sa.CheckConstraint("claimed_amount > 0", name=op.f("ck_claims_claimed_positive")),
        sa.CheckConstraint(
            "(approved_amount IS NOT NULL) = (status IN ('APPROVED', 'SETTLED'))",
            name=op.f("ck_claims_approved_amount_status"),
        ),
        sa.CheckConstraint(
            "(rejection_reason IS NOT NULL) = (status = 'REJECTED')",
            name=op.f("ck_claims_rejection_reason_status"),
        ),
    )
    op.create_index(op.f("ix_claims_owner_id"), "claims", ["owner_id"])
    op.create_index(op.f("ix_claims_status"), "claims", ["status"])
    op.create_index(
        op.f("ix_claims_owner_policy"), "claims", ["owner_id", "policy_number"]
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("recipient_id", sa.String(255), nullable=False),
        sa.Column("claim_number", sa.String(32), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("status", sa.String(8), nullable=False, server_default="UNREAD"),
        sa.Column("dedup_key", sa.String(64), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_notifications")),
        sa.UniqueConstraint("dedup_key", name=op.f("uq_notifications_dedup_key")),
        sa.CheckConstraint(
            "status IN ('UNREAD', 'READ')", name=op.f("ck_notifications_status_valid")
        ),
        sa.CheckConstraint(
            "(read_at IS NOT NULL) = (status = 'READ')",
            name=op.f("ck_notifications_read_at_status"),
        ),
    )
    op.create_index(
        op.f("ix_notifications_recipient_status"),
        "notifications",
        ["recipient_id", "status"],
    )


def downgrade() -> None:
    """Drop claims and notifications."""
    op.drop_index(op.f("ix_notifications_recipient_status"), table_name="notifications")
    op.drop_table("notifications")
    op.drop_index(op.f("ix_claims_owner_policy"), table_name="claims")
    op.drop_index(op.f("ix_claims_status"), table_name="claims")
    op.drop_index(op.f("ix_claims_owner_id"), table_name="claims")
    op.drop_table("claims")
