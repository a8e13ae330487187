# backend/alembic/versions/001_payment_settlement_schema.py
"""Payment settlement schema - users, courses, payments, transactions, enrollments, withdrawals

Revision ID: 001_payment_settlement_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the tables behind payment initiation, settlement and withdrawals.
The unique constraint on transactions.payment_id is what makes settlement
idempotent; do not drop it.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001_payment_settlement_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(12, 2)
JSON_PAYLOAD = JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite")


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("role", sa.String(20), nullable=False, server_default="student"),
        sa.Column("available_balance", MONEY, nullable=False, server_default="0"),
        _created_at(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "courses",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column(
            "instructor_id",
            sa.String(26),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("price", MONEY, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )
    op.create_index("ix_courses_instructor_id", "courses", ["instructor_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("student_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", sa.String(26), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("reference", sa.String(64), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("processor_payload", JSON_PAYLOAD, nullable=True),
        _created_at(),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("reference", name="uq_payments_reference"),
        sa.CheckConstraint(
            "status IN ('pending', 'success', 'failed')", name="ck_payments_status"
        ),
    )
    op.create_index("ix_payments_student_id", "payments", ["student_id"])
    op.create_index("ix_payments_course_id", "payments", ["course_id"])
    op.create_index("ix_payments_status", "payments", ["status"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("payment_id", sa.String(26), sa.ForeignKey("payments.id"), nullable=False),
        sa.Column("student_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("instructor_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", sa.String(26), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("amount_paid", MONEY, nullable=False),
        sa.Column("instructor_share", MONEY, nullable=False),
        sa.Column("platform_share", MONEY, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="completed"),
        _created_at(),
        sa.UniqueConstraint("payment_id", name="uq_transactions_payment_id"),
        sa.CheckConstraint(
            "instructor_share + platform_share = amount_paid",
            name="ck_transactions_split_sums",
        ),
    )
    op.create_index(
        "ix_transactions_instructor_created", "transactions", ["instructor_id", "created_at"]
    )
    op.create_index("ix_transactions_course_id", "transactions", ["course_id"])

    op.create_table(
        "enrollments",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("student_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", sa.String(26), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("payment_id", sa.String(26), sa.ForeignKey("payments.id"), nullable=True),
        _created_at("enrolled_at"),
        sa.UniqueConstraint("student_id", "course_id", name="uq_enrollments_student_course"),
    )

    op.create_table(
        "withdrawals",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("instructor_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("reference", sa.String(64), nullable=False),
        sa.Column("response_message", sa.Text(), nullable=True),
        sa.Column("bank_name", sa.String(255), nullable=True),
        sa.Column("account_number", sa.String(64), nullable=True),
        _created_at(),
        sa.UniqueConstraint("reference", name="uq_withdrawals_reference"),
        sa.CheckConstraint("amount > 0", name="ck_withdrawals_amount_positive"),
    )
    op.create_index(
        "ix_withdrawals_instructor_created", "withdrawals", ["instructor_id", "created_at"]
    )

    op.create_table(
        "webhook_events",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("source", sa.String(50), nullable=False),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("event_id", sa.String(255), nullable=True),
        sa.Column("reference", sa.String(64), nullable=True),
        sa.Column("payload", JSON_PAYLOAD, nullable=False),
        sa.Column("headers", JSON_PAYLOAD, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="received"),
        sa.Column("processing_error", sa.Text(), nullable=True),
        sa.Column("processing_duration_ms", sa.Integer(), nullable=True),
        sa.Column("related_entity_type", sa.String(50), nullable=True),
        sa.Column("related_entity_id", sa.String(26), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_retry_at", sa.DateTime(timezone=True), nullable=True),
        _created_at("received_at"),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("source", "event_id", name="uq_webhook_events_source_event_id"),
    )
    op.create_index("ix_webhook_events_source", "webhook_events", ["source"])
    op.create_index("ix_webhook_events_status", "webhook_events", ["status"])
    op.create_index("ix_webhook_events_received_at", "webhook_events", ["received_at"])
    op.create_index("ix_webhook_events_reference", "webhook_events", ["reference"])
    op.create_index(
        "ix_webhook_events_related_entity",
        "webhook_events",
        ["related_entity_type", "related_entity_id"],
    )


def downgrade() -> None:
    op.drop_table("webhook_events")
    op.drop_table("withdrawals")
    op.drop_table("enrollments")
    op.drop_table("transactions")
    op.drop_table("payments")
    op.drop_index("ix_courses_instructor_id", table_name="courses")
    op.drop_table("courses")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
