"""Create scheduling tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    op.create_table(
        "appointments",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("doctor_id", sa.VARCHAR(length=128), nullable=False),
        sa.Column("patient_id", sa.VARCHAR(length=128), nullable=False),
        sa.Column("doctor_name", sa.Text(), nullable=True),
        sa.Column("patient_name", sa.Text(), nullable=True),
        sa.Column("patient_phone", sa.VARCHAR(length=20), nullable=True),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("appointment_time", sa.VARCHAR(length=5), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("symptoms", sa.Text(), nullable=True),
        sa.Column("status", sa.VARCHAR(length=32), server_default="confirmed", nullable=False),
        sa.Column("payment_amount", sa.Numeric(10, 2), server_default="0", nullable=False),
        sa.Column("cancelled_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.VARCHAR(length=32), nullable=True),
        sa.Column("cancellation_policy", sa.VARCHAR(length=32), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("hours_before_cancellation", sa.Float(), nullable=True),
        sa.Column("refund_status", sa.VARCHAR(length=32), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("cancellation_fee", sa.Numeric(10, 2), nullable=True),
        sa.Column("refund_transaction_id", sa.VARCHAR(length=64), nullable=True),
        sa.Column("refund_processed_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("medicine", sa.Text(), nullable=True),
        sa.Column("doctor_notes", sa.Text(), nullable=True),
        sa.Column("final_diagnosis", postgresql.JSON(), nullable=True),
        sa.Column("diagnosis_history", postgresql.JSON(), nullable=True),
        sa.Column("completed_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("not_attended_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("marked_not_attended_by", sa.VARCHAR(length=128), nullable=True),
        sa.Column("affected_by_leave_request_id", sa.VARCHAR(length=64), nullable=True),
        sa.Column("conflict_detected_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('confirmed', 'completed', 'cancelled', 'doctor_cancelled', "
            "'not_attended', 'awaiting_reschedule')",
            name="appointments_status_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_appointments_doctor_day_status",
        "appointments",
        ["doctor_id", "appointment_date", "status"],
    )
    op.create_index("idx_appointments_patient_id", "appointments", ["patient_id"])

    op.create_table(
        "slot_locks",
        sa.Column("key", sa.VARCHAR(length=255), nullable=False),
        sa.Column("appointment_id", postgresql.UUID(), nullable=False),
        sa.Column("doctor_id", sa.VARCHAR(length=128), nullable=False),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("appointment_time", sa.VARCHAR(length=5), nullable=False),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("key"),
    )
    op.create_index(
        "idx_slot_locks_doctor_date", "slot_locks", ["doctor_id", "appointment_date"]
    )

    op.create_table(
        "doctors",
        sa.Column("id", sa.VARCHAR(length=128), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("specialization", sa.VARCHAR(length=200), nullable=True),
        sa.Column("visiting_hours", postgresql.JSON(), nullable=True),
        sa.Column("blocked_dates", postgresql.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "schedule_change_requests",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("doctor_id", sa.VARCHAR(length=128), nullable=False),
        sa.Column("request_type", sa.VARCHAR(length=32), nullable=False),
        sa.Column("visiting_hours", postgresql.JSON(), nullable=True),
        sa.Column("blocked_dates", postgresql.JSON(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.VARCHAR(length=20), server_default="pending", nullable=False),
        sa.Column("approved_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("approved_by", sa.VARCHAR(length=128), nullable=True),
        sa.Column("conflicts_detected", sa.Integer(), nullable=True),
        sa.Column("awaiting_count", sa.Integer(), nullable=True),
        sa.Column("cancelled_count", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "request_type IN ('visitingHours', 'blockedDates', 'both')",
            name="schedule_change_requests_type_check",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'approved')",
            name="schedule_change_requests_status_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_schedule_change_requests_doctor", "schedule_change_requests", ["doctor_id"]
    )

    op.create_table(
        "appointment_change_events",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("type", sa.VARCHAR(length=64), nullable=False),
        sa.Column("appointment_id", postgresql.UUID(), nullable=False),
        sa.Column("doctor_id", sa.VARCHAR(length=128), nullable=True),
        sa.Column("patient_id", sa.VARCHAR(length=128), nullable=True),
        sa.Column("request_id", sa.VARCHAR(length=64), nullable=True),
        sa.Column("actor_id", sa.VARCHAR(length=128), nullable=True),
        sa.Column("prev_status", sa.VARCHAR(length=32), nullable=True),
        sa.Column("next_status", sa.VARCHAR(length=32), nullable=True),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_change_events_appointment", "appointment_change_events", ["appointment_id"]
    )
    op.create_index("idx_change_events_request", "appointment_change_events", ["request_id"])

    op.create_table(
        "notifications",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("user_id", sa.VARCHAR(length=128), nullable=False),
        sa.Column("type", sa.VARCHAR(length=32), server_default="info", nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("appointment_id", postgresql.UUID(), nullable=True),
        sa.Column("read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("idx_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("idx_change_events_request", table_name="appointment_change_events")
    op.drop_index("idx_change_events_appointment", table_name="appointment_change_events")
    op.drop_table("appointment_change_events")

    op.drop_index("idx_schedule_change_requests_doctor", table_name="schedule_change_requests")
    op.drop_table("schedule_change_requests")

    op.drop_table("doctors")

    op.drop_index("idx_slot_locks_doctor_date", table_name="slot_locks")
    op.drop_table("slot_locks")

    op.drop_index("idx_appointments_patient_id", table_name="appointments")
    op.drop_index("idx_appointments_doctor_day_status", table_name="appointments")
    op.drop_table("appointments")
