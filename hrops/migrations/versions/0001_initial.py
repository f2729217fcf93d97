"""Initial attendance, leave ledger and request workflow schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

work_shift_type = postgresql.ENUM(
    "NORMAL", "FLEXIBLE", "NIGHT", "PART_TIME", "OVERTIME",
    name="work_shift_type",
    create_type=False,
)
approval_status = postgresql.ENUM("PENDING", "APPROVED", "REJECTED", name="approval_status", create_type=False)
timesheet_status = postgresql.ENUM("PENDING", "APPROVED", name="timesheet_status", create_type=False)
remote_type = postgresql.ENUM("OFFICE", "REMOTE", "HYBRID", name="remote_type", create_type=False)
request_kind = postgresql.ENUM(
    "REMOTE_WORK", "DAY_OFF", "OVERTIME", "LATE_EARLY", "FORGOT_CHECKIN",
    name="request_kind",
    create_type=False,
)
leave_type = postgresql.ENUM("PAID", "UNPAID", name="leave_type", create_type=False)
leave_transaction_type = postgresql.ENUM(
    "EARNED", "USED", "ADJUSTED", "CARRY_OVER",
    name="leave_transaction_type",
    create_type=False,
)
audit_actor_type = postgresql.ENUM("USER", "SYSTEM", name="audit_actor_type", create_type=False)

ALL_ENUMS = (
    work_shift_type,
    approval_status,
    timesheet_status,
    remote_type,
    request_kind,
    leave_type,
    leave_transaction_type,
    audit_actor_type,
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "holidays",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("holiday_date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
    )
    op.create_index("ix_holidays_holiday_date", "holidays", ["holiday_date"], unique=True)

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )

    op.create_table(
        "work_shifts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("type", work_shift_type, nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("morning_start", sa.Time(timezone=False), nullable=False),
        sa.Column("morning_end", sa.Time(timezone=False), nullable=False),
        sa.Column("afternoon_start", sa.Time(timezone=False), nullable=False),
        sa.Column("afternoon_end", sa.Time(timezone=False), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_work_shifts_start_date", "work_shifts", ["start_date"], unique=False)
    op.create_index("ix_work_shifts_end_date", "work_shifts", ["end_date"], unique=False)

    op.create_table(
        "penalty_rules",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("minutes_per_block", sa.Integer(), nullable=False),
        sa.Column("amount_per_block", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    op.create_table(
        "attendance_requests",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("kind", request_kind, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("reason", sa.String(length=1000), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("status", approval_status, nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("approved_by", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.Integer(), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_reason", sa.String(length=1000), nullable=True),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["approved_by"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["rejected_by"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_attendance_requests_kind", "attendance_requests", ["kind"], unique=False)
    op.create_index("ix_attendance_requests_user_id", "attendance_requests", ["user_id"], unique=False)
    op.create_index("ix_attendance_requests_start_date", "attendance_requests", ["start_date"], unique=False)
    op.create_index("ix_attendance_requests_end_date", "attendance_requests", ["end_date"], unique=False)
    op.create_index("ix_attendance_requests_status", "attendance_requests", ["status"], unique=False)

    op.create_table(
        "request_day_claims",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("request_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("kind", request_kind, nullable=False),
        sa.ForeignKeyConstraint(["request_id"], ["attendance_requests.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "work_date", "kind", name="uq_request_day_claims_user_date_kind"),
    )
    op.create_index("ix_request_day_claims_request_id", "request_day_claims", ["request_id"], unique=False)

    op.create_table(
        "timesheet_days",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("shift_id", sa.Integer(), nullable=True),
        sa.Column("checkin", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checkout", sa.DateTime(timezone=True), nullable=True),
        sa.Column("late_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("early_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("approved_late_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("approved_early_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("worked_minutes_morning", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("worked_minutes_afternoon", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_work_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("overtime_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("penalty_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_remote", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("remote_type", remote_type, nullable=False, server_default=sa.text("'OFFICE'")),
        sa.Column("day_off_request_id", sa.Integer(), nullable=True),
        sa.Column("paid_leave", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("unpaid_leave", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", timesheet_status, nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("type", work_shift_type, nullable=False, server_default=sa.text("'NORMAL'")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["shift_id"], ["work_shifts.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["day_off_request_id"], ["attendance_requests.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("user_id", "work_date", name="uq_timesheet_days_user_work_date"),
    )
    op.create_index("ix_timesheet_days_user_id", "timesheet_days", ["user_id"], unique=False)
    op.create_index("ix_timesheet_days_work_date", "timesheet_days", ["work_date"], unique=False)

    op.create_table(
        "leave_balances",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False, unique=True),
        sa.Column("paid_leave_balance", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("unpaid_leave_balance", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("annual_paid_leave_quota", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("carry_over_days", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_reset_date", sa.Date(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "leave_transactions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("transaction_type", leave_transaction_type, nullable=False),
        sa.Column("leave_type", leave_type, nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("balance_after", sa.Float(), nullable=False),
        sa.Column("reference_type", sa.String(length=64), nullable=True),
        sa.Column("reference_id", sa.Integer(), nullable=True),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_leave_transactions_user_id", "leave_transactions", ["user_id"], unique=False)
    op.create_index("ix_leave_transactions_created_at", "leave_transactions", ["created_at"], unique=False)
    op.create_index(
        "ix_leave_transactions_reference",
        "leave_transactions",
        ["user_id", "reference_type", "reference_id"],
        unique=False,
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("ts_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.String(length=1024), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_ts_utc", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_leave_transactions_reference", table_name="leave_transactions")
    op.drop_index("ix_leave_transactions_created_at", table_name="leave_transactions")
    op.drop_index("ix_leave_transactions_user_id", table_name="leave_transactions")
    op.drop_table("leave_transactions")
    op.drop_table("leave_balances")
    op.drop_index("ix_timesheet_days_work_date", table_name="timesheet_days")
    op.drop_index("ix_timesheet_days_user_id", table_name="timesheet_days")
    op.drop_table("timesheet_days")
    op.drop_index("ix_request_day_claims_request_id", table_name="request_day_claims")
    op.drop_table("request_day_claims")
    for index_name in (
        "ix_attendance_requests_status",
        "ix_attendance_requests_end_date",
        "ix_attendance_requests_start_date",
        "ix_attendance_requests_user_id",
        "ix_attendance_requests_kind",
    ):
        op.drop_index(index_name, table_name="attendance_requests")
    op.drop_table("attendance_requests")
    op.drop_table("penalty_rules")
    op.drop_index("ix_work_shifts_end_date", table_name="work_shifts")
    op.drop_index("ix_work_shifts_start_date", table_name="work_shifts")
    op.drop_table("work_shifts")
    op.drop_table("projects")
    op.drop_index("ix_holidays_holiday_date", table_name="holidays")
    op.drop_table("holidays")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in reversed(ALL_ENUMS):
        enum_type.drop(bind, checkfirst=True)
