from __future__ import annotations

import enum
from datetime import date, datetime, time, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrops.db import Base

JsonDocument = JSON().with_variant(JSONB(), "postgresql")


class WorkShiftType(str, enum.Enum):
    NORMAL = "NORMAL"
    FLEXIBLE = "FLEXIBLE"
    NIGHT = "NIGHT"
    PART_TIME = "PART_TIME"
    OVERTIME = "OVERTIME"


class ApprovalStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class TimesheetStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"


class RemoteType(str, enum.Enum):
    OFFICE = "OFFICE"
    REMOTE = "REMOTE"
    HYBRID = "HYBRID"


class RequestKind(str, enum.Enum):
    REMOTE_WORK = "REMOTE_WORK"
    DAY_OFF = "DAY_OFF"
    OVERTIME = "OVERTIME"
    LATE_EARLY = "LATE_EARLY"
    FORGOT_CHECKIN = "FORGOT_CHECKIN"


class DayOffDuration(str, enum.Enum):
    FULL_DAY = "FULL_DAY"
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"


class LeaveType(str, enum.Enum):
    PAID = "PAID"
    UNPAID = "UNPAID"


class LeaveTransactionType(str, enum.Enum):
    EARNED = "EARNED"
    USED = "USED"
    ADJUSTED = "ADJUSTED"
    CARRY_OVER = "CARRY_OVER"


class LateEarlyType(str, enum.Enum):
    LATE = "LATE"
    EARLY = "EARLY"
    BOTH = "BOTH"


class AuditActorType(str, enum.Enum):
    USER = "USER"
    SYSTEM = "SYSTEM"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    leave_balance: Mapped[LeaveBalance | None] = relationship(back_populates="user", uselist=False)
    timesheet_days: Mapped[list[TimesheetDay]] = relationship(back_populates="user")
    requests: Mapped[list[AttendanceRequest]] = relationship(
        back_populates="user",
        foreign_keys="AttendanceRequest.user_id",
    )


class Holiday(Base):
    __tablename__ = "holidays"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))


class WorkShift(Base):
    __tablename__ = "work_shifts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[WorkShiftType] = mapped_column(
        Enum(WorkShiftType, name="work_shift_type"),
        nullable=False,
        default=WorkShiftType.NORMAL,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    morning_start: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)
    morning_end: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)
    afternoon_start: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)
    afternoon_end: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class PenaltyRule(Base):
    __tablename__ = "penalty_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    minutes_per_block: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_per_block: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )


class TimesheetDay(Base):
    __tablename__ = "timesheet_days"
    __table_args__ = (
        UniqueConstraint("user_id", "work_date", name="uq_timesheet_days_user_work_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    work_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    shift_id: Mapped[int | None] = mapped_column(
        ForeignKey("work_shifts.id", ondelete="SET NULL"),
        nullable=True,
    )
    checkin: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    checkout: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    late_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    early_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    approved_late_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    approved_early_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    worked_minutes_morning: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    worked_minutes_afternoon: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    total_work_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    overtime_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    penalty_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    is_remote: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    remote_type: Mapped[RemoteType] = mapped_column(
        Enum(RemoteType, name="remote_type"),
        nullable=False,
        default=RemoteType.OFFICE,
        server_default=text("'OFFICE'"),
    )
    day_off_request_id: Mapped[int | None] = mapped_column(
        ForeignKey("attendance_requests.id", ondelete="SET NULL"),
        nullable=True,
    )
    paid_leave: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default=text("0"))
    unpaid_leave: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default=text("0"))
    status: Mapped[TimesheetStatus] = mapped_column(
        Enum(TimesheetStatus, name="timesheet_status"),
        nullable=False,
        default=TimesheetStatus.PENDING,
        server_default=text("'PENDING'"),
    )
    type: Mapped[WorkShiftType] = mapped_column(
        Enum(WorkShiftType, name="work_shift_type"),
        nullable=False,
        default=WorkShiftType.NORMAL,
        server_default=text("'NORMAL'"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user: Mapped[User] = relationship(back_populates="timesheet_days")
    shift: Mapped[WorkShift | None] = relationship()


class LeaveBalance(Base):
    __tablename__ = "leave_balances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    paid_leave_balance: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default=text("0"))
    unpaid_leave_balance: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default=text("0"))
    annual_paid_leave_quota: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default=text("0"))
    carry_over_days: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default=text("0"))
    last_reset_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user: Mapped[User] = relationship(back_populates="leave_balance")


class LeaveTransaction(Base):
    __tablename__ = "leave_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    transaction_type: Mapped[LeaveTransactionType] = mapped_column(
        Enum(LeaveTransactionType, name="leave_transaction_type"),
        nullable=False,
    )
    leave_type: Mapped[LeaveType] = mapped_column(
        Enum(LeaveType, name="leave_type"),
        nullable=False,
    )
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    balance_after: Mapped[float] = mapped_column(Float, nullable=False)
    reference_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reference_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class AttendanceRequest(Base):
    __tablename__ = "attendance_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    kind: Mapped[RequestKind] = mapped_column(
        Enum(RequestKind, name="request_kind"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JsonDocument, nullable=False, default=dict)
    status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus, name="approval_status"),
        nullable=False,
        default=ApprovalStatus.PENDING,
        server_default=text("'PENDING'"),
        index=True,
    )
    approved_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped[User] = relationship(back_populates="requests", foreign_keys=[user_id])
    claims: Mapped[list[RequestDayClaim]] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
    )

    @property
    def work_date(self) -> date:
        return self.start_date


class RequestDayClaim(Base):
    __tablename__ = "request_day_claims"
    __table_args__ = (
        UniqueConstraint("user_id", "work_date", "kind", name="uq_request_day_claims_user_date_kind"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(
        ForeignKey("attendance_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    kind: Mapped[RequestKind] = mapped_column(
        Enum(RequestKind, name="request_kind"),
        nullable=False,
    )

    request: Mapped[AttendanceRequest] = relationship(back_populates="claims")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )
    actor_type: Mapped[AuditActorType] = mapped_column(
        Enum(AuditActorType, name="audit_actor_type"),
        nullable=False,
    )
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(128), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    details: Mapped[dict[str, Any]] = mapped_column(JsonDocument, nullable=False, default=dict)
