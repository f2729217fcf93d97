from datetime import date, datetime, time
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrops.models import (
    ApprovalStatus,
    AuditActorType,
    DayOffDuration,
    LateEarlyType,
    LeaveTransactionType,
    LeaveType,
    RemoteType,
    RequestKind,
    TimesheetStatus,
    WorkShiftType,
)

HHMM_PATTERN = r"^\d{2}:\d{2}$"


class WorkShiftCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: WorkShiftType = WorkShiftType.NORMAL
    start_date: date
    end_date: date
    morning_start: time
    morning_end: time
    afternoon_start: time
    afternoon_end: time

    @model_validator(mode="after")
    def _validate_boundaries(self) -> "WorkShiftCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be greater than or equal to start_date")
        if not (self.morning_start < self.morning_end <= self.afternoon_start < self.afternoon_end):
            raise ValueError("Shift boundaries must be ordered morning_start < morning_end <= afternoon_start < afternoon_end")
        return self


class WorkShiftUpdate(WorkShiftCreate):
    pass


class WorkShiftRead(BaseModel):
    id: int
    name: str
    type: WorkShiftType
    start_date: date
    end_date: date
    morning_start: time
    morning_end: time
    afternoon_start: time
    afternoon_end: time
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HolidayCreate(BaseModel):
    holiday_date: date
    name: str = Field(min_length=1, max_length=255)


class HolidayRead(BaseModel):
    id: int
    holiday_date: date
    name: str

    model_config = ConfigDict(from_attributes=True)


class PenaltyRuleUpdate(BaseModel):
    minutes_per_block: int = Field(ge=1, le=24 * 60)
    amount_per_block: int = Field(ge=0)


class PenaltyRuleRead(BaseModel):
    id: int
    minutes_per_block: int
    amount_per_block: int
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AttendanceRecordRequest(BaseModel):
    user_id: int = Field(ge=1)
    checkin: datetime
    checkout: datetime
    shift_id: int | None = Field(default=None, ge=1)


class AttendanceCheckinRequest(BaseModel):
    user_id: int = Field(ge=1)
    ts: datetime | None = None
    shift_id: int | None = Field(default=None, ge=1)


class AttendanceCheckoutRequest(BaseModel):
    user_id: int = Field(ge=1)
    ts: datetime | None = None


class TimesheetDayRead(BaseModel):
    id: int
    user_id: int
    work_date: date
    shift_id: int | None = None
    checkin: datetime | None = None
    checkout: datetime | None = None
    late_minutes: int
    early_minutes: int
    approved_late_minutes: int
    approved_early_minutes: int
    worked_minutes_morning: int
    worked_minutes_afternoon: int
    total_work_minutes: int
    overtime_minutes: int
    penalty_amount: int
    is_remote: bool
    remote_type: RemoteType
    day_off_request_id: int | None = None
    paid_leave: float
    unpaid_leave: float
    status: TimesheetStatus
    type: WorkShiftType

    model_config = ConfigDict(from_attributes=True)


# Kind-specific payloads stored on AttendanceRequest.payload


class RemoteWorkPayload(BaseModel):
    remote_type: RemoteType


class DayOffPayload(BaseModel):
    duration: DayOffDuration = DayOffDuration.FULL_DAY
    leave_type: LeaveType = LeaveType.PAID
    total_days: float | None = None


class OvertimePayload(BaseModel):
    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)
    project_id: int | None = Field(default=None, ge=1)
    total_hours: float | None = None


class LateEarlyPayload(BaseModel):
    request_type: LateEarlyType
    late_minutes: int | None = Field(default=None, ge=0)
    early_minutes: int | None = Field(default=None, ge=0)


class ForgotCheckinPayload(BaseModel):
    checkin_time: str | None = Field(default=None, pattern=HHMM_PATTERN)
    checkout_time: str | None = Field(default=None, pattern=HHMM_PATTERN)


class _RequestCreateBase(BaseModel):
    user_id: int = Field(ge=1)
    title: str | None = Field(default=None, max_length=255)
    reason: str | None = Field(default=None, max_length=1000)

    def date_range(self) -> tuple[date, date]:
        work_date = getattr(self, "work_date")
        return work_date, work_date


class RemoteWorkCreate(_RequestCreateBase, RemoteWorkPayload):
    kind: Literal["REMOTE_WORK"] = "REMOTE_WORK"
    work_date: date


class DayOffCreate(_RequestCreateBase, DayOffPayload):
    kind: Literal["DAY_OFF"] = "DAY_OFF"
    start_date: date
    end_date: date

    def date_range(self) -> tuple[date, date]:
        return self.start_date, self.end_date


class OvertimeCreate(_RequestCreateBase, OvertimePayload):
    kind: Literal["OVERTIME"] = "OVERTIME"
    work_date: date


class LateEarlyCreate(_RequestCreateBase, LateEarlyPayload):
    kind: Literal["LATE_EARLY"] = "LATE_EARLY"
    work_date: date


class ForgotCheckinCreate(_RequestCreateBase, ForgotCheckinPayload):
    kind: Literal["FORGOT_CHECKIN"] = "FORGOT_CHECKIN"
    work_date: date


RequestCreate = Annotated[
    Union[RemoteWorkCreate, DayOffCreate, OvertimeCreate, LateEarlyCreate, ForgotCheckinCreate],
    Field(discriminator="kind"),
]


class AttendanceRequestRead(BaseModel):
    id: int
    kind: RequestKind
    user_id: int
    start_date: date
    end_date: date
    title: str | None = None
    reason: str | None = None
    payload: dict[str, Any]
    status: ApprovalStatus
    approved_by: int | None = None
    approved_at: datetime | None = None
    rejected_by: int | None = None
    rejected_at: datetime | None = None
    rejected_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RejectRequestBody(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class ApprovalResultRead(BaseModel):
    request: AttendanceRequestRead
    timesheet_ids: list[int] = Field(default_factory=list)
    leave_transaction_id: int | None = None


class RequestStatusCounts(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


class RequestStatsRead(BaseModel):
    user_id: int | None = None
    overall: RequestStatusCounts
    by_kind: dict[str, RequestStatusCounts]


class LeaveBalanceRead(BaseModel):
    user_id: int
    year: int
    paid_leave_balance: float
    unpaid_leave_balance: float
    annual_paid_leave_quota: float
    carry_over_days: float
    last_reset_date: date | None = None
    earned_paid_days: float
    used_paid_days: float
    remaining_paid_days: float


class LeaveTransactionRead(BaseModel):
    id: int
    user_id: int
    transaction_type: LeaveTransactionType
    leave_type: LeaveType
    amount: float
    balance_after: float
    reference_type: str | None = None
    reference_id: int | None = None
    description: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LeaveJobResult(BaseModel):
    job: Literal["monthly_accrual", "annual_reset"]
    run_date: date
    processed_users: int
    skipped_users: int
    transaction_ids: list[int] = Field(default_factory=list)


class DashboardOverviewRead(BaseModel):
    total_records: int
    on_time_count: int
    late_count: int
    early_leave_count: int
    remote_count: int
    on_time_rate: float
    late_rate: float
    early_leave_rate: float
    remote_rate: float
    total_penalties: int


class DashboardPeriodRead(BaseModel):
    period: str
    total_records: int
    late_count: int
    early_leave_count: int
    total_work_minutes: int
    total_penalties: int


class DashboardViolatorRead(BaseModel):
    user_id: int
    full_name: str | None = None
    late_count: int
    early_leave_count: int
    total_late_minutes: int
    total_early_minutes: int
    total_penalties: int


class DashboardLeaveStatsRead(BaseModel):
    paid_leave_days: float
    unpaid_leave_days: float
    users_on_leave: int


class AttendanceDashboardRead(BaseModel):
    start_date: date
    end_date: date
    period: Literal["daily", "weekly", "monthly", "yearly"]
    overview: DashboardOverviewRead
    periods: list[DashboardPeriodRead]
    top_violators: list[DashboardViolatorRead]
    leave_stats: DashboardLeaveStatsRead


class AuditLogRead(BaseModel):
    id: int
    ts_utc: datetime
    actor_type: AuditActorType
    actor_id: str
    action: str
    entity_type: str | None = None
    entity_id: str | None = None
    success: bool
    details: dict[str, Any]

    model_config = ConfigDict(from_attributes=True)
