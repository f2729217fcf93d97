from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
        }


REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "users": {"id", "is_active", "deleted_at"},
    "work_shifts": {"id", "morning_start", "afternoon_end", "start_date", "end_date"},
    "timesheet_days": {"id", "user_id", "work_date", "approved_late_minutes", "day_off_request_id"},
    "leave_balances": {"id", "user_id", "paid_leave_balance", "version"},
    "leave_transactions": {"id", "user_id", "amount", "balance_after"},
    "attendance_requests": {"id", "kind", "status", "payload", "deleted_at"},
    "request_day_claims": {"id", "request_id", "user_id", "work_date", "kind"},
    "alembic_version": {"version_num"},
}

# Postgres enum types whose labels the services write.
REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "request_kind": {"REMOTE_WORK", "DAY_OFF", "OVERTIME", "LATE_EARLY", "FORGOT_CHECKIN"},
    "leave_transaction_type": {"EARNED", "USED", "ADJUSTED", "CARRY_OVER"},
}

REQUIRED_UNIQUE_CONSTRAINTS: dict[str, str] = {
    "timesheet_days": "uq_timesheet_days_user_work_date",
    "request_day_claims": "uq_request_day_claims_user_date_kind",
}


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    issues: list[str] = []
    warnings: list[str] = []
    checked_at_utc = datetime.now(timezone.utc)
    inspector = inspect(engine)

    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        try:
            column_names = {str(item.get("name")) for item in inspector.get_columns(table_name)}
        except Exception as exc:
            issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue

        missing_columns = sorted(item for item in required_columns if item not in column_names)
        if missing_columns:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing_columns)}")

    for table_name, constraint_name in REQUIRED_UNIQUE_CONSTRAINTS.items():
        try:
            names = {str(item.get("name")) for item in inspector.get_unique_constraints(table_name)}
        except Exception as exc:
            warnings.append(f"UNIQUE_INSPECTION_FAILED:{table_name}:{exc.__class__.__name__}")
            continue
        if constraint_name not in names:
            issues.append(f"MISSING_UNIQUE_CONSTRAINT:{table_name}:{constraint_name}")

    if engine.dialect.name == "postgresql":
        try:
            enums = inspector.get_enums() or []
        except Exception as exc:
            warnings.append(f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}")
            enums = []

        enum_values_by_name = {
            str(item.get("name")): {str(label) for label in item.get("labels") or []}
            for item in enums
            if item.get("name")
        }
        for enum_name, required_values in REQUIRED_ENUM_VALUES.items():
            if enum_name not in enum_values_by_name:
                warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
                continue
            missing_values = sorted(item for item in required_values if item not in enum_values_by_name[enum_name])
            if missing_values:
                issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(missing_values)}")

    try:
        with engine.connect() as connection:
            row = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
            version = str(row).strip() if row is not None else ""
            if not version:
                issues.append("ALEMBIC_VERSION_EMPTY")
    except Exception as exc:
        issues.append(f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}")

    return SchemaGuardResult(
        ok=len(issues) == 0,
        checked_at_utc=checked_at_utc,
        issues=issues,
        warnings=warnings,
    )
