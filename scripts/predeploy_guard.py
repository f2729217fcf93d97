#!/usr/bin/env python
from __future__ import annotations

import json
import re
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, text

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from hrops.services.schema_guard import verify_runtime_schema
from hrops.settings import get_approver_roles, get_settings

VERSIONS_DIR = ROOT_DIR / "hrops" / "migrations" / "versions"


@dataclass(slots=True)
class CheckResult:
    name: str
    status: str
    details: dict[str, Any]


def _extract_revision_ids() -> list[str]:
    revisions: list[str] = []
    pattern = re.compile(r'^\s*revision\s*:\s*str\s*=\s*"([^"]+)"\s*$', re.MULTILINE)
    for path in sorted(VERSIONS_DIR.glob("*.py")):
        match = pattern.search(path.read_text(encoding="utf-8"))
        if match:
            revisions.append(match.group(1).strip())
    return revisions


def _check_revision_id_lengths() -> CheckResult:
    revisions = _extract_revision_ids()
    too_long = [revision for revision in revisions if len(revision) > 32]
    return CheckResult(
        name="migration_revision_length",
        status="ok" if not too_long else "fail",
        details={"max_len": 32, "too_long": too_long, "total": len(revisions)},
    )


def _check_leave_policy() -> CheckResult:
    settings = get_settings()
    problems: list[str] = []
    if not (settings.jwt_secret or "").strip():
        problems.append("JWT_SECRET_NOT_SET")
    if not get_approver_roles():
        problems.append("APPROVER_ROLES_EMPTY")
    if settings.max_carry_over_days < 0:
        problems.append("MAX_CARRY_OVER_NEGATIVE")
    if settings.monthly_paid_leave_accrual < 0:
        problems.append("MONTHLY_ACCRUAL_NEGATIVE")
    return CheckResult(
        name="leave_policy_config",
        status="ok" if not problems else "fail",
        details={
            "problems": problems,
            "annual_paid_leave_quota": settings.annual_paid_leave_quota,
            "max_carry_over_days": settings.max_carry_over_days,
            "monthly_paid_leave_accrual": settings.monthly_paid_leave_accrual,
        },
    )


def _expected_alembic_heads() -> list[str]:
    config = Config(str(ROOT_DIR / "alembic.ini"))
    script = ScriptDirectory.from_config(config)
    return sorted(script.get_heads())


def _check_database_migration_and_schema() -> CheckResult:
    database_url = (get_settings().database_url or "").strip()
    if not database_url:
        return CheckResult(name="database_schema_guard", status="warn", details={"reason": "DATABASE_URL_NOT_SET"})

    expected_heads = _expected_alembic_heads()
    engine = create_engine(database_url, pool_pre_ping=True)
    try:
        with engine.connect() as connection:
            current_versions = [
                str(row[0]).strip()
                for row in connection.execute(text("SELECT version_num FROM alembic_version")).fetchall()
                if row and row[0] is not None
            ]
        schema_result = verify_runtime_schema(engine)
    finally:
        engine.dispose()

    missing_heads = [head for head in expected_heads if head not in current_versions]
    return CheckResult(
        name="database_schema_guard",
        status="fail" if missing_heads or not schema_result.ok else "ok",
        details={
            "expected_heads": expected_heads,
            "current_versions": current_versions,
            "missing_heads": missing_heads,
            "schema_guard": schema_result.to_dict(),
        },
    )


def main() -> int:
    checks = [
        _check_revision_id_lengths(),
        _check_leave_policy(),
        _check_database_migration_and_schema(),
    ]
    failed_checks = [check for check in checks if check.status == "fail"]
    summary = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "ok": len(failed_checks) == 0,
        "checks": [{"name": check.name, "status": check.status, "details": check.details} for check in checks],
    }
    print(json.dumps(summary, ensure_ascii=False, indent=2))
    return 0 if len(failed_checks) == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
