from __future__ import annotations

from datetime import date, datetime, time, timezone

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from hrops import models  # noqa: F401
from hrops.clock import FixedClock
from hrops.db import Base
from hrops.models import LeaveTransactionType, LeaveType, PenaltyRule, User, WorkShift, WorkShiftType
from hrops.security import Identity
from hrops.services.leave_ledger import apply_transaction

# Monday 2024-02-12, 10:00 in Asia/Ho_Chi_Minh.
MONDAY_MORNING = datetime(2024, 2, 12, 3, 0, tzinfo=timezone.utc)


def _emit_own_begin(engine: Engine, begin_statement: str = "BEGIN") -> None:
    # pysqlite defers BEGIN on its own; let SQLAlchemy emit it so SAVEPOINTs nest.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, _record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(connection):  # type: ignore[no-untyped-def]
        connection.exec_driver_sql(begin_statement)


def make_session() -> Session:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _emit_own_begin(engine)
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return factory()


def make_shared_session_factory(path: str) -> sessionmaker:
    """Sessions on one SQLite file, each on its own connection.

    Transactions open with BEGIN IMMEDIATE, so the database write lock does the
    job of the row locks Postgres takes for FOR UPDATE.
    """
    engine = create_engine(
        f"sqlite+pysqlite:///{path}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    _emit_own_begin(engine, "BEGIN IMMEDIATE")
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def make_clock(value: datetime = MONDAY_MORNING) -> FixedClock:
    return FixedClock(value)


def add_user(db: Session, full_name: str = "Test Employee", *, is_active: bool = True) -> User:
    user = User(full_name=full_name, is_active=is_active)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def add_shift(
    db: Session,
    *,
    start_date: date = date(2024, 1, 1),
    end_date: date = date(2024, 12, 31),
    morning: tuple[time, time] = (time(8, 0), time(12, 0)),
    afternoon: tuple[time, time] = (time(13, 30), time(17, 30)),
    shift_type: WorkShiftType = WorkShiftType.NORMAL,
) -> WorkShift:
    shift = WorkShift(
        name="Office hours",
        type=shift_type,
        start_date=start_date,
        end_date=end_date,
        morning_start=morning[0],
        morning_end=morning[1],
        afternoon_start=afternoon[0],
        afternoon_end=afternoon[1],
    )
    db.add(shift)
    db.commit()
    db.refresh(shift)
    return shift


def add_penalty_rule(db: Session, *, minutes_per_block: int = 15, amount_per_block: int = 50000) -> PenaltyRule:
    rule = PenaltyRule(minutes_per_block=minutes_per_block, amount_per_block=amount_per_block, is_active=True)
    db.add(rule)
    db.commit()
    return rule


def credit_paid_leave(db: Session, *, user_id: int, days: float, clock: FixedClock) -> None:
    apply_transaction(
        db,
        user_id=user_id,
        transaction_type=LeaveTransactionType.ADJUSTED,
        leave_type=LeaveType.PAID,
        amount=days,
        reference_type="manual_adjustment",
        clock=clock,
    )
    db.commit()


def approver(user_id: int, *, roles: tuple[str, ...] = ("manager",)) -> Identity:
    return Identity(user_id=user_id, username=f"user-{user_id}", roles=frozenset(roles))


def employee(user_id: int) -> Identity:
    return Identity(user_id=user_id, username=f"user-{user_id}", roles=frozenset({"employee"}))
