from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from hrops.errors import InvalidInputError
from hrops.models import PenaltyRule

logger = logging.getLogger("hrops.penalty")


@dataclass(frozen=True)
class BlockRule:
    minutes_per_block: int
    amount_per_block: int


@dataclass(frozen=True)
class PenaltyComputation:
    late_penalty: int
    early_penalty: int

    @property
    def total(self) -> int:
        return self.late_penalty + self.early_penalty


def _block_penalty(minutes: int, rule: BlockRule) -> int:
    if minutes <= 0 or rule.minutes_per_block <= 0:
        return 0
    return (minutes // rule.minutes_per_block) * rule.amount_per_block


def compute_penalty(
    *,
    late_minutes: int,
    early_minutes: int,
    rule: BlockRule | None,
) -> PenaltyComputation:
    # No configured rule never blocks attendance recording.
    if rule is None:
        return PenaltyComputation(late_penalty=0, early_penalty=0)
    return PenaltyComputation(
        late_penalty=_block_penalty(late_minutes, rule),
        early_penalty=_block_penalty(early_minutes, rule),
    )


def get_active_rule(db: Session) -> BlockRule | None:
    row = db.scalar(
        select(PenaltyRule)
        .where(PenaltyRule.is_active.is_(True))
        .order_by(PenaltyRule.created_at.desc(), PenaltyRule.id.desc())
        .limit(1)
    )
    if row is None:
        return None
    return BlockRule(minutes_per_block=row.minutes_per_block, amount_per_block=row.amount_per_block)


def set_active_rule(
    db: Session,
    *,
    minutes_per_block: int,
    amount_per_block: int,
) -> PenaltyRule:
    if minutes_per_block <= 0:
        raise InvalidInputError("minutes_per_block must be greater than zero")
    if amount_per_block < 0:
        raise InvalidInputError("amount_per_block must not be negative")

    for existing in db.scalars(select(PenaltyRule).where(PenaltyRule.is_active.is_(True))).all():
        existing.is_active = False

    rule = PenaltyRule(
        minutes_per_block=minutes_per_block,
        amount_per_block=amount_per_block,
        is_active=True,
    )
    db.add(rule)
    db.commit()
    db.refresh(rule)
    logger.info(
        "penalty_rule_updated",
        extra={"rule_id": rule.id, "minutes_per_block": minutes_per_block, "amount_per_block": amount_per_block},
    )
    return rule
