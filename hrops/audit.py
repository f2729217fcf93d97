from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session

from hrops.errors import get_request_id
from hrops.models import AuditActorType, AuditLog
from hrops.security import Identity

logger = logging.getLogger("hrops.audit")


def _client_ip(request: Request | None) -> str | None:
    if request is None or request.client is None:
        return None
    return request.client.host


def log_audit(
    db: Session,
    *,
    actor: Identity | None,
    action: str,
    entity_type: str | None = None,
    entity_id: int | str | None = None,
    success: bool = True,
    details: dict[str, Any] | None = None,
    request: Request | None = None,
) -> AuditLog | None:
    """Persist an audit row after the audited unit of work has committed.

    A failed audit write is logged and dropped so it never undoes the
    operation it describes.
    """
    actor_type = AuditActorType.USER if actor is not None else AuditActorType.SYSTEM
    actor_id = str(actor.user_id) if actor is not None else "system"
    request_id = get_request_id(request) if request is not None else None
    audit = AuditLog(
        ts_utc=datetime.now(timezone.utc),
        actor_type=actor_type,
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip=_client_ip(request),
        user_agent=request.headers.get("user-agent") if request is not None else None,
        success=success,
        details=details or {},
    )
    db.add(audit)
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "audit_log_write_failed",
            extra={"request_id": request_id, "action": action, "actor_id": actor_id, "success": success},
        )
        return None

    logger.info(
        "audit_event",
        extra={
            "request_id": request_id,
            "action": action,
            "actor_type": actor_type.value,
            "actor_id": actor_id,
            "entity_type": entity_type,
            "entity_id": audit.entity_id,
            "success": success,
            "details": details or {},
        },
    )
    return audit
