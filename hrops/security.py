from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable
from uuid import uuid4

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from hrops.errors import ApiError, UnauthorizedError
from hrops.models import AttendanceRequest
from hrops.settings import get_approver_roles, get_settings

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    user_id: int
    username: str
    roles: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_approver(self) -> bool:
        return bool(self.roles & get_approver_roles())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_roles(raw: Any) -> frozenset[str]:
    if isinstance(raw, str):
        raw = raw.split(",")
    if not isinstance(raw, Iterable):
        return frozenset()
    return frozenset(str(role).strip().lower() for role in raw if str(role).strip())


def create_access_token(
    *,
    user_id: int,
    username: str,
    roles: Iterable[str] = (),
) -> tuple[str, int, dict[str, Any]]:
    settings = get_settings()
    now = _utcnow()
    exp = now + timedelta(minutes=settings.access_token_minutes)
    claims = {
        "sub": str(user_id),
        "username": username,
        "roles": sorted(_normalize_roles(list(roles))),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
        "jti": str(uuid4()),
        "typ": "access",
    }
    token = jwt.encode(claims, settings.jwt_secret, algorithm="HS256")
    return token, settings.access_token_minutes * 60, claims


def decode_token(token: str) -> Identity:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_iat": True, "require_exp": True},
        )
    except JWTError as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token is invalid.") from exc

    if payload.get("typ") != "access":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token type is invalid.")

    subject = payload.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError) as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token subject is invalid.") from exc

    return Identity(
        user_id=user_id,
        username=str(payload.get("username") or subject),
        roles=_normalize_roles(payload.get("roles") or ()),
    )


def require_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Identity:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Missing bearer token.")

    identity = decode_token(credentials.credentials)
    request.state.actor_id = str(identity.user_id)
    return identity


def require_approver(identity: Identity = Depends(require_identity)) -> Identity:
    if not identity.is_approver:
        raise UnauthorizedError()
    return identity


def ensure_self_or_approver(identity: Identity, user_id: int) -> None:
    if identity.user_id != user_id and not identity.is_approver:
        raise UnauthorizedError(details={"user_id": user_id})


def can_approve(identity: Identity, request: AttendanceRequest) -> bool:
    """Approvers may act on anyone's request except their own."""
    if not identity.is_approver:
        return False
    return identity.user_id != request.user_id
