"""
Portal session verification
Sessions are HS256 JWTs carried either as a Bearer token or in a
role-specific cookie ({role}_session).
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from jose import jwt as jose_jwt
from pydantic import BaseModel

from .config import SECRET_KEY, SESSION_TTL_HOURS
from .errors import ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ROLES = ("admin", "teacher", "parent", "staff", "engineer")

security = HTTPBearer(auto_error=False)


class Session(BaseModel):
    user_id: str
    email: str
    role: str
    name: Optional[str] = None
    # Canonical event ids a teacher/parent/staff session may act on
    event_ids: list[str] = []

    def can_access_event(self, event_id: str) -> bool:
        if self.role in ("admin", "engineer"):
            return True
        return event_id in self.event_ids


def create_session_token(session: Session, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=SESSION_TTL_HOURS))
    payload = session.model_dump()
    payload["sub"] = session.user_id
    payload["exp"] = expire
    return jose_jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def verify_session(token: Optional[str], role: str) -> Optional[Session]:
    """Decode a session token; None when missing, invalid, expired or for another role"""
    if not token:
        return None
    try:
        payload = jose_jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"⚠️ Invalid {role} session token: {e}")
        return None

    if payload.get("role") != role:
        logger.warning(f"⚠️ Session role mismatch: expected {role}, got {payload.get('role')}")
        return None

    return Session(
        user_id=str(payload.get("user_id") or payload.get("sub")),
        email=payload.get("email", ""),
        role=role,
        name=payload.get("name"),
        event_ids=payload.get("event_ids") or [],
    )


def _session_dependency(role: str) -> Callable:
    async def dependency(
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    ) -> Session:
        token = credentials.credentials if credentials else request.cookies.get(f"{role}_session")
        session = verify_session(token, role)
        if session is None:
            raise UnauthorizedError(f"{role.capitalize()} session required")
        return session

    dependency.__name__ = f"require_{role}"
    return dependency


require_admin = _session_dependency("admin")
require_teacher = _session_dependency("teacher")
require_parent = _session_dependency("parent")
require_staff = _session_dependency("staff")
require_engineer = _session_dependency("engineer")


def ensure_event_access(session: Session, event_id: str) -> None:
    """Ownership check for non-admin roles"""
    if not session.can_access_event(event_id):
        logger.warning(f"⚠️ {session.role} {session.email} denied access to event {event_id}")
        raise ForbiddenError("You do not have access to this event")
