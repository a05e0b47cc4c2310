import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, NamedTuple, Optional

import jwt
from fastapi import Depends, Header
from passlib.context import CryptContext

from syntaxmap import config
from syntaxmap.errors import ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)

ADMIN = 1
TEACHER = 2
STUDENT = 3
GUEST = 4
ROLES = (ADMIN, TEACHER, STUDENT, GUEST)
STAFF = (ADMIN, TEACHER)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # unknown or corrupt hash format
        return False


def create_access_token(user_id: str, role: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "user_id": str(user_id),
        "user_role": role,
        "authorization": role,
        "iat": now,
        "exp": now + timedelta(minutes=config.JWT_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired token")
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected invalid token: {e}")
    return None


def role_from_claims(claims: Optional[Dict[str, Any]]) -> int:
    """user_role, then authorization, then role; students when only a subject is known"""
    if not claims:
        return GUEST
    for claim in ("user_role", "authorization", "role"):
        value = claims.get(claim)
        if value is None:
            continue
        try:
            role = int(value)
        except (TypeError, ValueError):
            continue
        if role in ROLES:
            return role
    if user_id_from_claims(claims):
        return STUDENT
    return GUEST


def user_id_from_claims(claims: Optional[Dict[str, Any]]) -> Optional[str]:
    if not claims:
        return None
    for claim in ("sub", "user_id", "id"):
        value = claims.get(claim)
        if value not in (None, ""):
            return str(value)
    return None


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        return None
    return parts[1]


class Principal(NamedTuple):
    user_id: Optional[str]
    role: int

    @property
    def is_guest(self) -> bool:
        return self.role == GUEST

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF


# ========== DEPENDENCIES ==========
def current_user(authorization: Optional[str] = Header(None)) -> Principal:
    token = bearer_token(authorization)
    claims = decode_token(token) if token else None
    return Principal(user_id_from_claims(claims), role_from_claims(claims))


def require_user(principal: Principal = Depends(current_user)) -> Principal:
    if not principal.user_id:
        raise UnauthorizedError("Authentication required")
    return principal


def require_roles(*roles: int, message: Optional[str] = None):
    allowed = set(roles)

    def dependency(principal: Principal = Depends(current_user)) -> Principal:
        # a missing token is a guest, so staff gates answer 403 for it too
        if principal.role not in allowed:
            raise ForbiddenError(message or "Permission denied")
        if GUEST not in allowed and not principal.user_id:
            raise UnauthorizedError("Authentication required")
        return principal

    return dependency
