# insegnami/core/security.py
"""Password hashing, one-time tokens and signed session tokens."""
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

import bcrypt
import jwt
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import settings
from .exceptions import Unauthenticated
from ..models.shared.user import Role, UserStatus

BCRYPT_ROUNDS = 12


class Claims(BaseModel):
    """Identity plus the single membership that governs a request."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_id: UUID = Field(alias="userId")
    email: str
    role: Role
    tenant_id: UUID = Field(alias="tenantId")
    tenant_name: str = Field(alias="tenantName")
    permissions: Dict[str, Any] = Field(default_factory=dict)
    status: UserStatus = UserStatus.ACTIVE

    @property
    def is_superadmin(self) -> bool:
        return self.role == Role.SUPERADMIN

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.ADMIN, Role.SUPERADMIN)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def generate_token() -> str:
    """Random hex token for email verification and password resets."""
    return secrets.token_hex(32)


def issue_session_token(claims: Claims, max_age_seconds: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    max_age = max_age_seconds or settings.session_max_age_seconds
    payload = claims.model_dump(mode="json", by_alias=True)
    payload.update({
        "sub": str(claims.user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=max_age)).timestamp()),
    })
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_session_token(token: str) -> Claims:
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise Unauthenticated("Session expired") from exc
    except jwt.InvalidTokenError as exc:
        raise Unauthenticated("Invalid session") from exc

    try:
        return Claims.model_validate(payload)
    except ValidationError as exc:
        raise Unauthenticated("Invalid session payload") from exc
