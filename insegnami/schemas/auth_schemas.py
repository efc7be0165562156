# insegnami/schemas/auth_schemas.py
"""Pydantic schemas for registration, sign-in and user management."""
from typing import Any, Dict, List, Optional
from uuid import UUID
from pydantic import EmailStr, Field, field_validator, model_validator

from .base import RequestSchema
from ..models.shared.user import Role, UserStatus

MIN_PASSWORD_LENGTH = 8


class RegisterRequest(RequestSchema):
    school_name: str = Field(..., min_length=2, max_length=200, description="School name")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)
    phone: Optional[str] = Field(default=None, max_length=20)


class LoginRequest(RequestSchema):
    email: EmailStr
    password: str = Field(..., min_length=1)
    tenant_id: Optional[UUID] = Field(default=None, description="Membership to sign in with")


class ChangePasswordRequest(RequestSchema):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)

    @model_validator(mode='after')
    def validate_different(self):
        if self.current_password == self.new_password:
            raise ValueError('New password must differ from the current one')
        return self


class ForgotPasswordRequest(RequestSchema):
    email: EmailStr


class ResetPasswordRequest(RequestSchema):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)


class InviteUserRequest(RequestSchema):
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: Role
    phone: Optional[str] = Field(default=None, max_length=20)


class MemberUpdate(RequestSchema):
    """Admin changes to a tenant member; every field optional."""
    role: Optional[Role] = None
    status: Optional[UserStatus] = None
    permissions: Optional[Dict[str, List[str]]] = None

    @field_validator('permissions')
    @classmethod
    def validate_permissions(cls, v: Optional[Dict[str, Any]]):
        if v is None:
            return v
        unknown = set(v) - {"allow", "deny"}
        if unknown:
            raise ValueError(f"Unknown permission keys: {sorted(unknown)}")
        return v
