"""Registration, sign-in and session endpoints."""
from fastapi import APIRouter, Depends, Query
from pydantic import EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from .deps import get_current_claims
from ..core.config import settings
from ..core.database import get_db
from ..core.queue import JobQueue, get_job_queue
from ..core.security import Claims, issue_session_token
from ..schemas.auth_schemas import (
    ChangePasswordRequest, ForgotPasswordRequest, LoginRequest, RegisterRequest, ResetPasswordRequest
)
from ..services.auth_service import AuthService

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def session_response(claims: Claims) -> dict:
    return {
        "token": issue_session_token(claims),
        "tokenType": "bearer",
        "expiresIn": settings.session_max_age_seconds,
        "user": claims.model_dump(mode="json", by_alias=True),
    }


@router.post("/register", status_code=201)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
):
    """Register a new school and its first administrator"""
    return await AuthService(db, queue).register_school(data)


@router.get("/verify-email")
async def verify_email(
    email: EmailStr = Query(...),
    token: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
):
    return await AuthService(db).verify_email(email.lower(), token)


@router.post("/login")
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Exchange credentials for a bearer session token"""
    claims = await AuthService(db).authenticate(data.email, data.password, data.tenant_id)
    return session_response(claims)


@router.post("/refresh")
async def refresh(
    claims: Claims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    """Re-read the membership and issue a fresh token"""
    return session_response(await AuthService(db).refresh(claims))


@router.get("/me")
async def me(
    claims: Claims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    return await AuthService(db).get_profile(claims)


@router.post("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    claims: Claims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    await AuthService(db).change_password(claims, data.current_password, data.new_password)
    return {"message": "Password updated"}


@router.post("/forgot-password")
async def forgot_password(
    data: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
):
    await AuthService(db, queue).request_password_reset(data.email)
    return {"message": "If the account exists, a reset link has been sent"}


@router.post("/reset-password")
async def reset_password(data: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    await AuthService(db).reset_password(data.token, data.password)
    return {"message": "Password has been reset"}
