# insegnami/services/auth_service.py
"""Session/claims resolution and the identity lifecycle.

Sign-in resolves exactly one membership into ``Claims``; everything after
that trusts the signed token until ``refresh`` re-reads the membership.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, Optional
from urllib.parse import urlencode
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.exceptions import Conflict, Forbidden, NotFound, Unauthenticated, ValidationFailed
from ..core.queue import JobQueue
from ..core.security import Claims, generate_token, hash_password, verify_password
from ..models.lifecycle import ensure_transition
from ..models.shared.tenant import Tenant, slugify
from ..models.shared.user import (
    Role, TenantMembership, TokenPurpose, User, UserStatus, VerificationToken
)
from ..schemas.auth_schemas import InviteUserRequest, MemberUpdate, RegisterRequest
from ..utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db: AsyncSession, queue: Optional[JobQueue] = None):
        self.db = db
        self.queue = queue

    # Lookups

    async def get_user_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email.strip().lower())
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def resolve_membership(
        self, user_id: UUID, tenant_id: Optional[UUID] = None
    ) -> Optional[TenantMembership]:
        """The membership that governs a session: the requested tenant, else the oldest."""
        stmt = (
            select(TenantMembership)
            .options(selectinload(TenantMembership.tenant))
            .where(TenantMembership.user_id == user_id)
        )
        if tenant_id is not None:
            stmt = stmt.where(TenantMembership.tenant_id == tenant_id)
        stmt = stmt.order_by(TenantMembership.created_at.asc()).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    def build_claims(user: User, membership: TenantMembership) -> Claims:
        return Claims(
            user_id=user.id,
            email=user.email,
            role=membership.role,
            tenant_id=membership.tenant_id,
            tenant_name=membership.tenant.name,
            permissions=membership.permissions or {},
            status=user.status,
        )

    # Sessions

    async def authenticate(
        self, email: str, password: str, tenant_id: Optional[UUID] = None
    ) -> Claims:
        user = await self.get_user_by_email(email)
        # Same message for every failure so accounts cannot be enumerated
        if user is None or not user.password_hash:
            raise Unauthenticated("Invalid credentials")
        if not verify_password(password, user.password_hash):
            raise Unauthenticated("Invalid credentials")
        if user.status != UserStatus.ACTIVE:
            raise Unauthenticated("Account is not active")

        membership = await self.resolve_membership(user.id, tenant_id)
        if membership is None:
            raise Unauthenticated("No membership for this account")
        return self.build_claims(user, membership)

    async def refresh(self, claims: Claims) -> Claims:
        """Re-read identity and membership for a live session."""
        user = await self.db.get(User, claims.user_id)
        if user is None or user.status != UserStatus.ACTIVE:
            raise Unauthenticated("Account is not active")
        membership = await self.resolve_membership(user.id, claims.tenant_id)
        if membership is None:
            raise Unauthenticated("Membership no longer exists")
        return self.build_claims(user, membership)

    async def get_profile(self, claims: Claims) -> Dict[str, Any]:
        user = await self.db.get(User, claims.user_id)
        if user is None:
            raise Unauthenticated("Account no longer exists")
        stmt = (
            select(TenantMembership)
            .options(selectinload(TenantMembership.tenant))
            .where(TenantMembership.user_id == user.id)
            .order_by(TenantMembership.created_at.asc())
        )
        memberships = (await self.db.execute(stmt)).scalars().all()
        return {
            "id": str(user.id),
            "email": user.email,
            "firstName": user.first_name,
            "lastName": user.last_name,
            "phone": user.phone,
            "status": user.status.value,
            "emailVerifiedAt": user.email_verified_at.isoformat() if user.email_verified_at else None,
            "role": claims.role.value,
            "tenantId": str(claims.tenant_id),
            "tenantName": claims.tenant_name,
            "memberships": [
                {"tenantId": str(m.tenant_id), "tenantName": m.tenant.name, "role": m.role.value}
                for m in memberships
            ],
        }

    # Registration and verification

    async def _unique_slug(self, name: str) -> str:
        base = slugify(name) or "school"
        slug, suffix = base, 1
        while (await self.db.execute(select(Tenant.id).where(Tenant.slug == slug))).first():
            suffix += 1
            slug = f"{base}-{suffix}"
        return slug

    async def _issue_token(self, identifier: str, purpose: TokenPurpose, ttl: timedelta) -> str:
        await self.db.execute(
            delete(VerificationToken).where(
                VerificationToken.identifier == identifier,
                VerificationToken.purpose == purpose,
            )
        )
        token = generate_token()
        self.db.add(VerificationToken(
            identifier=identifier,
            token=token,
            purpose=purpose,
            expires_at=utcnow() + ttl,
        ))
        return token

    async def _consume_token(self, token: str, purpose: TokenPurpose, identifier: Optional[str] = None) -> VerificationToken:
        stmt = select(VerificationToken).where(
            VerificationToken.token == token,
            VerificationToken.purpose == purpose,
        )
        if identifier is not None:
            stmt = stmt.where(VerificationToken.identifier == identifier.strip().lower())
        record = (await self.db.execute(stmt)).scalar_one_or_none()
        if record is None:
            raise ValidationFailed("Invalid or expired token")
        if record.expires_at < utcnow():
            await self.db.delete(record)
            await self.db.commit()
            raise ValidationFailed("Invalid or expired token")
        await self.db.delete(record)
        return record

    async def _send(self, to: str, subject: str, html: str) -> bool:
        if self.queue is None:
            return False
        queued = await self.queue.enqueue_email(to=to, subject=subject, html=html)
        if not queued:
            logger.warning(f"Email '{subject}' to {to} was not queued")
        return queued

    def _link(self, path: str, **params: str) -> str:
        return f"{settings.app_base_url.rstrip('/')}{path}?{urlencode(params)}"

    async def register_school(self, data: RegisterRequest) -> Dict[str, Any]:
        """Create an inactive school, its pending admin and a verification token."""
        if not settings.registration_enabled:
            raise Forbidden("Self-registration is disabled")

        email = data.email.lower()
        if await self.get_user_by_email(email):
            raise Conflict("An account with this email already exists")

        tenant = Tenant(name=data.school_name, slug=await self._unique_slug(data.school_name), is_active=False)
        user = User(
            email=email,
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            status=UserStatus.PENDING,
        )
        self.db.add_all([tenant, user])
        await self.db.flush()
        self.db.add(TenantMembership(user_id=user.id, tenant_id=tenant.id, role=Role.ADMIN, permissions={}))
        token = await self._issue_token(
            email, TokenPurpose.EMAIL_VERIFICATION, timedelta(hours=settings.verification_token_ttl_hours)
        )
        await self.db.commit()
        logger.info(f"Registered school {tenant.id} ({tenant.slug}) with admin {user.id}")

        link = self._link("/auth/verify-email", token=token, email=email)
        email_queued = await self._send(
            email,
            "Verify your InsegnaMi account",
            f"<p>Hello {user.first_name},</p>"
            f"<p>Confirm your email to activate {tenant.name}: <a href=\"{link}\">{link}</a></p>",
        )
        return {
            "message": "Registration successful. Check your email to verify the account.",
            "userId": str(user.id),
            "tenantId": str(tenant.id),
            "email": email,
            "emailQueued": email_queued,
        }

    async def verify_email(self, email: str, token: str) -> Dict[str, Any]:
        await self._consume_token(token, TokenPurpose.EMAIL_VERIFICATION, identifier=email)
        user = await self.get_user_by_email(email)
        if user is None:
            raise NotFound("User")

        if user.status == UserStatus.PENDING:
            ensure_transition("User", user.status, UserStatus.ACTIVE)
            user.status = UserStatus.ACTIVE
        user.email_verified_at = utcnow()

        admin_tenants = select(TenantMembership.tenant_id).where(
            TenantMembership.user_id == user.id,
            TenantMembership.role == Role.ADMIN,
        )
        tenants = (await self.db.execute(
            select(Tenant).where(Tenant.id.in_(admin_tenants), Tenant.is_active.is_(False))
        )).scalars().all()
        for tenant in tenants:
            tenant.is_active = True
            logger.info(f"Activated tenant {tenant.id} after admin {user.id} verified email")

        await self.db.commit()
        return {"message": "Email verified", "userId": str(user.id), "activatedTenants": [str(t.id) for t in tenants]}

    # Passwords

    async def change_password(self, claims: Claims, current_password: str, new_password: str) -> None:
        user = await self.db.get(User, claims.user_id)
        if user is None:
            raise Unauthenticated("Account no longer exists")
        if not verify_password(current_password, user.password_hash):
            raise ValidationFailed("Current password is incorrect")
        user.password_hash = hash_password(new_password)
        await self.db.commit()
        logger.info(f"User {user.id} changed password")

    async def request_password_reset(self, email: str) -> None:
        """Always succeeds from the caller's view; mail goes out only for real accounts."""
        user = await self.get_user_by_email(email)
        if user is None or user.status in (UserStatus.SUSPENDED, UserStatus.INACTIVE):
            return
        token = await self._issue_token(
            user.email, TokenPurpose.PASSWORD_RESET, timedelta(hours=settings.password_reset_ttl_hours)
        )
        await self.db.commit()
        link = self._link("/auth/reset-password", token=token)
        await self._send(
            user.email,
            "Reset your InsegnaMi password",
            f"<p>Hello {user.first_name},</p><p>Set a new password here: <a href=\"{link}\">{link}</a></p>",
        )

    async def reset_password(self, token: str, password: str) -> None:
        record = await self._consume_token(token, TokenPurpose.PASSWORD_RESET)
        user = await self.get_user_by_email(record.identifier)
        if user is None:
            raise ValidationFailed("Invalid or expired token")
        user.password_hash = hash_password(password)
        # Invited accounts prove email ownership through the reset link
        if user.status == UserStatus.PENDING:
            user.status = UserStatus.ACTIVE
            user.email_verified_at = utcnow()
        await self.db.commit()
        logger.info(f"Password reset for user {user.id}")

    # Tenant members

    async def invite_user(self, claims: Claims, data: InviteUserRequest) -> Dict[str, Any]:
        if data.role == Role.SUPERADMIN and not claims.is_superadmin:
            raise Forbidden("Only a superadmin may grant SUPERADMIN")

        email = data.email.lower()
        user = await self.get_user_by_email(email)
        if user is not None:
            existing = await self.resolve_membership(user.id, claims.tenant_id)
            if existing is not None:
                raise Conflict("This user is already a member of the school")
        else:
            user = User(
                email=email,
                first_name=data.first_name,
                last_name=data.last_name,
                phone=data.phone,
                status=UserStatus.PENDING,
            )
            self.db.add(user)
            await self.db.flush()

        membership = TenantMembership(user_id=user.id, tenant_id=claims.tenant_id, role=data.role, permissions={})
        self.db.add(membership)

        invite_token = None
        if user.status == UserStatus.PENDING:
            invite_token = await self._issue_token(
                email, TokenPurpose.PASSWORD_RESET, timedelta(hours=settings.verification_token_ttl_hours)
            )
        await self.db.commit()
        logger.info(f"User {claims.user_id} invited {user.id} as {data.role.value} into tenant {claims.tenant_id}")

        if invite_token:
            link = self._link("/auth/reset-password", token=invite_token)
            body = f"<p>You have been invited to {claims.tenant_name}. Set your password: <a href=\"{link}\">{link}</a></p>"
        else:
            body = f"<p>You have been added to {claims.tenant_name} as {data.role.value}.</p>"
        email_queued = await self._send(email, f"Invitation to {claims.tenant_name}", body)

        return {**self.format_member(user, membership), "emailQueued": email_queued}

    async def list_members(
        self,
        claims: Claims,
        page: int = 1,
        limit: int = 20,
        role: Optional[Role] = None,
        status: Optional[UserStatus] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        stmt = (
            select(TenantMembership, User)
            .join(User, User.id == TenantMembership.user_id)
            .where(TenantMembership.tenant_id == claims.tenant_id)
        )
        if role:
            stmt = stmt.where(TenantMembership.role == role)
        if status:
            stmt = stmt.where(User.status == status)
        if search:
            term = f"%{search.lower()}%"
            stmt = stmt.where(or_(
                func.lower(User.first_name).like(term),
                func.lower(User.last_name).like(term),
                func.lower(User.email).like(term),
            ))

        total = (await self.db.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0
        rows = (await self.db.execute(
            stmt.order_by(User.last_name, User.first_name).offset((page - 1) * limit).limit(limit)
        )).all()
        return {
            "items": [self.format_member(user, membership) for membership, user in rows],
            "total": total,
            "page": page,
            "limit": limit,
        }

    async def update_member(self, claims: Claims, user_id: UUID, data: MemberUpdate) -> Dict[str, Any]:
        stmt = (
            select(TenantMembership)
            .options(selectinload(TenantMembership.user))
            .where(TenantMembership.user_id == user_id, TenantMembership.tenant_id == claims.tenant_id)
        )
        membership = (await self.db.execute(stmt)).scalar_one_or_none()
        if membership is None:
            raise NotFound("User", user_id)
        user = membership.user

        if data.role is not None and data.role != membership.role:
            if user.id == claims.user_id:
                raise Forbidden("You cannot change your own role")
            if Role.SUPERADMIN in (data.role, membership.role) and not claims.is_superadmin:
                raise Forbidden("Only a superadmin may grant or revoke SUPERADMIN")
            membership.role = data.role

        if data.status is not None:
            if user.id == claims.user_id:
                raise Forbidden("You cannot change your own status")
            ensure_transition("User", user.status, data.status)
            user.status = data.status

        if data.permissions is not None:
            membership.permissions = data.permissions

        await self.db.commit()
        logger.info(f"User {claims.user_id} updated member {user.id} in tenant {claims.tenant_id}")
        return self.format_member(user, membership)

    @staticmethod
    def format_member(user: User, membership: TenantMembership) -> Dict[str, Any]:
        return {
            "id": str(user.id),
            "email": user.email,
            "firstName": user.first_name,
            "lastName": user.last_name,
            "phone": user.phone,
            "status": user.status.value,
            "role": membership.role.value,
            "permissions": membership.permissions or {},
            "tenantId": str(membership.tenant_id),
        }
