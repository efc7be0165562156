"""Row builders for tests; every helper commits what it creates."""
import uuid
from datetime import timedelta
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from insegnami.core.security import Claims, hash_password, issue_session_token
from insegnami.models import (
    Attendance, AttendanceStatus, ClassModel, EnrollmentStatus, Lesson, LessonStatus, Notice,
    NoticeAudience, NoticeType, Notification, NotificationPriority, NotificationStatus,
    NotificationType, Payment, PaymentMethod, PaymentStatus, Role, Student, StudentClass,
    StudentStatus, Teacher, Tenant, TenantMembership, User, UserStatus
)
from insegnami.utils.timeutils import utcnow


def auth_headers(claims: Claims) -> dict:
    return {"Authorization": f"Bearer {issue_session_token(claims)}"}


def _suffix() -> str:
    return uuid.uuid4().hex[:8]


class SchoolFactory:
    def __init__(self, session):
        self.session = session

    async def _save(self, *objs):
        self.session.add_all(objs)
        await self.session.commit()
        return objs[0] if len(objs) == 1 else objs

    async def reload(self, obj):
        await self.session.refresh(obj)
        return obj

    async def tenant(self, name: str = "Scuola Test", is_active: bool = True) -> Tenant:
        return await self._save(Tenant(name=name, slug=f"scuola-{_suffix()}", is_active=is_active))

    async def member(
        self,
        tenant: Tenant,
        role: Role,
        email: Optional[str] = None,
        password: Optional[str] = None,
        status: UserStatus = UserStatus.ACTIVE,
        permissions: Optional[dict] = None,
    ) -> Tuple[User, TenantMembership]:
        user = User(
            email=email or f"{role.value.lower()}-{_suffix()}@example.com",
            password_hash=hash_password(password) if password else None,
            first_name=role.value.title(),
            last_name="Rossi",
            status=status,
        )
        await self._save(user)
        membership = TenantMembership(
            user_id=user.id, tenant_id=tenant.id, role=role, permissions=permissions or {}
        )
        await self._save(membership)
        return user, membership

    async def claims(self, tenant: Tenant, role: Role, **kwargs) -> Claims:
        user, membership = await self.member(tenant, role, **kwargs)
        return Claims(
            user_id=user.id,
            email=user.email,
            role=role,
            tenant_id=tenant.id,
            tenant_name=tenant.name,
            permissions=membership.permissions,
        )

    async def teacher(self, tenant: Tenant, user_id=None, email: Optional[str] = None) -> Teacher:
        return await self._save(Teacher(
            tenant_id=tenant.id,
            user_id=user_id,
            first_name="Maria",
            last_name="Bianchi",
            email=email or f"teacher-{_suffix()}@example.com",
        ))

    async def student(
        self,
        tenant: Tenant,
        user_id=None,
        parent_user_id=None,
        first_name: str = "Luca",
        status: StudentStatus = StudentStatus.ACTIVE,
    ) -> Student:
        return await self._save(Student(
            tenant_id=tenant.id,
            user_id=user_id,
            parent_user_id=parent_user_id,
            student_code=f"S{_suffix()}",
            first_name=first_name,
            last_name="Verdi",
            status=status,
            enrollment_date=utcnow(),
        ))

    async def students(self, tenant: Tenant, count: int):
        return [await self.student(tenant, first_name=f"Student{i}") for i in range(count)]

    async def klass(self, tenant: Tenant, teacher: Optional[Teacher] = None, max_students: int = 20) -> ClassModel:
        return await self._save(ClassModel(
            tenant_id=tenant.id,
            teacher_id=teacher.id if teacher else None,
            name=f"Class {_suffix()}",
            code=f"C{_suffix()}",
            max_students=max_students,
            current_students=0,
            is_active=True,
        ))

    async def enroll(
        self,
        klass: ClassModel,
        students: Iterable[Student],
        status: EnrollmentStatus = EnrollmentStatus.ACTIVE,
        enrolled_at=None,
    ):
        rows = [
            StudentClass(
                student_id=s.id,
                class_id=klass.id,
                status=status,
                enrolled_at=enrolled_at or utcnow() - timedelta(days=30),
                dropped_at=utcnow() if status == EnrollmentStatus.DROPPED else None,
            )
            for s in students
        ]
        if status == EnrollmentStatus.ACTIVE:
            klass.current_students = (klass.current_students or 0) + len(rows)
        self.session.add_all(rows)
        await self.session.commit()
        return rows

    async def lesson(
        self,
        klass: ClassModel,
        start=None,
        status: LessonStatus = LessonStatus.SCHEDULED,
        teacher: Optional[Teacher] = None,
    ) -> Lesson:
        start = start or utcnow() - timedelta(days=1)
        return await self._save(Lesson(
            tenant_id=klass.tenant_id,
            class_id=klass.id,
            teacher_id=teacher.id if teacher else klass.teacher_id,
            title="Lezione",
            start_time=start,
            end_time=start + timedelta(hours=1),
            status=status,
        ))

    async def attendance(self, lesson: Lesson, student: Student, status: AttendanceStatus) -> Attendance:
        return await self._save(Attendance(
            tenant_id=lesson.tenant_id, lesson_id=lesson.id, student_id=student.id, status=status
        ))

    async def payment(
        self,
        student: Student,
        amount: str = "100.00",
        status: PaymentStatus = PaymentStatus.PENDING,
        due_date=None,
        paid_date=None,
    ) -> Payment:
        return await self._save(Payment(
            tenant_id=student.tenant_id,
            student_id=student.id,
            amount=Decimal(amount),
            payment_method=PaymentMethod.BANK_TRANSFER,
            status=status,
            due_date=due_date or utcnow() + timedelta(days=10),
            paid_date=paid_date,
        ))

    async def notice(
        self,
        tenant: Tenant,
        roles: Iterable[Role],
        title: str = "Avviso",
        publish_at=None,
        expires_at=None,
        is_urgent: bool = False,
    ) -> Notice:
        notice = Notice(
            tenant_id=tenant.id,
            title=title,
            content="Contenuto",
            type=NoticeType.ANNOUNCEMENT,
            publish_at=publish_at or utcnow() - timedelta(hours=1),
            expires_at=expires_at,
            is_urgent=is_urgent,
        )
        notice.audiences = [NoticeAudience(role=role) for role in roles]
        return await self._save(notice)

    async def notification(
        self,
        tenant: Tenant,
        user_id,
        title: str = "Ciao",
        priority: NotificationPriority = NotificationPriority.NORMAL,
        status: NotificationStatus = NotificationStatus.UNREAD,
        scheduled_for=None,
        expires_at=None,
    ) -> Notification:
        return await self._save(Notification(
            tenant_id=tenant.id,
            user_id=user_id,
            title=title,
            content="Contenuto",
            type=NotificationType.SYSTEM,
            priority=priority,
            status=status,
            scheduled_for=scheduled_for,
            expires_at=expires_at,
        ))
