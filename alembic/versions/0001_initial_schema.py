"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None

ROLES = ('SUPERADMIN', 'ADMIN', 'TEACHER', 'STUDENT', 'PARENT')

# notice_audiences reuses the enum type created with tenant_memberships
role_enum = sa.Enum(*ROLES, name='role')
role_enum_existing = postgresql.ENUM(*ROLES, name='role', create_type=False)

TABLES = (
    'tenants', 'users', 'tenant_memberships', 'verification_tokens', 'teachers', 'students',
    'classes', 'student_classes', 'lessons', 'attendances', 'payments', 'notices',
    'notice_audiences', 'notifications',
)

ENUM_TYPES = (
    'user_status', 'role', 'token_purpose', 'teacher_status', 'student_status', 'enrollment_status',
    'lesson_status', 'attendance_status', 'payment_method', 'payment_status', 'notice_type',
    'notification_type', 'notification_priority', 'notification_status',
)


def _base_columns():
    return [
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def _create_table(name, *columns):
    op.create_table(name, *_base_columns(), *columns, sa.PrimaryKeyConstraint('id'))
    op.create_index(op.f(f'ix_{name}_id'), name, ['id'])
    op.create_index(op.f(f'ix_{name}_created_at'), name, ['created_at'])


def _index(table, *columns):
    for column in columns:
        op.create_index(op.f(f'ix_{table}_{column}'), table, [column])


def upgrade() -> None:
    _create_table('tenants',
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('slug', sa.String(length=200), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.UniqueConstraint('slug', name='uq_tenant_slug'),
    )
    _index('tenants', 'name')
    op.create_index('idx_tenant_active_name', 'tenants', ['is_active', 'name'])

    _create_table('users',
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('status', sa.Enum('PENDING', 'ACTIVE', 'SUSPENDED', 'INACTIVE', name='user_status'), nullable=False),
        sa.Column('email_verified_at', sa.DateTime(), nullable=True),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    _index('users', 'status')

    _create_table('tenant_memberships',
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('role', role_enum, nullable=False),
        sa.Column('permissions', sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'tenant_id', name='uq_membership_user_tenant'),
    )
    _index('tenant_memberships', 'user_id', 'tenant_id')
    op.create_index('idx_membership_tenant_role', 'tenant_memberships', ['tenant_id', 'role'])

    _create_table('verification_tokens',
        sa.Column('identifier', sa.String(length=254), nullable=False),
        sa.Column('token', sa.String(length=128), nullable=False),
        sa.Column('purpose', sa.Enum('EMAIL_VERIFICATION', 'PASSWORD_RESET', name='token_purpose'), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('token'),
    )
    _index('verification_tokens', 'identifier')

    _create_table('teachers',
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('specialization', sa.String(length=200), nullable=True),
        sa.Column('status', sa.Enum('ACTIVE', 'INACTIVE', name='teacher_status'), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.UniqueConstraint('tenant_id', 'email', name='uq_teacher_tenant_email'),
    )
    _index('teachers', 'tenant_id', 'user_id', 'email')

    _create_table('students',
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('parent_user_id', sa.Uuid(), nullable=True),
        sa.Column('student_code', sa.String(length=20), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('date_of_birth', sa.DateTime(), nullable=True),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('parent_name', sa.String(length=200), nullable=True),
        sa.Column('parent_email', sa.String(length=254), nullable=True),
        sa.Column('parent_phone', sa.String(length=20), nullable=True),
        sa.Column('emergency_contact', sa.String(length=200), nullable=True),
        sa.Column('medical_notes', sa.Text(), nullable=True),
        sa.Column('status', sa.Enum('ACTIVE', 'INACTIVE', 'GRADUATED', 'TRANSFERRED', name='student_status'), nullable=False),
        sa.Column('enrollment_date', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['parent_user_id'], ['users.id']),
        sa.UniqueConstraint('tenant_id', 'student_code', name='uq_student_tenant_code'),
    )
    _index('students', 'tenant_id', 'user_id', 'parent_user_id', 'student_code', 'email', 'status')

    _create_table('classes',
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('teacher_id', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('max_students', sa.Integer(), nullable=False),
        sa.Column('current_students', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['teacher_id'], ['teachers.id']),
        sa.UniqueConstraint('tenant_id', 'code', name='uq_class_tenant_code'),
        sa.CheckConstraint('max_students > 0', name='ck_class_capacity_positive'),
    )
    _index('classes', 'tenant_id', 'teacher_id', 'name')

    _create_table('student_classes',
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('class_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.Enum('ACTIVE', 'DROPPED', name='enrollment_status'), nullable=False),
        sa.Column('enrolled_at', sa.DateTime(), nullable=False),
        sa.Column('dropped_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['student_id'], ['students.id']),
        sa.ForeignKeyConstraint(['class_id'], ['classes.id']),
        sa.UniqueConstraint('student_id', 'class_id', name='uq_student_class'),
    )
    _index('student_classes', 'student_id', 'class_id')
    op.create_index('idx_student_class_active', 'student_classes', ['class_id', 'status'])

    _create_table('lessons',
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('class_id', sa.Uuid(), nullable=False),
        sa.Column('teacher_id', sa.Uuid(), nullable=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('room', sa.String(length=50), nullable=True),
        sa.Column('status', sa.Enum('SCHEDULED', 'COMPLETED', 'CANCELLED', name='lesson_status'), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['class_id'], ['classes.id']),
        sa.ForeignKeyConstraint(['teacher_id'], ['teachers.id']),
    )
    _index('lessons', 'tenant_id', 'class_id', 'teacher_id')
    op.create_index('idx_lesson_tenant_start', 'lessons', ['tenant_id', 'start_time'])

    _create_table('attendances',
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('lesson_id', sa.Uuid(), nullable=False),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('recorded_by', sa.Uuid(), nullable=True),
        sa.Column('status', sa.Enum('PRESENT', 'ABSENT', 'LATE', 'EXCUSED', name='attendance_status'), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['lesson_id'], ['lessons.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['student_id'], ['students.id']),
        sa.ForeignKeyConstraint(['recorded_by'], ['users.id']),
        sa.UniqueConstraint('lesson_id', 'student_id', name='uq_attendance_lesson_student'),
    )
    _index('attendances', 'tenant_id', 'lesson_id', 'student_id', 'status')

    _create_table('payments',
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('class_id', sa.Uuid(), nullable=True),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('payment_method', sa.Enum('CASH', 'CARD', 'BANK_TRANSFER', 'ONLINE', 'OTHER', name='payment_method'), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'PAID', 'OVERDUE', 'CANCELLED', 'REFUNDED', name='payment_status'), nullable=False),
        sa.Column('due_date', sa.DateTime(), nullable=False),
        sa.Column('paid_date', sa.DateTime(), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('reference', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['student_id'], ['students.id']),
        sa.ForeignKeyConstraint(['class_id'], ['classes.id']),
        sa.CheckConstraint('amount > 0', name='ck_payment_amount_positive'),
    )
    _index('payments', 'tenant_id', 'student_id', 'class_id')
    op.create_index('idx_payment_tenant_status_due', 'payments', ['tenant_id', 'status', 'due_date'])

    _create_table('notices',
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('author_id', sa.Uuid(), nullable=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('type', sa.Enum('ANNOUNCEMENT', 'EVENT', 'REMINDER', 'URGENT', name='notice_type'), nullable=False),
        sa.Column('is_public', sa.Boolean(), nullable=False),
        sa.Column('publish_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('is_pinned', sa.Boolean(), nullable=False),
        sa.Column('is_urgent', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['author_id'], ['users.id']),
    )
    _index('notices', 'tenant_id', 'publish_at')

    _create_table('notice_audiences',
        sa.Column('notice_id', sa.Uuid(), nullable=False),
        sa.Column('role', role_enum_existing, nullable=False),
        sa.ForeignKeyConstraint(['notice_id'], ['notices.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('notice_id', 'role', name='uq_notice_audience_role'),
    )
    _index('notice_audiences', 'notice_id')

    _create_table('notifications',
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('type', sa.Enum('SYSTEM', 'MESSAGE', 'ATTENDANCE', 'PAYMENT', 'LESSON', 'NOTICE', 'REMINDER', name='notification_type'), nullable=False),
        sa.Column('priority', sa.Enum('LOW', 'NORMAL', 'HIGH', 'URGENT', name='notification_priority'), nullable=False),
        sa.Column('status', sa.Enum('UNREAD', 'READ', 'DISMISSED', name='notification_status'), nullable=False),
        sa.Column('action_url', sa.String(length=500), nullable=True),
        sa.Column('source_type', sa.String(length=50), nullable=True),
        sa.Column('source_id', sa.String(length=64), nullable=True),
        sa.Column('scheduled_for', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('dismissed_at', sa.DateTime(), nullable=True),
        sa.Column('email_sent', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    _index('notifications', 'tenant_id', 'user_id')
    op.create_index('idx_notification_user_status', 'notifications', ['user_id', 'status'])


def downgrade() -> None:
    for table in reversed(TABLES):
        op.drop_table(table)
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for name in ENUM_TYPES:
            op.execute(f'DROP TYPE IF EXISTS {name}')
