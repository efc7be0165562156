from sqlalchemy.orm import as_declarative, declared_attr
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import DateTime, Uuid
import uuid

from ..utils.timeutils import utcnow


@as_declarative()
class Base:
    __abstract__ = True  # Prevents creating a table for the base class

    @declared_attr
    def __tablename__(cls) -> str:
        return cls.__name__.lower()

    # Portable UUID type: native on PostgreSQL, CHAR(32) elsewhere
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, index=True, default=uuid.uuid4)
    created_at = mapped_column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
