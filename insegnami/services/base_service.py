# insegnami/services/base_service.py
"""Base service with common tenant-scoped CRUD operations."""
from typing import Any, Dict, Generic, Iterable, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.security import Claims
from ..core.tenant_scope import get_scoped_or_404, scope_query

# Define generic type
T = TypeVar('T')


class BaseService(Generic[T]):
    """CRUD over one model, always inside the caller's tenant scope."""

    label: Optional[str] = None

    def __init__(self, model: Type[T], db: AsyncSession, claims: Claims):
        self.model = model
        self.db = db
        self.claims = claims

    @property
    def tenant_id(self):
        return self.claims.tenant_id

    def scoped(self, stmt=None, owned_only: bool = True):
        if stmt is None:
            stmt = select(self.model)
        return scope_query(stmt, self.model, self.claims, owned_only=owned_only)

    async def get(self, id: Any, for_update: bool = False, options: Iterable[Any] = ()) -> T:
        return await get_scoped_or_404(
            self.db, self.model, id, self.claims,
            label=self.label or self.model.__name__,
            options=options,
            for_update=for_update,
        )

    async def count(self, *criteria) -> int:
        stmt = self.scoped(select(func.count()).select_from(self.model))
        if criteria:
            stmt = stmt.where(*criteria)
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def get_paginated(
        self,
        page: int = 1,
        limit: int = 20,
        criteria: Sequence[Any] = (),
        order_by: Sequence[Any] = (),
        options: Iterable[Any] = (),
    ) -> Dict[str, Any]:
        """Get paginated results; ``items`` holds ORM objects."""
        stmt = self.scoped()
        if criteria:
            stmt = stmt.where(*criteria)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.db.execute(count_stmt)).scalar() or 0

        for option in options:
            stmt = stmt.options(option)
        if order_by:
            stmt = stmt.order_by(*order_by)
        stmt = stmt.offset((page - 1) * limit).limit(limit)
        result = await self.db.execute(stmt)
        items = result.scalars().all()

        return {"items": items, "total": total, "page": page, "limit": limit}

    async def create(self, obj_in: Dict) -> T:
        obj = self.model(**obj_in)
        if hasattr(obj, "tenant_id"):
            obj.tenant_id = self.tenant_id
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def update(self, id: Any, obj_in: Dict) -> T:
        obj = await self.get(id)
        for key, value in obj_in.items():
            setattr(obj, key, value)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def hard_delete(self, id: Any, options: Iterable[Any] = ()) -> None:
        """Permanently delete record from database"""
        obj = await self.get(id, options=options)
        await self.db.delete(obj)
        await self.db.commit()
