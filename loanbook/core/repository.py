"""
Generic persistence collaborator.

A thin CRUD surface over an ``AsyncSession`` for one declarative model.
Services issue only these primitive calls; projections and paging are plain
parameters. Transaction boundaries (commit / rollback) stay with the caller.
"""
from decimal import Decimal
from typing import Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select, update as sql_update
from sqlalchemy.ext.asyncio import AsyncSession

from loanbook.core.database import Base

ModelT = TypeVar("ModelT", bound=Base)


class Repository(Generic[ModelT]):
    """CRUD operations for a single model"""

    def __init__(self, db: AsyncSession, model: Type[ModelT]):
        self.db = db
        self.model = model

    async def find_unique(self, for_update: bool = False, **key: Any) -> Optional[ModelT]:
        """Fetch by primary key or unique column; lock the row when for_update is set"""
        query = select(self.model).filter_by(**key)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def find_first(self, *criteria: Any, order_by: Optional[Sequence[Any]] = None) -> Optional[ModelT]:
        query = select(self.model).where(*criteria)
        if order_by:
            query = query.order_by(*order_by)
        result = await self.db.execute(query.limit(1))
        return result.scalars().first()

    async def find_many(
        self,
        *criteria: Any,
        order_by: Optional[Sequence[Any]] = None,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[ModelT]:
        query = select(self.model).where(*criteria)
        if order_by:
            query = query.order_by(*order_by)
        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create(self, **data: Any) -> ModelT:
        instance = self.model(**data)
        self.db.add(instance)
        await self.db.flush()
        await self.db.refresh(instance)
        return instance

    async def update(self, instance: ModelT, **data: Any) -> ModelT:
        for field, value in data.items():
            setattr(instance, field, value)
        await self.db.flush()
        await self.db.refresh(instance)
        return instance

    async def update_many(self, *criteria: Any, **data: Any) -> int:
        """Bulk update every row matching criteria; returns the number of rows touched"""
        result = await self.db.execute(
            sql_update(self.model)
            .where(*criteria)
            .values(**data)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def delete(self, instance: ModelT) -> None:
        await self.db.delete(instance)
        await self.db.flush()

    async def count(self, *criteria: Any) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(self.model).where(*criteria)
        )
        return result.scalar_one()

    async def sum(self, column: Any, *criteria: Any) -> Decimal:
        """Aggregate sum of a numeric column; zero when no rows match"""
        result = await self.db.execute(
            select(func.coalesce(func.sum(column), 0)).where(*criteria)
        )
        return Decimal(str(result.scalar_one()))
