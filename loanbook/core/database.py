from sqlalchemy import Enum as SQLEnum
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from fastapi import Request
from typing import AsyncGenerator, Optional
import enum

from loanbook.core.config import settings

Base = declarative_base()


def enum_column(enum_class: type[enum.Enum], name: str) -> SQLEnum:
    """Enum column type that persists member values rather than member names"""
    return SQLEnum(
        enum_class,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class Database:
    """Owns the async engine and session factory for one application instance"""

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None):
        self.url = url or settings.DATABASE_URL
        self.echo = settings.DEBUG if echo is None else echo
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    def connect(self) -> "Database":
        """Create the engine and session factory"""
        engine_options = {"echo": self.echo, "future": True, "pool_pre_ping": True}
        if not self.url.startswith("sqlite"):
            engine_options.update(pool_size=10, max_overflow=20)

        self.engine = create_async_engine(self.url, **engine_options)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False
        )
        return self

    async def create_all(self) -> None:
        """Create all tables (for development - use Alembic in production)"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Release every pooled connection"""
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get async database session"""
    database: Database = request.app.state.database
    async with database.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    """Session factory for work that must run outside the request transaction"""
    return request.app.state.database.session_factory
