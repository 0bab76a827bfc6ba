"""Declarative base, shared columns and engine/session factories.

The catalog schema is owned by the catalog itself; the models built on
this base only map the columns the reconciliation reads or writes.
"""
from datetime import datetime
import uuid

from sqlalchemy import DateTime, Uuid, func
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncAttrs, AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker


class Base(AsyncAttrs, DeclarativeBase):
    """Declarative base of the catalog tables (async attribute loading)."""


class UUIDMixin:
    """Catalog rows are keyed by UUID; new rows get a uuid4 from Python."""
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)


class TimestampMixin:
    """created_at / updated_at maintained by the database clock.

    ``updated_at`` is surfaced in audit samples as the item's last change.
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine (pooling options only for server databases)."""
    options = {"echo": echo}
    if make_url(database_url).get_backend_name() == "postgresql":
        options.update(
            pool_size=20,
            max_overflow=10,
            pool_recycle=3600,  # Recycle connections after 1 hour
            pool_pre_ping=True,  # Verify connection health before use
        )
    return create_async_engine(database_url, **options)


def create_session_maker(engine: AsyncEngine) -> sessionmaker:
    """Async session factory bound to an engine."""
    return sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
