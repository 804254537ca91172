"""
Declarative base and timestamp columns shared by the mentor tables.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

# Constraint names are fixed so SQLite and Postgres schemas match
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def utcnow() -> datetime:
    """Timezone-aware current time, for values written from Python."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for the mentor tables (threads, messages, documents, events)."""

    metadata = MetaData(naming_convention=convention)

    __tablename__: str


class TimestampMixin:
    """
    ``created_at`` / ``updated_at`` columns.

    ``updated_at`` follows ORM updates of the row itself; writes that
    only concern a row's children (a thread's messages) set it
    explicitly with ``utcnow()``.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )
