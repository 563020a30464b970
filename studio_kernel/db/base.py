"""
Module: studio_kernel.db.base
Responsibility: Declarative base for the three ledger tables (lessons,
    subscriptions, attendance).  Fixes how row ids and prices are stored so
    that every row maps back onto a domain record without loss.
Architecture position: Kernel > DB.  Imported by every model; imports
    nothing from the other studio_kernel packages.

Invariants enforced:
    - Row ids are uuid4 values stored as 36-character strings.  Models hand
      them to the engines as ``str``, the form Lesson.id and Pass.id use.
    - Prices are Numeric(12, 2) and load back as Decimal.
    - created_at is assigned by the database on INSERT; the selector uses
      it to replay attendance marks in the order they were written.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    Row id column: a UUID kept as its canonical 36-character string.

    Accepts UUID instances or their string form on the way in, so ids that
    travelled through the engines as ``str`` can be used in queries
    directly.  Always loads a UUID.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, UUID):
            value = UUID(str(value))
        return str(value)

    def process_result_value(self, value, dialect):
        return UUID(value) if value is not None else None


class Base(DeclarativeBase):
    """Declarative base: uuid4 ``id`` primary key, Decimal as Numeric(12, 2)."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(12, 2),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """Abstract base for ledger rows that record when they were written."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
