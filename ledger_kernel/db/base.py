"""
Module: ledger_kernel.db.base
Responsibility: Declarative base for the ledger tables.  Fixes the column
    types every table shares (UUID keys as strings, money as Numeric, aware
    timestamps) and the audit columns on rows a cashier can change.
Architecture position: Kernel > DB.  Imported by module ORM files.  MUST NOT
    import from services/ or outer layers.

Invariants enforced:
    - Primary keys are uuid4 values stored as 36-character strings, so the
      same schema runs on PostgreSQL and SQLite.
    - A Decimal-annotated column is Numeric(38, 9); no money column is float.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID column stored as String(36).  Accepts UUID or str on bind."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, PyUUID):
            value = PyUUID(str(value))
        return str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    """Declarative base: uuid4 ``id`` primary key and the shared type map."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Rows a cashier creates and changes: invoices, lines and transactions.

    ``created_by_id`` is required on insert.  ``touch()`` records who made
    the latest change and marks the row dirty even when only its children
    changed, so a versioned row always gets an UPDATE.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
    )
    created_by_id: Mapped[PyUUID] = mapped_column(UUIDString())
    updated_by_id: Mapped[PyUUID | None] = mapped_column(UUIDString())

    def touch(self, actor_id: PyUUID) -> None:
        self.updated_by_id = actor_id
        flag_modified(self, "updated_by_id")
