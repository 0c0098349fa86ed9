"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers for human-readable
    document numbers (``INV-2024-000001``).  Uses a dedicated counter
    table with row-level locking (``SELECT ... FOR UPDATE``) so two
    concurrent invoice creations never receive the same number.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by InvoiceLedgerService.create_invoice.

Invariants enforced:
    - The locked counter row is the sole source of the next value.  The
      aggregate-max-plus-one pattern is never used.
    - Allocation is transactional: a rolled-back invoice creation returns
      its number.

Failure modes:
    - IntegrityError on the first-use race for a new counter is absorbed
      by a savepoint and a re-read under lock.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from ledger_kernel.db.base import Base
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """One named counter, e.g. ``invoice_number_2024``."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, default=0)


def invoice_sequence_name(year: int) -> str:
    """Invoice numbers restart at 1 every calendar year."""
    return f"invoice_number_{year}"


class SequenceService:
    """
    Allocates the next value of a named counter inside the caller's
    transaction.

    The counter row stays locked until the caller commits or rolls back, so
    a second allocation for the same name waits.  Nothing here commits.
    """

    def __init__(self, session: Session):
        self._session = session

    def _lock(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _create(self, sequence_name: str) -> SequenceCounter | None:
        """
        Insert a counter at 0 inside a savepoint.

        Returns None when a concurrent transaction created it first.
        """
        savepoint = self._session.begin_nested()
        counter = SequenceCounter(name=sequence_name, current_value=0)
        self._session.add(counter)
        try:
            self._session.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.debug("sequence_counter_race_retry", extra={"sequence_name": sequence_name})
            return None
        savepoint.commit()
        return counter

    def next_value(self, sequence_name: str) -> int:
        """Increment and return the counter; the first value is 1."""
        counter = self._lock(sequence_name) or self._create(sequence_name)
        if counter is None:
            counter = self._lock(sequence_name)
            if counter is None:
                raise RuntimeError(f"Sequence counter {sequence_name!r} vanished during creation")

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Last allocated value, or None if nothing was ever allocated."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
