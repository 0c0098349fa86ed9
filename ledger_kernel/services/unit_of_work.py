"""
LedgerUnitOfWork -- explicit transaction context for ledger mutations.

Responsibility:
    Wraps one SQLAlchemy ``Session`` and owns its transaction boundary.
    Every mutating ledger operation receives a unit of work explicitly;
    there is no implicit or optional transaction threading.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Ledger services
    flush through the unit of work and never commit themselves.

Invariants enforced:
    - All-or-nothing: the context manager commits on clean exit and rolls
      back on any exception, including collaborator failures.
    - Per-invoice serialization: ``lock()`` reads the row with
      ``SELECT ... FOR UPDATE`` and refreshes it from the database.
    - Stale writes surface as OptimisticLockError, never as a silent
      overwrite, when a versioned row changed after it was read.

Failure modes:
    - OptimisticLockError on flush/commit when a versioned row changed.
    - RuntimeError when used after it has been closed.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Generator, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ledger_kernel.exceptions import OptimisticLockError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.unit_of_work")

ModelT = TypeVar("ModelT")


class LedgerUnitOfWork:
    """
    Explicit transaction context passed to every mutating operation.

    Contract:
        Constructed around an open session.  Used as a context manager it
        commits on success and rolls back on failure; ``commit()`` and
        ``rollback()`` may also be called directly.

    Guarantees:
        - ``lock()`` returns a row freshly read under a row lock, or None.
        - ``flush()``/``commit()`` translate StaleDataError into
          OptimisticLockError carrying the locked entity.

    Non-goals:
        - Does NOT retry; ConcurrencyError is left to the caller.
    """

    def __init__(self, session: Session, *, close_on_exit: bool = False):
        self.session = session
        self._close_on_exit = close_on_exit
        self._locked: list[tuple[str, UUID]] = []

    def __enter__(self) -> LedgerUnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                try:
                    self.commit()
                except Exception:
                    self.rollback()
                    raise
            else:
                self.rollback()
                logger.warning(
                    "unit_of_work_rolled_back",
                    extra={
                        "error_type": exc_type.__name__,
                        "error_code": getattr(exc, "code", None),
                    },
                )
        finally:
            if self._close_on_exit:
                self.session.close()

    def lock(self, model: type[ModelT], entity_id: UUID) -> ModelT | None:
        """
        Read ``model`` row ``entity_id`` under a row lock.

        ``populate_existing`` overwrites any stale copy already held in the
        identity map with the committed state seen after the lock.
        """
        row = self.session.execute(
            select(model)
            .where(model.id == entity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is not None:
            self._locked.append((getattr(model, "__tablename__", model.__name__), entity_id))
        return row

    def add(self, instance: Any) -> None:
        self.session.add(instance)

    def delete(self, instance: Any) -> None:
        self.session.delete(instance)

    def flush(self) -> None:
        self._guard_stale(self.session.flush)

    def commit(self) -> None:
        self._guard_stale(self.session.commit)
        self._locked.clear()

    def rollback(self) -> None:
        self.session.rollback()
        self._locked.clear()

    def _guard_stale(self, action: Callable[[], None]) -> None:
        try:
            action()
        except StaleDataError as e:
            self.session.rollback()
            entity_type, entity_id = self._locked[0] if self._locked else ("unknown", "unknown")
            self._locked.clear()
            logger.warning(
                "optimistic_lock_conflict",
                extra={"entity_type": entity_type, "entity_id": str(entity_id)},
            )
            raise OptimisticLockError(entity_type, str(entity_id)) from e


@contextmanager
def unit_of_work(
    session_factory: Callable[[], Session],
) -> Generator[LedgerUnitOfWork, None, None]:
    """
    Open a session from ``session_factory`` and run a unit of work on it.

    Usage:
        with unit_of_work(get_session_factory()) as uow:
            service.add_payment(uow, invoice_id, actor, Decimal("50.00"), "cash")
            # Commits on successful exit, rolls back on exception
    """
    with LedgerUnitOfWork(session_factory(), close_on_exit=True) as uow:
        yield uow
