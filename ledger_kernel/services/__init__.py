"""Kernel services: unit of work and sequence allocation."""

from ledger_kernel.services.sequence_service import SequenceCounter, SequenceService
from ledger_kernel.services.unit_of_work import LedgerUnitOfWork, unit_of_work

__all__ = [
    "LedgerUnitOfWork",
    "unit_of_work",
    "SequenceCounter",
    "SequenceService",
]
