"""
Ledger Kernel

Shared infrastructure for the invoice financial ledger:
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging with request-scoped context
- Injectable clock, currency registry and Money value objects
- SQLAlchemy declarative base, engine management and unit of work
- Locked-counter sequence allocation for invoice numbers
"""

__version__ = "0.1.0"
