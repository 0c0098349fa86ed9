"""
Module ORM Registry (``ledger_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model is imported so that ``Base.metadata``
contains its table definition before tables are created or dropped.

Usage
-----
``ledger_kernel.db.engine.create_tables()`` and ``drop_tables()`` call
``import_all_orm_models()``; scripts and ``tests/conftest.py`` go through
those functions.
"""


def import_all_orm_models() -> None:
    """Import kernel tables and every module ORM module.

    This function is idempotent -- repeated calls are harmless.
    """
    import ledger_kernel.services.sequence_service  # noqa: F401  # sequence_counters
    import ledger_modules.invoicing.orm  # noqa: F401
