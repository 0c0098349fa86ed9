"""
Module: ledger_modules
Responsibility:
    Business modules built on the kernel and engines.  ``invoicing`` owns
    the invoice ledger: its domain models, persistence, collaborator
    contracts, configuration and orchestrating service.

Architecture position:
    Modules -- may import ledger_kernel, ledger_engines and ledger_config.
    MUST NOT be imported by ledger_kernel (except the ORM registry hook
    used by ``create_tables``) or by ledger_engines.
"""
