"""
Tests for the module-level engine and session helpers.
"""

import pytest
from sqlalchemy import inspect, select

from ledger_config import LedgerSettings
from ledger_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session_factory,
    init_engine_from_settings,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from ledger_kernel.services.sequence_service import SequenceCounter


@pytest.fixture
def module_engine(tmp_path):
    engine = init_engine_from_url(f"sqlite:///{tmp_path / 'module.db'}")
    create_tables()
    yield engine
    reset_engine()


class TestEngineLifecycle:

    def test_uninitialized_engine_raises(self):
        reset_engine()
        with pytest.raises(RuntimeError, match="not initialized"):
            get_engine()
        with pytest.raises(RuntimeError, match="not initialized"):
            get_session_factory()

    def test_create_tables_registers_every_table(self, module_engine):
        tables = set(inspect(module_engine).get_table_names())
        assert {"invoices", "invoice_items", "invoice_transactions", "sequence_counters"} <= tables

    def test_reinitialize_replaces_engine(self, module_engine, tmp_path):
        other = init_engine_from_url(f"sqlite:///{tmp_path / 'other.db'}")
        assert get_engine() is other
        assert other is not module_engine


class TestSessionScope:

    def test_commits_on_success(self, module_engine):
        with session_scope() as session:
            session.add(SequenceCounter(name="scope_test", current_value=7))

        with session_scope() as session:
            value = session.execute(
                select(SequenceCounter.current_value).where(SequenceCounter.name == "scope_test")
            ).scalar_one()
        assert value == 7

    def test_rolls_back_on_error(self, module_engine):
        with pytest.raises(RuntimeError):
            with session_scope() as session:
                session.add(SequenceCounter(name="rolled_back", current_value=1))
                session.flush()
                raise RuntimeError("boom")

        with session_scope() as session:
            counter = session.execute(
                select(SequenceCounter).where(SequenceCounter.name == "rolled_back")
            ).scalar_one_or_none()
        assert counter is None


def test_init_from_settings(tmp_path):
    settings = LedgerSettings(database_url=f"sqlite:///{tmp_path / 'settings.db'}")
    try:
        engine = init_engine_from_settings(settings)
        assert engine.dialect.name == "sqlite"
        assert get_engine() is engine
    finally:
        reset_engine()
