"""
Unit tests for database functionality.
"""

import pytest
from unittest.mock import patch, MagicMock
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from core.database import build_engine, get_db, get_db_context, create_tables, drop_tables


BOOKING_TABLES = {"users", "slot_templates", "slot_instances", "booking_requests", "bookings", "notifications"}


class TestSessionHelpers:

    @patch('core.database.SessionLocal')
    def test_get_db_closes_session(self, mock_session_local):
        mock_session = MagicMock()
        mock_session_local.return_value = mock_session

        db_iter = get_db()
        assert next(db_iter) == mock_session
        with pytest.raises(StopIteration):
            next(db_iter)

        mock_session.close.assert_called_once()
        mock_session.rollback.assert_not_called()

    @patch('core.database.SessionLocal')
    def test_get_db_rolls_back_on_database_error(self, mock_session_local):
        mock_session = MagicMock()
        mock_session_local.return_value = mock_session

        db_iter = get_db()
        next(db_iter)
        with pytest.raises(SQLAlchemyError):
            db_iter.throw(SQLAlchemyError("connection lost"))

        mock_session.rollback.assert_called_once()
        mock_session.close.assert_called_once()

    @patch('core.database.SessionLocal')
    def test_get_db_context_commits(self, mock_session_local):
        mock_session = MagicMock()
        mock_session_local.return_value = mock_session

        with get_db_context() as db:
            assert db == mock_session

        mock_session.commit.assert_called_once()
        mock_session.close.assert_called_once()

    @patch('core.database.SessionLocal')
    def test_get_db_context_rolls_back_on_exception(self, mock_session_local):
        mock_session = MagicMock()
        mock_session_local.return_value = mock_session

        with pytest.raises(ValueError):
            with get_db_context():
                raise ValueError("boom")

        mock_session.commit.assert_not_called()
        mock_session.rollback.assert_called_once()
        mock_session.close.assert_called_once()


class TestSqliteEngine:

    @pytest.fixture
    def sqlite_engine(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path / 'scratch.db'}", poolclass=NullPool)
        yield engine
        engine.dispose()

    def test_foreign_keys_are_enforced(self, sqlite_engine):
        with sqlite_engine.connect() as conn:
            assert conn.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1

    def test_create_and_drop_tables(self, sqlite_engine):
        create_tables(bind=sqlite_engine)
        assert BOOKING_TABLES <= set(inspect(sqlite_engine).get_table_names())

        drop_tables(bind=sqlite_engine)
        assert not BOOKING_TABLES & set(inspect(sqlite_engine).get_table_names())
