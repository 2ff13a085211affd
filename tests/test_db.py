from __future__ import annotations

import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from predictiondao.registry.db import MIGRATIONS_DIR, Database


def _mock_conn() -> tuple[MagicMock, MagicMock]:
    mock_cursor = MagicMock()
    mock_cursor.__enter__ = MagicMock(return_value=mock_cursor)
    mock_cursor.__exit__ = MagicMock(return_value=False)
    mock_conn = MagicMock()
    mock_conn.cursor.return_value = mock_cursor
    return mock_conn, mock_cursor


class TestDatabaseInit:
    def test_stores_dsn(self) -> None:
        db = Database("postgresql://u:p@localhost:5432/dao")
        assert db._dsn == "postgresql://u:p@localhost:5432/dao"

    def test_not_connected_by_default(self) -> None:
        db = Database("postgresql://u:p@localhost:5432/dao")
        assert db._pool is None
        assert db._conn is None
        assert db.is_connected is False


class TestDatabaseExecute:
    def test_execute_returns_dicts(self) -> None:
        db = Database("postgresql://u:p@localhost:5432/dao")
        mock_conn, mock_cursor = _mock_conn()
        mock_cursor.description = [("id",), ("title",)]
        mock_cursor.fetchall.return_value = [
            {"id": 1, "title": "alpha"},
            {"id": 2, "title": "beta"},
        ]
        db._conn = mock_conn

        result = db.execute("SELECT id, title FROM dao.predictions")
        assert result == [{"id": 1, "title": "alpha"}, {"id": 2, "title": "beta"}]
        mock_conn.commit.assert_called_once()

    def test_execute_no_results(self) -> None:
        db = Database("postgresql://u:p@localhost:5432/dao")
        mock_conn, mock_cursor = _mock_conn()
        mock_cursor.description = None
        db._conn = mock_conn

        result = db.execute("UPDATE dao.predictions SET status = %s", ("CLOSED",))
        assert result == []

    def test_execute_rolls_back_on_error(self) -> None:
        db = Database("postgresql://u:p@localhost:5432/dao")
        mock_conn, mock_cursor = _mock_conn()
        mock_cursor.execute.side_effect = RuntimeError("syntax error")
        db._conn = mock_conn

        with pytest.raises(RuntimeError):
            db.execute("SELEC 1")
        mock_conn.rollback.assert_called_once()

    def test_execute_raises_when_not_connected(self) -> None:
        db = Database("postgresql://u:p@localhost:5432/dao")
        with pytest.raises(RuntimeError, match="not connected"):
            db.execute("SELECT 1")


class TestTransaction:
    def test_yields_cursor_inside_transaction(self) -> None:
        db = Database("postgresql://u:p@localhost:5432/dao")
        mock_conn, mock_cursor = _mock_conn()
        db._conn = mock_conn

        with db.transaction() as cur:
            cur.execute("SELECT 1")

        mock_conn.transaction.assert_called_once()
        mock_cursor.execute.assert_called_once_with("SELECT 1")

    def test_returns_pooled_connection(self) -> None:
        db = Database("postgresql://u:p@localhost:5432/dao")
        mock_conn, _ = _mock_conn()
        db._pool = MagicMock()
        db._pool.getconn.return_value = mock_conn

        with pytest.raises(ValueError):
            with db.transaction():
                raise ValueError("abort")

        db._pool.putconn.assert_called_once_with(mock_conn)


class TestMigrationRunner:
    def test_finds_and_runs_sql_files(self) -> None:
        db = Database("postgresql://u:p@localhost:5432/dao")

        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "001_create_table.sql").write_text("CREATE TABLE test (id INT);")
            (Path(tmpdir) / "002_add_column.sql").write_text("ALTER TABLE test ADD COLUMN name TEXT;")

            mock_conn, mock_cursor = _mock_conn()
            # No applied migrations yet
            mock_cursor.fetchall.return_value = []
            db._conn = mock_conn

            applied = db.run_migrations(tmpdir)

            calls = mock_cursor.execute.call_args_list
            assert "_migrations" in str(calls[0])
            assert "SELECT filename" in str(calls[1])
            assert len(calls) == 6  # CREATE + SELECT + 2*(SQL + INSERT)
            assert applied == ["001_create_table.sql", "002_add_column.sql"]

    def test_skips_applied_migrations(self) -> None:
        db = Database("postgresql://u:p@localhost:5432/dao")

        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "001_create_table.sql").write_text("CREATE TABLE test (id INT);")
            (Path(tmpdir) / "002_add_column.sql").write_text("ALTER TABLE test ADD COLUMN name TEXT;")

            mock_conn, mock_cursor = _mock_conn()
            mock_cursor.fetchall.return_value = [{"filename": "001_create_table.sql"}]
            db._conn = mock_conn

            applied = db.run_migrations(tmpdir)

            assert len(mock_cursor.execute.call_args_list) == 4
            assert applied == ["002_add_column.sql"]

    def test_bundled_migrations_present(self) -> None:
        names = sorted(p.name for p in MIGRATIONS_DIR.glob("*.sql"))
        assert names == [
            "001_dao_schema.sql", "002_creator_reputation.sql", "003_created_predictions.sql",
        ]


class TestHealthCheck:
    def test_healthy(self) -> None:
        db = Database("postgresql://u:p@localhost:5432/dao")
        mock_conn, mock_cursor = _mock_conn()
        mock_cursor.description = [("ok",)]
        mock_cursor.fetchall.return_value = [{"ok": 1}]
        db._conn = mock_conn

        assert db.health_check() is True

    def test_unhealthy(self) -> None:
        db = Database("postgresql://u:p@localhost:5432/dao")
        # Not connected, so execute will raise
        assert db.health_check() is False


class TestContextManager:
    @patch("predictiondao.registry.db.psycopg")
    def test_single_connection(self, mock_psycopg: MagicMock) -> None:
        mock_conn = MagicMock()
        mock_psycopg.connect.return_value = mock_conn

        with Database("postgresql://u:p@localhost:5432/dao", pooled=False) as db:
            assert db._conn is mock_conn
            assert db.is_connected is True

        mock_conn.close.assert_called_once()

    @patch("predictiondao.registry.db.ConnectionPool")
    def test_pooled(self, mock_pool_cls: MagicMock) -> None:
        with Database("postgresql://u:p@localhost:5432/dao", max_pool_size=4) as db:
            assert db._pool is mock_pool_cls.return_value

        assert mock_pool_cls.call_args.kwargs["max_size"] == 4
        mock_pool_cls.return_value.close.assert_called_once()
