from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from predictiondao.cli import _database, main
from predictiondao.config import AppConfig


class TestCLIParsing:
    def test_no_command_fails(self) -> None:
        with pytest.raises(SystemExit):
            main([])

    def test_help_flag(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--help"])
        assert exc_info.value.code == 0

    def test_serve_defaults(self) -> None:
        with patch("predictiondao.cli.cmd_serve") as mock_cmd:
            main(["serve"])
            args = mock_cmd.call_args[0][0]
            assert args.host == "0.0.0.0"
            assert args.port == 5008

    def test_serve_port(self) -> None:
        with patch("predictiondao.cli.cmd_serve") as mock_cmd:
            main(["serve", "--port", "8080"])
            args = mock_cmd.call_args[0][0]
            assert args.port == 8080

    def test_migrate_command(self) -> None:
        with patch("predictiondao.cli.cmd_migrate") as mock_cmd:
            main(["migrate"])
            mock_cmd.assert_called_once()

    def test_status_command(self) -> None:
        with patch("predictiondao.cli.cmd_status") as mock_cmd:
            main(["status"])
            mock_cmd.assert_called_once()

    def test_close_expired_command(self) -> None:
        with patch("predictiondao.cli.cmd_close_expired") as mock_cmd:
            main(["close-expired"])
            mock_cmd.assert_called_once()

    def test_verbose_flag(self) -> None:
        with patch("predictiondao.cli.cmd_status") as mock_cmd:
            main(["-v", "status"])
            args = mock_cmd.call_args[0][0]
            assert args.verbose is True

    def test_unknown_command(self) -> None:
        with pytest.raises(SystemExit):
            main(["frobnicate"])


class TestCommands:
    def test_database_requires_dsn(self) -> None:
        with pytest.raises(SystemExit):
            _database(AppConfig())

    def test_migrate_runs_migrations(self, capsys) -> None:
        db = MagicMock()
        db.__enter__.return_value = db
        db.run_migrations.return_value = ["001_dao_schema.sql"]
        with (
            patch("predictiondao.cli.load_config", return_value=AppConfig(db_dsn="postgresql://x")),
            patch("predictiondao.cli.Database", return_value=db),
        ):
            main(["migrate"])

        out = capsys.readouterr().out
        assert "001_dao_schema.sql" in out
        assert "Migrations complete." in out

    def test_status_prints_counts(self, capsys) -> None:
        db = MagicMock()
        db.__enter__.return_value = db
        db.execute.side_effect = [
            [{"status": "ACTIVE", "n": 2}, {"status": "APPROVED", "n": 1}],
            [{"n": 3}],
        ]
        with (
            patch("predictiondao.cli.load_config", return_value=AppConfig(db_dsn="postgresql://x")),
            patch("predictiondao.cli.Database", return_value=db),
        ):
            main(["status"])

        out = capsys.readouterr().out
        assert "ACTIVE: 2" in out
        assert "TOTAL: 3" in out
        assert "not configured" in out
