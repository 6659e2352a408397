"""Unit tests for dashdocs.cli — command parsing and execution."""

import json
from unittest.mock import MagicMock, patch

import pytest
import redis
from sqlalchemy import create_engine, inspect

import dashdocs.cli as cli_mod
from dashdocs.db.session import close_db


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "dashdocs.yaml"
    path.write_text(
        "environment: dev\n"
        "database:\n"
        f"  url: sqlite:///{tmp_path / 'docs.db'}\n"
        "redis:\n"
        "  url: null\n"
        "celery:\n"
        "  broker: memory://\n"
        "storage:\n"
        f"  root_path: {tmp_path / 'uploads'}\n"
        "logging:\n"
        "  format: text\n"
        "  directory: null\n",
        encoding="utf-8",
    )
    yield path
    close_db()


class TestCLIParsing:
    def test_no_command_prints_help(self, capsys):
        assert cli_mod.main([]) == 0
        assert "init-db" in capsys.readouterr().out

    def test_unknown_command_exits(self):
        with pytest.raises(SystemExit):
            cli_mod.main(["frobnicate"])


class TestCmdInitDb:
    def test_creates_tables(self, config_file, tmp_path, capsys):
        assert cli_mod.main(["--config", str(config_file), "init-db"]) == 0
        assert "[OK]" in capsys.readouterr().out

        tables = inspect(create_engine(f"sqlite:///{tmp_path / 'docs.db'}")).get_table_names()
        assert {"documents", "document_shares", "document_activity"} <= set(tables)

    def test_invalid_config(self, tmp_path, capsys):
        path = tmp_path / "bad.yaml"
        path.write_text("documents:\n  list_limit: -1\n", encoding="utf-8")
        assert cli_mod.main(["--config", str(path), "init-db"]) == 1
        assert "[ERROR]" in capsys.readouterr().err


class TestCmdHealth:
    def test_healthy(self, config_file, capsys):
        assert cli_mod.main(["--config", str(config_file), "health"]) == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["status"] == "healthy"
        assert set(summary["checks"]) == {"database", "file_store"}

    def test_pings_configured_redis(self, config_file, capsys):
        config_file.write_text(
            config_file.read_text(encoding="utf-8").replace("  url: null\n", "  url: redis://cache:6379/1\n"),
            encoding="utf-8",
        )
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("refused")
        with patch("dashdocs.engine.health.redis.from_url", return_value=client) as from_url:
            assert cli_mod.main(["--config", str(config_file), "health"]) == 1
        from_url.assert_called_once_with("redis://cache:6379/1", socket_timeout=5)
        summary = json.loads(capsys.readouterr().out)
        assert summary["checks"]["redis"]["status"] == "unhealthy"

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("environment: qa\n", encoding="utf-8")
        assert cli_mod.main(["--config", str(path), "health"]) == 1
