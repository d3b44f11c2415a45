"""Tests for tgclaude CLI commands."""

import asyncio

import pytest
from typer.testing import CliRunner

from src.cli.config import load_config
from src.cli.main import app
from src.cli.runner import open_session_store
from src.services.session_store import SessionRecord

runner = CliRunner()


@pytest.fixture
def db_env(monkeypatch, tmp_path):
    monkeypatch.setenv("TGCLAUDE_DATABASE_PATH", str(tmp_path / "cli.db"))


def _seed(*records: SessionRecord) -> None:
    async def _save():
        async with open_session_store(load_config()) as store:
            for record in records:
                await store.save(record)

    asyncio.run(_save())


def _bound(cid="777", usage=65.0) -> SessionRecord:
    return SessionRecord.new(cid, "/work").with_changes(
        agent_session_id="sess-1", context_usage_percent=usage
    )


def test_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "session" in result.stdout


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "tgclaude" in result.stdout


class TestSessionCommands:
    def test_list_empty(self, db_env):
        result = runner.invoke(app, ["session", "list"])

        assert result.exit_code == 0
        assert "No sessions stored." in result.stdout

    def test_list(self, db_env):
        _seed(_bound("777"), SessionRecord.new("888", "/work"))

        result = runner.invoke(app, ["session", "list"])

        assert result.exit_code == 0
        assert "777" in result.stdout
        assert "888" in result.stdout
        assert "sess-1" in result.stdout

    def test_show(self, db_env):
        _seed(_bound(usage=65.0))

        result = runner.invoke(app, ["session", "show", "777"])

        assert result.exit_code == 0
        assert "agent session: sess-1" in result.stdout
        assert "working context: /work" in result.stdout
        assert "65.0% (auto_handoff)" in result.stdout

    def test_show_missing(self, db_env):
        result = runner.invoke(app, ["session", "show", "404"])

        assert result.exit_code == 1
        assert "No session for conversation 404" in result.stdout

    def test_reset(self, db_env):
        _seed(_bound())

        result = runner.invoke(app, ["session", "reset", "777"])

        assert result.exit_code == 0
        assert "Session cleared" in result.stdout
        assert "No session" in runner.invoke(app, ["session", "show", "777"]).stdout


class TestConfigShow:
    def test_masks_bot_token(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123456:ABCDEFGH")
        monkeypatch.setenv("TELEGRAM_USER_ID", "1001")

        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "***EFGH" in result.stdout
        assert "123456:ABCDEFGH" not in result.stdout
        assert "user_id: 1001" in result.stdout

    def test_missing_config_file(self, tmp_path):
        result = runner.invoke(app, ["--config", str(tmp_path / "nope.yaml"), "config", "show"])

        assert result.exit_code == 1
        assert "Config file not found" in result.stdout


def test_run_without_credentials_exits(monkeypatch):
    monkeypatch.setattr("src.cli.main.setup_logging", lambda *args: None)

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 1
    assert "Missing required settings" in result.stdout
