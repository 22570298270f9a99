"""Tests for CLI module."""

import pytest
from unittest.mock import patch
from typer.testing import CliRunner

from jiratimetracker.cli import app, run_interactive_timer
from jiratimetracker.models import ApiTokenAuth, JiraConfig, JiraIssue, TimerState
from jiratimetracker.session import TimerSession
from jiratimetracker.storage import ConfigStore

from .conftest import T0

runner = CliRunner()


@pytest.fixture
def cli_store(tmp_path, monkeypatch):
    """Point the CLI at a temporary config directory."""
    monkeypatch.setenv("JTT_CONFIG_DIR", str(tmp_path / "jtt"))
    return ConfigStore()


@pytest.fixture
def configured_cli_store(cli_store):
    cli_store.set_jira_config(
        JiraConfig("https://example.atlassian.net", ApiTokenAuth("dev@example.com", "secret-token-1234"))
    )
    return cli_store


class TestCliCommands:
    """Tests for CLI commands."""

    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "start" in result.output

    def test_status_not_configured(self, cli_store):
        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "not configured" in result.output

    def test_status_with_active_timer(self, configured_cli_store):
        configured_cli_store.set_active_timer(TimerState("PROJ-1", "Docs", T0, is_paused=True, paused_at=T0 + 61_000))
        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "PROJ-1" in result.output
        assert "00:01:01" in result.output
        assert "paused" in result.output

    def test_start_refuses_when_timer_running(self, configured_cli_store):
        configured_cli_store.set_active_timer(TimerState("PROJ-1", "", T0))
        result = runner.invoke(app, ["start", "PROJ-2"])

        assert result.exit_code == 1
        assert "already running" in result.output

    def test_resume_without_timer(self, configured_cli_store):
        result = runner.invoke(app, ["resume"])

        assert result.exit_code == 1
        assert "no active timer" in result.output

    def test_start_not_configured(self, cli_store):
        result = runner.invoke(app, ["start", "PROJ-1"])

        assert result.exit_code == 1
        assert "Not configured" in result.output


class TestConfigCommand:
    """Tests for config command."""

    def test_show_masks_token(self, configured_cli_store):
        result = runner.invoke(app, ["config", "--show"])

        assert result.exit_code == 0
        assert "secr****1234" in result.output
        assert "secret-token-1234" not in result.output

    def test_default_message(self, cli_store):
        result = runner.invoke(app, ["config", "--default-message", "Standup"])

        assert result.exit_code == 0
        assert cli_store.get_default_worklog_message() == "Standup"

    def test_clear(self, configured_cli_store):
        result = runner.invoke(app, ["config", "--clear"])

        assert result.exit_code == 0
        assert configured_cli_store.get_jira_config() is None


class TestQueueCommands:
    """Tests for queue commands."""

    def test_list_empty(self, cli_store):
        result = runner.invoke(app, ["queue", "list"])

        assert result.exit_code == 0
        assert "no pending worklogs" in result.output

    def test_list_and_remove(self, cli_store, sample_failed_worklog):
        cli_store.set_failed_worklogs([sample_failed_worklog])

        listed = runner.invoke(app, ["queue", "list"])
        assert "PROJ-1" in listed.output

        removed = runner.invoke(app, ["queue", "remove", "0"])
        assert removed.exit_code == 0
        assert cli_store.get_failed_worklogs() == []

    def test_remove_bad_index(self, cli_store, sample_failed_worklog):
        cli_store.set_failed_worklogs([sample_failed_worklog])
        result = runner.invoke(app, ["queue", "remove", "3"])

        assert result.exit_code == 1
        assert len(cli_store.get_failed_worklogs()) == 1

    def test_clear(self, cli_store, sample_failed_worklog):
        cli_store.set_failed_worklogs([sample_failed_worklog, sample_failed_worklog])
        result = runner.invoke(app, ["queue", "clear", "--yes"])

        assert result.exit_code == 0
        assert cli_store.get_failed_worklogs() == []


class TestInteractiveTimer:
    """Tests for the interactive timer loop."""

    @pytest.fixture
    def session(self, store, jira, clock):
        session = TimerSession(store, client=jira, clock_ms=clock)
        session.start(JiraIssue("PROJ-1", "Fix login"))
        return session

    def test_stop_and_log(self, session, jira, clock):
        clock.advance(120)
        with patch("jiratimetracker.cli.Prompt.ask", side_effect=["s", "Fixed login"]), \
                patch("jiratimetracker.cli.Confirm.ask", side_effect=[False, True]):
            assert run_interactive_timer(session) == "logged"

        jira.post_worklog.assert_called_once_with("PROJ-1", 120, "Fixed login", T0)

    def test_empty_description_goes_back_to_timer(self, session, clock):
        clock.advance(120)
        with patch("jiratimetracker.cli.Prompt.ask", side_effect=["s", "", "q"]):
            assert run_interactive_timer(session) == "quit"

    def test_pause_then_quit_short_session(self, session, store, clock):
        clock.advance(30)
        with patch("jiratimetracker.cli.Prompt.ask", side_effect=["p", "q"]):
            assert run_interactive_timer(session) == "quit"
        assert store.get_active_timer() is None

    def test_long_session_quit_can_be_declined(self, session, store, clock):
        clock.advance(600)
        with patch("jiratimetracker.cli.Prompt.ask", side_effect=["q", "q"]), \
                patch("jiratimetracker.cli.Confirm.ask", side_effect=[False, True]):
            assert run_interactive_timer(session) == "quit"

        assert store.get_active_timer() is None
