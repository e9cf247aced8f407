"""Tests for CLI commands that need no network."""

from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from turnloop.cli.main import app
from turnloop.markers import make_marker
from turnloop.models.conversation import StoredMessage
from turnloop.orchestrator.context import filter_context
from turnloop.persistence import JsonConversationStore
from turnloop.secrets_store import FileSecretStore

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a config that keeps all state under tmp_path."""
    path = tmp_path / "turnloop.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "storage": {
                    "dir": str(tmp_path / "sessions"),
                    "secrets_file": str(tmp_path / "secrets.yaml"),
                }
            }
        )
    )
    return path


class TestSecretsCommands:
    """Tests for the secrets sub-commands."""

    def test_set_and_delete(self, config_file: Path, tmp_path: Path) -> None:
        """Secrets are written to and removed from the configured file."""
        result = runner.invoke(
            app, ["secrets", "set", "tavily_api_key", "--value", "tvly-1", "-c", str(config_file)]
        )
        assert result.exit_code == 0
        assert FileSecretStore(tmp_path / "secrets.yaml").get("tavily_api_key") == "tvly-1"

        result = runner.invoke(app, ["secrets", "delete", "tavily_api_key", "-c", str(config_file)])
        assert result.exit_code == 0
        assert FileSecretStore(tmp_path / "secrets.yaml").get("tavily_api_key") is None

    def test_unknown_name(self, config_file: Path) -> None:
        """Only known secret names are accepted."""
        result = runner.invoke(
            app, ["secrets", "set", "github_token", "--value", "x", "-c", str(config_file)]
        )
        assert result.exit_code == 1
        assert "Unknown secret" in result.output

    def test_list(self, config_file: Path) -> None:
        """Listing works before anything is stored."""
        result = runner.invoke(app, ["secrets", "list", "-c", str(config_file)])
        assert result.exit_code == 0
        assert "anthropic_api_key" in result.output


class TestInfoCommands:
    """Tests for sessions, tools and config errors."""

    def test_sessions_empty(self, config_file: Path) -> None:
        """An empty store says so."""
        result = runner.invoke(app, ["sessions", "list", "-c", str(config_file)])
        assert result.exit_code == 0
        assert "No sessions found" in result.output

    def test_sessions_listed(self, config_file: Path, tmp_path: Path) -> None:
        """Stored sessions appear by id."""
        store = JsonConversationStore(tmp_path / "sessions")
        store.append_message("notes", StoredMessage(role="user", content="hi"))
        result = runner.invoke(app, ["sessions", "list", "-c", str(config_file)])
        assert result.exit_code == 0
        assert "notes" in result.output

    def test_tools_listed(self, config_file: Path) -> None:
        """Every built-in tool is shown."""
        result = runner.invoke(app, ["tools", "-c", str(config_file)])
        assert result.exit_code == 0
        for name in ("get_datetime", "web_lookup", "search_web", "get_weather"):
            assert name in result.output

    def test_missing_config(self, tmp_path: Path) -> None:
        """An explicit config path that does not exist fails cleanly."""
        result = runner.invoke(app, ["sessions", "list", "-c", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1
        assert "Configuration file not found" in result.output


@pytest.fixture
def store(tmp_path: Path) -> JsonConversationStore:
    return JsonConversationStore(tmp_path / "sessions")


def _turn(store: JsonConversationStore, question: str, answer: str) -> StoredMessage:
    user = StoredMessage(role="user", content=question)
    store.append_message("notes", user)
    store.append_message("notes", StoredMessage(role="assistant", content=answer))
    return user


class TestSessionManagement:
    """Tests for grading, thresholds, renaming and deleting sessions."""

    def test_grade_removes_turn_from_context(
        self, config_file: Path, store: JsonConversationStore
    ) -> None:
        """A turn graded zero no longer reaches the model."""
        chatter = _turn(store, "smalltalk", "sure")
        _turn(store, "important", "noted")

        result = runner.invoke(
            app, ["sessions", "grade", "notes", chatter.id, "0", "-c", str(config_file)]
        )
        assert result.exit_code == 0
        kept = filter_context(store.load_messages("notes"), store.load_context_threshold("notes"))
        assert [m.content for m in kept] == ["important", "noted"]

    def test_grade_out_of_range(self, config_file: Path, store: JsonConversationStore) -> None:
        """Grades above five are refused before touching the store."""
        user = _turn(store, "q", "a")
        result = runner.invoke(app, ["sessions", "grade", "notes", user.id, "9", "-c", str(config_file)])
        assert result.exit_code != 0
        assert store.load_messages("notes")[0].text_grade == 5

    def test_grade_unknown_message(self, config_file: Path, store: JsonConversationStore) -> None:
        """Unknown message ids fail cleanly."""
        _turn(store, "q", "a")
        result = runner.invoke(app, ["sessions", "grade", "notes", "nope", "2", "-c", str(config_file)])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_threshold_set_and_show(self, config_file: Path, store: JsonConversationStore) -> None:
        """The threshold is stored and then reported."""
        low = _turn(store, "low", "LOW")
        _turn(store, "high", "HIGH")
        store.set_text_grade("notes", low.id, 2)

        result = runner.invoke(app, ["sessions", "threshold", "notes", "3", "-c", str(config_file)])
        assert result.exit_code == 0
        assert store.load_context_threshold("notes") == 3
        kept = filter_context(store.load_messages("notes"), store.load_context_threshold("notes"))
        assert [m.content for m in kept] == ["high", "HIGH"]

        result = runner.invoke(app, ["sessions", "threshold", "notes", "-c", str(config_file)])
        assert result.exit_code == 0
        assert "3" in result.output

    def test_rename(self, config_file: Path, store: JsonConversationStore) -> None:
        """Renamed sessions keep their id."""
        _turn(store, "q", "a")
        result = runner.invoke(app, ["sessions", "rename", "notes", "Trip", "-c", str(config_file)])
        assert result.exit_code == 0
        assert store.session_name("notes") == "Trip"

    def test_rename_missing(self, config_file: Path) -> None:
        """Renaming an unknown session fails."""
        result = runner.invoke(app, ["sessions", "rename", "ghost", "x", "-c", str(config_file)])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_delete(self, config_file: Path, store: JsonConversationStore) -> None:
        """--yes deletes without prompting."""
        _turn(store, "q", "a")
        result = runner.invoke(app, ["sessions", "delete", "notes", "--yes", "-c", str(config_file)])
        assert result.exit_code == 0
        assert store.list_sessions() == []

    def test_delete_declined(self, config_file: Path, store: JsonConversationStore) -> None:
        """Answering no at the prompt keeps the session."""
        _turn(store, "q", "a")
        result = runner.invoke(
            app, ["sessions", "delete", "notes", "-c", str(config_file)], input="n\n"
        )
        assert result.exit_code == 1
        assert store.load_messages("notes")

    def test_show_renders_weather(self, config_file: Path, store: JsonConversationStore) -> None:
        """Stored weather markers are shown as a card, not raw markup."""
        marker = make_marker("weather", {"city": "Catonsville", "temp": 44, "conditions": "Clear"})
        _turn(store, "weather", f"{marker}\nCrisp.")
        result = runner.invoke(app, ["sessions", "show", "notes", "-c", str(config_file)])
        assert result.exit_code == 0
        assert "Crisp." in result.output
        assert "Weather: Catonsville" in result.output
        assert "<!--weather" not in result.output
