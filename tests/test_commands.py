"""Tests for CLI commands using Click's test runner."""

import json
import os
import tempfile

import pytest
from click.testing import CliRunner

from convstore.cli import cli
from convstore.id_gen import is_session_id
from convstore.models import Message, PartType, Role, Session
from convstore.storage.db import Database
from convstore.storage.history_store import HistoryStore
from convstore.storage.session_store import SessionStore

REPO_ARGS = ["--repo", "github.com/acme/widget", "--branch", "main"]


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def db_path(monkeypatch):
    """Temporary database path with no user config in play."""
    with tempfile.TemporaryDirectory() as tmpdir:
        monkeypatch.setenv("CONVSTORE_CONFIG", os.path.join(tmpdir, "config.yaml"))
        monkeypatch.delenv("CONVSTORE_DB", raising=False)
        monkeypatch.delenv("CONVSTORE_LOG_LEVEL", raising=False)
        yield os.path.join(tmpdir, "store.sqlite")


@pytest.fixture
def seeded(db_path: str):
    """Database holding two sessions on github.com/acme/widget@main."""
    with Database(db_path) as db:
        store = SessionStore(db)
        store.save_session(Session(id="s1", model="m-1", messages=[
            Message.text(Role.HUMAN, "hello world"),
            Message(role=Role.AI, parts=[
                {"type": PartType.TEXT, "text": "hi there"},
                {"type": PartType.TOOL_CALL, "name": "bash", "arguments": {"cmd": "ls"}},
            ]),
        ]), "github.com", "acme", "widget", "main")
        store.save_session(Session(id="s2", messages=[
            Message.text(Role.HUMAN, "second session"),
        ]), "github.com", "acme", "widget", "dev")
    return db_path


def _invoke(runner: CliRunner, db_path: str, *args: str):
    return runner.invoke(cli, ["--db", db_path, *args])


class TestRoot:
    def test_help(self, runner: CliRunner, db_path: str):
        result = _invoke(runner, db_path)
        assert result.exit_code == 0
        assert "sessions" in result.output

    def test_version(self, runner: CliRunner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_bad_repo_flag(self, runner: CliRunner, db_path: str):
        result = _invoke(runner, db_path, "history", "show", "--repo", "acme/widget")
        assert result.exit_code == 1
        assert "HOST/ORG/PROJECT" in result.output


class TestSessions:
    def test_list_empty(self, runner: CliRunner, db_path: str):
        result = _invoke(runner, db_path, "sessions", "list", *REPO_ARGS)
        assert result.exit_code == 0
        assert "No sessions found" in result.output

    def test_list_branch(self, runner: CliRunner, seeded: str):
        result = _invoke(runner, seeded, "sessions", "list", *REPO_ARGS)
        assert result.exit_code == 0, result.output
        assert "s1" in result.output
        assert "s2" not in result.output
        assert "1 session(s)" in result.output

    def test_list_all_json(self, runner: CliRunner, seeded: str):
        result = _invoke(runner, seeded, "--json", "sessions", "list", "--all")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert {s["id"] for s in data} == {"s1", "s2"}
        counts = {s["id"]: s["message_count"] for s in data}
        assert counts == {"s1": 2, "s2": 1}

    def test_show(self, runner: CliRunner, seeded: str):
        result = _invoke(runner, seeded, "sessions", "show", "s1", "--messages")
        assert result.exit_code == 0, result.output
        assert "hello world" in result.output
        assert "github.com/acme/widget" in result.output
        assert "assistant" in result.output

    def test_show_json_includes_messages(self, runner: CliRunner, seeded: str):
        result = _invoke(runner, seeded, "--json", "sessions", "show", "s1")
        data = json.loads(result.output)
        assert len(data["messages"]) == 2
        assert data["messages"][1]["parts"][1]["type"] == "tool_call"

    def test_show_missing(self, runner: CliRunner, seeded: str):
        result = _invoke(runner, seeded, "sessions", "show", "nope")
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "not found" in result.output

    def test_delete(self, runner: CliRunner, seeded: str):
        result = _invoke(runner, seeded, "sessions", "delete", "s1")
        assert result.exit_code == 0, result.output
        result = _invoke(runner, seeded, "sessions", "show", "s1")
        assert result.exit_code == 1

    def test_export(self, runner: CliRunner, seeded: str, tmp_path):
        target = tmp_path / "s1.md"
        result = _invoke(runner, seeded, "sessions", "export", "s1",
                         "--type", "full", "--output", str(target))
        assert result.exit_code == 0, result.output
        content = target.read_text(encoding="utf-8")
        assert "hello world" in content
        assert "**Tool call:** `bash`" in content


class TestSearch:
    def test_search(self, runner: CliRunner, seeded: str):
        result = _invoke(runner, seeded, "search", "wor.d")
        assert result.exit_code == 0, result.output
        assert "s1" in result.output
        assert "1 match(es)" in result.output

    def test_search_json(self, runner: CliRunner, seeded: str):
        result = _invoke(runner, seeded, "--json", "search", "session")
        data = json.loads(result.output)
        assert [r["session_id"] for r in data] == ["s2"]
        assert data[0]["branch"] == "dev"

    def test_invalid_pattern(self, runner: CliRunner, seeded: str):
        result = _invoke(runner, seeded, "search", "([")
        assert result.exit_code == 1
        assert "invalid regex" in result.output


class TestHistory:
    def test_add_and_show(self, runner: CliRunner, db_path: str):
        for prompt in ["fix bug", "add test", "refactor"]:
            result = _invoke(runner, db_path, "history", "add", *REPO_ARGS, prompt)
            assert result.exit_code == 0, result.output
        result = _invoke(runner, db_path, "--json", "history", "show", *REPO_ARGS)
        data = json.loads(result.output)
        assert [e["content"] for e in data] == ["fix bug", "add test", "refactor"]

    def test_commands_kept_apart(self, runner: CliRunner, db_path: str):
        _invoke(runner, db_path, "history", "add", "--command", *REPO_ARGS, "make test")
        result = _invoke(runner, db_path, "history", "show", *REPO_ARGS)
        assert "No history" in result.output
        result = _invoke(runner, db_path, "history", "show", "--commands", *REPO_ARGS)
        assert "make test" in result.output

    def test_clear(self, runner: CliRunner, db_path: str):
        _invoke(runner, db_path, "history", "add", *REPO_ARGS, "one")
        result = _invoke(runner, db_path, "--json", "history", "clear", *REPO_ARGS)
        assert json.loads(result.output) == {"removed": 1}


class TestRepos:
    def test_list_and_branches(self, runner: CliRunner, seeded: str):
        result = _invoke(runner, seeded, "--json", "repos", "list")
        repos = json.loads(result.output)
        assert [r["project"] for r in repos] == ["widget"]

        result = _invoke(runner, seeded, "--json", "repos", "branches", str(repos[0]["id"]))
        assert [b["name"] for b in json.loads(result.output)] == ["dev", "main"]

    def test_delete_repository(self, runner: CliRunner, seeded: str):
        repos = json.loads(_invoke(runner, seeded, "--json", "repos", "list").output)
        result = _invoke(runner, seeded, "repos", "delete", "--yes", str(repos[0]["id"]))
        assert result.exit_code == 0, result.output
        data = json.loads(_invoke(runner, seeded, "--json", "sessions", "list", "--all").output)
        assert data == []

    def test_delete_missing_branch(self, runner: CliRunner, seeded: str):
        result = _invoke(runner, seeded, "repos", "delete-branch", "--yes", "999")
        assert result.exit_code == 1
        assert "not found" in result.output


class TestMaintenance:
    def test_cleanup(self, runner: CliRunner, seeded: str):
        result = _invoke(runner, seeded, "--json", "cleanup", "--max-sessions", "1")
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["sessions_deleted"] == 1

    def test_stats(self, runner: CliRunner, seeded: str):
        result = _invoke(runner, seeded, "--json", "stats")
        data = json.loads(result.output)
        assert data["schema_version"] == 1
        assert data["sessions"] == 2
        assert data["messages"] == 3

    def test_compact(self, runner: CliRunner, seeded: str):
        result = _invoke(runner, seeded, "compact")
        assert result.exit_code == 0, result.output
        assert "Compacted" in result.output


class TestConfig:
    def test_init_and_show(self, runner: CliRunner, db_path: str):
        config_path = os.environ["CONVSTORE_CONFIG"]
        result = _invoke(runner, db_path, "config", "init")
        assert result.exit_code == 0, result.output
        assert os.path.exists(config_path)

        result = _invoke(runner, db_path, "config", "init")
        assert result.exit_code == 1

        result = _invoke(runner, db_path, "--json", "config", "show")
        data = json.loads(result.output)
        assert data["session"]["max-sessions"] == 50
        assert data["database-path"] == db_path


class TestScopeNormalization:
    def test_git_style_names_match_detected_scope(self, runner: CliRunner, db_path: str):
        # Stored the way a checkout of git@github.com:Acme/Widget.git on
        # feature/SQLite is detected
        with Database(db_path) as db:
            HistoryStore(db).append_prompt("github.com", "acme", "widget", "feature-sqlite",
                                           "add sqlite backend")
            SessionStore(db).save_session(Session(id="s1"), "github.com", "acme", "widget",
                                          "feature-sqlite")

        scope = ["--repo", "github.com/Acme/Widget", "-b", "feature/SQLite"]
        result = _invoke(runner, db_path, "history", "show", *scope)
        assert result.exit_code == 0, result.output
        assert "add sqlite backend" in result.output

        result = _invoke(runner, db_path, "--json", "sessions", "list", *scope)
        assert [s["id"] for s in json.loads(result.output)] == ["s1"]

    def test_add_normalizes_branch(self, runner: CliRunner, db_path: str):
        _invoke(runner, db_path, "history", "add", "--repo", "github.com/acme/widget",
                "-b", "Feature/Login", "hello")
        with Database(db_path) as db:
            got = HistoryStore(db).load_prompt_history("github.com", "acme", "widget",
                                                       "feature-login")
        assert [e.content for e in got] == ["hello"]


class TestSessionIdPrefix:
    def test_show_by_prefix(self, runner: CliRunner, db_path: str):
        with Database(db_path) as db:
            saved = SessionStore(db).save_session(
                Session(messages=[Message.text(Role.HUMAN, "prefix me")]),
                "github.com", "acme", "widget", "main")
        assert is_session_id(saved.id)

        result = _invoke(runner, db_path, "--json", "sessions", "show", saved.id[:-4])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["id"] == saved.id

        result = _invoke(runner, db_path, "--json", "sessions", "show", saved.id)
        assert json.loads(result.output)["first_prompt"] == "prefix me"

    def test_ambiguous_prefix(self, runner: CliRunner, seeded: str):
        result = _invoke(runner, seeded, "sessions", "show", "s")
        assert result.exit_code == 1
        assert "ambiguous" in result.output
