"""Tests for regex search over stored messages."""

import os
import re
import tempfile

import pytest

from convstore.errors import InvalidPatternError
from convstore.models import Message, Role, Session
from convstore.storage.db import Database
from convstore.storage.search import SNIPPET_RADIUS, extract_snippet
from convstore.storage.session_store import SessionStore

REPO = ("github.com", "acme", "widget")


@pytest.fixture
def store():
    fd, path = tempfile.mkstemp(suffix=".sqlite")
    os.close(fd)
    db = Database(path)
    yield SessionStore(db)
    db.close()
    os.unlink(path)


def _save(store: SessionStore, session_id: str, *texts: str, branch: str = "main") -> None:
    msgs = [Message.text(Role.HUMAN if i % 2 == 0 else Role.AI, t) for i, t in enumerate(texts)]
    store.save_session(Session(id=session_id, messages=msgs), *REPO, branch)


class TestSearch:
    def test_regex_match(self, store: SessionStore):
        _save(store, "s1", "hello world", "nothing here")
        _save(store, "s2", "a word to the wise")
        results = store.search_messages("wor.d")
        assert len(results) == 1
        r = results[0]
        assert r.session_id == "s1"
        assert r.sequence == 0
        assert r.role == Role.HUMAN
        assert "hello world" in r.snippet
        assert (r.host, r.org, r.project, r.branch) == (*REPO, "main")
        assert r.first_prompt == "hello world"

    def test_invalid_pattern(self, store: SessionStore):
        with pytest.raises(InvalidPatternError) as exc:
            store.search_messages("([")
        assert exc.value.pattern == "(["
        assert isinstance(exc.value, ValueError)

    def test_no_matches(self, store: SessionStore):
        _save(store, "s1", "hello")
        assert store.search_messages("goodbye") == []

    def test_limit(self, store: SessionStore):
        _save(store, "s1", *["needle %d" % i for i in range(6)])
        assert len(store.search_messages("needle", limit=4)) == 4
        assert len(store.search_messages("needle", limit=0)) == 6

    def test_searches_across_branches(self, store: SessionStore):
        _save(store, "s1", "needle on main")
        _save(store, "s2", "needle on dev", branch="dev")
        assert {r.branch for r in store.search_messages("needle")} == {"main", "dev"}

    def test_matches_serialized_content(self, store: SessionStore):
        # The raw JSON is searched, so structural keys match too
        _save(store, "s1", "plain")
        assert len(store.search_messages('"parts"')) == 1


class TestSnippet:
    def test_snippet_bounds(self):
        content = "a" * 300 + "TARGET" + "b" * 300
        m = re.search("TARGET", content)
        snippet = extract_snippet(content, m)
        assert snippet == "a" * SNIPPET_RADIUS + "TARGET" + "b" * SNIPPET_RADIUS

    def test_snippet_at_edges(self):
        content = "TARGET at the start"
        m = re.search("TARGET", content)
        assert extract_snippet(content, m) == content

    def test_snippet_in_results_is_bounded(self, store: SessionStore):
        _save(store, "s1", "x" * 500 + "needle" + "y" * 500)
        [r] = store.search_messages("needle")
        assert len(r.snippet) == len("needle") + 2 * SNIPPET_RADIUS
