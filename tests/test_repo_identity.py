"""Tests for deriving repository identity from git remotes."""

import subprocess

import pytest

from convstore.repo_identity import (
    RepoIdentity, branch_slug_or_default, current_branch, detect_identity,
    identity_from_remote, normalize_identity, parse_git_remote, parse_remote_host,
    sanitize_segment,
)


@pytest.mark.parametrize("remote,host", [
    ("https://github.com/acme/widget.git", "github.com"),
    ("git@gitlab.example.com:acme/widget.git", "gitlab.example.com"),
    ("ssh://git@bitbucket.org/acme/widget", "bitbucket.org"),
    ("acme/widget", "github.com"),
])
def test_parse_remote_host(remote: str, host: str):
    assert parse_remote_host(remote) == host


@pytest.mark.parametrize("remote,expected", [
    ("https://github.com/acme/widget.git", ("acme", "widget")),
    ("git@github.com:acme/widget.git", ("acme", "widget")),
    ("https://gitlab.com/group/sub/widget", ("sub", "widget")),
    ("https://github.com/lonely", ("", "")),
    ("", ("", "")),
])
def test_parse_git_remote(remote: str, expected: tuple):
    assert parse_git_remote(remote) == expected


def test_sanitize_segment():
    assert sanitize_segment("Feature/SQLite") == "feature-sqlite"
    assert sanitize_segment("--My_Repo--") == "my-repo"
    assert sanitize_segment("///") == ""


def test_branch_default():
    assert branch_slug_or_default("") == "main"
    assert branch_slug_or_default("Release/1.2") == "release-1-2"


def test_identity_from_remote():
    ident = identity_from_remote("git@github.com:Acme/Widget.git", "feature/login")
    assert ident == RepoIdentity("github.com", "acme", "widget", "feature-login")
    assert ident.slug == "github.com/acme/widget"


def test_identity_without_remote():
    assert identity_from_remote("", "") == RepoIdentity("local", "local", "unknown", "main")


def test_identity_unparseable_remote():
    ident = identity_from_remote("https://example.com/", "dev")
    assert ident.as_tuple() == ("example.com", "unknown", "unknown", "dev")


def _git(cwd, *args):
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True)


def test_detect_outside_repository(tmp_path):
    assert detect_identity(str(tmp_path)).as_tuple() == ("local", "local", "unknown", "main")


def test_detect_in_repository(tmp_path):
    try:
        _git(tmp_path, "init", "-q", "-b", "Topic/Work")
    except (FileNotFoundError, subprocess.CalledProcessError):
        pytest.skip("git with init -b is not available")
    _git(tmp_path, "-c", "user.name=t", "-c", "user.email=t@example.com",
         "commit", "-q", "--allow-empty", "-m", "init")
    _git(tmp_path, "remote", "add", "origin", "https://github.com/acme/widget.git")
    ident = detect_identity(str(tmp_path))
    assert ident.as_tuple() == ("github.com", "acme", "widget", "topic-work")


def _init_repo(path, branch: str) -> None:
    try:
        _git(path, "init", "-q", "-b", branch)
    except (FileNotFoundError, subprocess.CalledProcessError):
        pytest.skip("git with init -b is not available")


def _commit(path) -> None:
    _git(path, "-c", "user.name=t", "-c", "user.email=t@example.com",
         "commit", "-q", "--allow-empty", "-m", "init")


def test_detect_unborn_branch(tmp_path):
    _init_repo(tmp_path, "feature/SQLite")
    assert detect_identity(str(tmp_path)).branch == "feature-sqlite"


def test_detect_detached_head_uses_short_hash(tmp_path):
    _init_repo(tmp_path, "dev")
    _commit(tmp_path)
    _git(tmp_path, "checkout", "-q", "--detach")
    sha = subprocess.run(["git", "rev-parse", "HEAD"], cwd=tmp_path, check=True,
                         capture_output=True, text=True).stdout.strip()
    assert current_branch(str(tmp_path)) == sha[:7]
    assert detect_identity(str(tmp_path)).branch == sha[:7]


def test_normalize_identity_matches_detection():
    detected = identity_from_remote("git@github.com:Acme/Widget.git", "feature/SQLite")
    assert normalize_identity("GitHub.com", "Acme", "Widget", "feature/SQLite") == detected
    assert normalize_identity("github.com", "acme", "widget").branch == "main"
