"""Derive repository identity (host, org, project, branch) from a git checkout."""

from __future__ import annotations

import os
import re
import subprocess
from dataclasses import dataclass
from urllib.parse import urlparse

LOCAL_HOST = "local"
LOCAL_ORG = "local"
UNKNOWN = "unknown"
DEFAULT_BRANCH = "main"
DEFAULT_HOST = "github.com"
SHORT_HASH_LEN = 7

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


@dataclass
class RepoIdentity:
    host: str = LOCAL_HOST
    org: str = LOCAL_ORG
    project: str = UNKNOWN
    branch: str = DEFAULT_BRANCH

    @property
    def slug(self) -> str:
        return f"{self.host}/{self.org}/{self.project}"

    def as_tuple(self) -> tuple[str, str, str, str]:
        return self.host, self.org, self.project, self.branch


def sanitize_segment(value: str) -> str:
    """Lowercase and collapse every run of non-alphanumerics into one hyphen.

    Examples:
        "Feature/SQLite" -> "feature-sqlite"
        "--My_Repo--" -> "my-repo"
    """
    return _NON_ALNUM_RE.sub("-", value.lower()).strip("-")


def branch_slug_or_default(branch: str) -> str:
    return sanitize_segment(branch) or DEFAULT_BRANCH


def parse_remote_host(remote: str) -> str:
    """Extract the host from an HTTPS or SSH (git@host:owner/repo) remote."""
    remote = remote.strip()
    if "://" in remote:
        host = urlparse(remote).hostname
        return host or DEFAULT_HOST
    if ":" in remote and "@" in remote:
        return remote.split("@", 1)[1].split(":", 1)[0] or DEFAULT_HOST
    return DEFAULT_HOST


def parse_git_remote(remote: str) -> tuple[str, str]:
    """Return (owner, repo) from a remote URL, or ('', '') if it has no such path."""
    remote = remote.strip()
    if remote.endswith(".git"):
        remote = remote[:-4]
    if not remote:
        return "", ""

    if "://" in remote:
        path = urlparse(remote).path
    elif ":" in remote:
        path = remote.split(":", 1)[1]
    else:
        return "", ""

    segments = [s for s in path.strip("/").split("/") if s]
    if len(segments) < 2:
        return "", ""
    return segments[-2], segments[-1]


def normalize_identity(host: str, org: str, project: str, branch: str = "") -> RepoIdentity:
    """Apply the same cleanup detect_identity uses to user-supplied names."""
    return RepoIdentity(
        host=host.strip().lower() or DEFAULT_HOST,
        org=sanitize_segment(org) or UNKNOWN,
        project=sanitize_segment(project) or UNKNOWN,
        branch=branch_slug_or_default(branch),
    )


def identity_from_remote(remote: str, branch: str = "") -> RepoIdentity:
    """Build an identity from a remote URL and branch name."""
    branch_slug = branch_slug_or_default(branch)
    if not remote.strip():
        return RepoIdentity(branch=branch_slug)
    host = parse_remote_host(remote)
    owner, repo = parse_git_remote(remote)
    if not owner or not repo:
        return RepoIdentity(host=host, org=UNKNOWN, project=UNKNOWN, branch=branch_slug)
    return RepoIdentity(
        host=host,
        org=sanitize_segment(owner),
        project=sanitize_segment(repo),
        branch=branch_slug,
    )


def _git(working_dir: str, *args: str) -> str:
    try:
        result = subprocess.run(
            ["git", "-C", working_dir, *args],
            capture_output=True, text=True, timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return ""
    if result.returncode != 0:
        return ""
    return result.stdout.strip()


def detect_identity(working_dir: str | None = None) -> RepoIdentity:
    """Identity of the git checkout containing ``working_dir`` (default: cwd).

    A detached HEAD is scoped to the short commit hash. Falls back to
    local/local/unknown@main outside a repository or when git is unavailable.
    """
    if working_dir is None:
        working_dir = os.getcwd()
    remote = _git(working_dir, "config", "--get", "remote.origin.url")
    return identity_from_remote(remote, current_branch(working_dir))


def current_branch(working_dir: str) -> str:
    """Checked-out branch name, the 7-char commit hash when detached, or ''."""
    # symbolic-ref also resolves an unborn branch in a repo with no commits
    branch = _git(working_dir, "symbolic-ref", "--short", "-q", "HEAD")
    if branch:
        return branch
    return _git(working_dir, "rev-parse", "--short=7", "HEAD")[:SHORT_HASH_LEN]
