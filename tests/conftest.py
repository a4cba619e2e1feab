"""
Shared pytest fixtures for gitsql tests.

Builds throwaway git repositories with fixed identities and timestamps so
object ids and dates are reproducible across runs.
"""

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from gitsql.utils.exception_logger import ExceptionLogger

SIGNED_TAG_MESSAGE = (
    "release\n"
    "-----BEGIN PGP SIGNATURE-----\n"
    "\n"
    "iQEzBAABCAAdFiEEexample\n"
    "-----END PGP SIGNATURE-----\n"
)


class GitRepoBuilder:
    """Creates commits, tags and branches in a test repository."""

    def __init__(self, path: Path):
        self.path = path

    def git(self, *args: str, env: Optional[Dict[str, str]] = None) -> str:
        result = subprocess.run(
            ["git", *args],
            cwd=self.path,
            check=True,
            capture_output=True,
            text=True,
            env=env,
        )
        return result.stdout.strip()

    def _dated_env(self, timestamp: int) -> Dict[str, str]:
        env = os.environ.copy()
        env["GIT_AUTHOR_DATE"] = f"{timestamp} +0200"
        env["GIT_COMMITTER_DATE"] = f"{timestamp} +0200"
        return env

    def init(self, bare: bool = False) -> "GitRepoBuilder":
        self.path.mkdir(parents=True, exist_ok=True)
        args = ["init", "-b", "main"]
        if bare:
            args.append("--bare")
        self.git(*args)
        if not bare:
            self.git("config", "user.email", "test@example.com")
            self.git("config", "user.name", "Test User")
            self.git("config", "commit.gpgsign", "false")
            self.git("config", "tag.gpgsign", "false")
        return self

    def commit(self, message: str, timestamp: int) -> str:
        """Create an empty commit and return its full id."""
        self.git("commit", "--allow-empty", "-m", message, env=self._dated_env(timestamp))
        return self.git("rev-parse", "HEAD")

    def annotated_tag(self, name: str, target: str, message: str, timestamp: int) -> str:
        """Create an annotated tag with a verbatim message; return the tag object id."""
        message_file = self.path.parent / f"{name}-message.txt"
        message_file.write_text(message)
        self.git(
            "tag",
            "-a",
            name,
            "-F",
            str(message_file),
            "--cleanup=verbatim",
            target,
            env=self._dated_env(timestamp),
        )
        return self.git("rev-parse", f"refs/tags/{name}")

    def lightweight_tag(self, name: str, target: str) -> None:
        self.git("tag", name, target)

    def branch(self, name: str, target: str) -> None:
        self.git("branch", name, target)

    def remote_branch(self, remote: str, name: str, target: str) -> None:
        self.git("update-ref", f"refs/remotes/{remote}/{name}", target)

    def write_blobs(self, count: int) -> List[str]:
        """Write ``count`` distinct blobs to the object database; return their ids."""
        blob_dir = self.path.parent / "blobs"
        blob_dir.mkdir(exist_ok=True)
        paths = []
        for i in range(count):
            blob_path = blob_dir / f"blob_{i}.txt"
            blob_path.write_text(f"blob number {i}\n")
            paths.append(str(blob_path))
        result = subprocess.run(
            ["git", "hash-object", "-w", "--stdin-paths"],
            cwd=self.path,
            input="\n".join(paths) + "\n",
            check=True,
            capture_output=True,
            text=True,
        )
        return result.stdout.split()


@dataclass
class HistoryRepo:
    """The three-commit repository most tests work against.

    C1 <- C2 <- C3 (main), lightweight tag v0 on C1, annotated signed-style
    tag v1 on C2.
    """

    path: Path
    builder: GitRepoBuilder
    c1: str
    c2: str
    c3: str
    v1_tag: str


# 2023-01-01 00:00:00 UTC and one day apart
BASE_TIMESTAMP = 1672531200
DAY = 86400


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path_factory, monkeypatch):
    """Keep user and system git configuration and the exception log out of tests."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.delenv("GIT_CONFIG_COUNT", raising=False)
    ExceptionLogger.reset()
    yield
    ExceptionLogger.reset()


@pytest.fixture
def repo_builder(tmp_path: Path) -> GitRepoBuilder:
    return GitRepoBuilder(tmp_path / "repo").init()


@pytest.fixture
def history_repo(repo_builder: GitRepoBuilder) -> HistoryRepo:
    c1 = repo_builder.commit("first commit", BASE_TIMESTAMP)
    c2 = repo_builder.commit("second commit", BASE_TIMESTAMP + DAY)
    c3 = repo_builder.commit("third commit", BASE_TIMESTAMP + 2 * DAY)
    v1_tag = repo_builder.annotated_tag(
        "v1", c2, SIGNED_TAG_MESSAGE, BASE_TIMESTAMP + 3 * DAY
    )
    repo_builder.lightweight_tag("v0", c1)
    return HistoryRepo(
        path=repo_builder.path,
        builder=repo_builder,
        c1=c1,
        c2=c2,
        c3=c3,
        v1_tag=v1_tag,
    )
