"""
Shared pytest fixtures for repo-insight tests.

Provides throwaway git repositories with a known history and resets the
process-wide exception logger between tests.
"""

import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from repo_insight.utils.exception_logger import ExceptionLogger


PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"

GITMODULES = (
    '[submodule "libs/core"]\n'
    "\tpath = libs/core\n"
    "\turl = https://example.com/core.git\n"
    '[submodule "libs/ui"]\n'
    "\tpath = libs/ui\n"
    "\turl = https://example.com/ui.git\n"
)


@dataclass
class SampleRepo:
    """A repository with three commits on a single branch.

    first  (Alice, 01-Jan-2020): adds README.md and src/app.py
    second (Alice, 01-Jan-2020): modifies README.md, adds "docs/my notes.txt"
    third  (Bob,   02-Jan-2020): deletes src/app.py, adds .gitmodules and logo.png
    """

    path: Path
    first: str
    second: str
    third: str

    @property
    def shas(self) -> List[str]:
        """Commit IDs newest first."""
        return [self.third, self.second, self.first]


def _git(repo: Path, *args: str, env: Optional[Dict[str, str]] = None) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
        env=env,
    )
    return result.stdout.strip()


def _commit(repo: Path, message: str, name: str, email: str, date: str) -> str:
    env = os.environ.copy()
    env.update(
        {
            "GIT_AUTHOR_NAME": name,
            "GIT_AUTHOR_EMAIL": email,
            "GIT_AUTHOR_DATE": date,
            "GIT_COMMITTER_NAME": name,
            "GIT_COMMITTER_EMAIL": email,
            "GIT_COMMITTER_DATE": date,
        }
    )
    _git(repo, "add", "-A", env=env)
    _git(repo, "commit", "-q", "-m", message, env=env)
    return _git(repo, "rev-parse", "HEAD")


def build_sample_repo(repo: Path) -> SampleRepo:
    """Create the SampleRepo history inside repo."""
    repo.mkdir(parents=True, exist_ok=True)
    _git(repo, "init", "-q")
    _git(repo, "config", "user.name", "Fixture")
    _git(repo, "config", "user.email", "fixture@example.com")
    _git(repo, "config", "commit.gpgsign", "false")

    (repo / "src").mkdir()
    (repo / "README.md").write_text("hello world\nTODO: first item\n")
    (repo / "src" / "app.py").write_text("print('hi')  # todo later\n")
    first = _commit(
        repo,
        "Initial import",
        "Alice",
        "alice@example.com",
        "2020-01-01T10:00:00+0000",
    )

    (repo / "docs").mkdir()
    (repo / "README.md").write_text(
        "hello world\nTODO: first item\nTODO: second item\n"
    )
    (repo / "docs" / "my notes.txt").write_text("notes\n")
    second = _commit(
        repo,
        "Expand readme\n\nAlso start the notes.",
        "Alice",
        "alice@example.com",
        "2020-01-01T12:00:00+0000",
    )

    (repo / "src" / "app.py").unlink()
    (repo / ".gitmodules").write_text(GITMODULES)
    (repo / "logo.png").write_bytes(PNG_BYTES)
    third = _commit(
        repo,
        "Add submodules and logo",
        "Bob",
        "bob@example.com",
        "2020-01-02T09:00:00+0000",
    )

    return SampleRepo(path=repo, first=first, second=second, third=third)


@pytest.fixture
def sample_repo(tmp_path: Path) -> SampleRepo:
    """A fresh SampleRepo; skipped when git is not installed."""
    if shutil.which("git") is None:
        pytest.skip("git executable not available")
    return build_sample_repo(tmp_path / "sample")


@pytest.fixture
def empty_repo(tmp_path: Path) -> Path:
    """A freshly initialized repository without any commits."""
    if shutil.which("git") is None:
        pytest.skip("git executable not available")
    repo = tmp_path / "empty"
    repo.mkdir()
    _git(repo, "init", "-q")
    return repo


@pytest.fixture
def fake_repo_dir(tmp_path: Path) -> Path:
    """A directory that looks like a work tree, for tests that mock git."""
    repo = tmp_path / "fake-repo"
    (repo / ".git").mkdir(parents=True)
    return repo


@pytest.fixture(autouse=True)
def reset_exception_logger():
    """Each test starts without a global exception logger."""
    ExceptionLogger.reset()
    yield
    ExceptionLogger.reset()
