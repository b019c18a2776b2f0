"""
Repository access and commit graph navigation.

Resolves commits by ID, lists ancestry windows and ranges, and keeps a
per-repository cache of parsed commits. Commits are content-addressed and
never change, so a cached Commit is valid for the life of the Repository.
"""

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..config import Config
from ..errors import NotFoundError
from ..utils.git_runner import (
    is_benign_exit,
    is_git_repository,
    raise_for_process_failure,
    run_git_checked,
    run_git_command,
)
from .commit import Commit
from .models import Signature
from .text_frames import split_lines

logger = logging.getLogger(__name__)

CommitRef = Union[str, Commit]


class Repository:
    """A git repository on disk, inspected through the git CLI."""

    # Fields separated by NUL, records terminated by NUL + newline
    LOG_FORMAT = "%H%x00%P%x00%an%x00%ae%x00%aI%x00%cn%x00%ce%x00%cI%x00%B%x00"
    LOG_FIELD_COUNT = 9

    def __init__(self, repo_path: Union[str, Path], config: Optional[Config] = None):
        """Initialize Repository.

        Args:
            repo_path: Path to the git repository (work tree or bare)
            config: Settings for paging, locale and timeouts

        Raises:
            ValueError: If the path is not a git repository
        """
        self.path = Path(repo_path)
        self.config = config or Config(repo_path=self.path)
        self._verify_git_repository()

        self._commit_cache: Dict[str, Commit] = {}
        self._cache_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Repository({str(self.path)!r})"

    def _verify_git_repository(self) -> None:
        if (self.path / ".git").exists():
            return
        if self.path.is_dir() and is_git_repository(self.path):
            return
        raise ValueError(f"Not a git repository: {self.path}")

    def run_git(self, args: List[str], allow_benign_exit: bool = False) -> str:
        """Run a git subcommand in this repository and return stdout.

        Raises:
            ProcessFailureError: If git exits with a failure status
        """
        return run_git_checked(
            ["git"] + args,
            cwd=self.path,
            allow_benign_exit=allow_benign_exit,
            timeout=self.config.git_timeout,
            locale=self.config.git_locale,
        )

    # ------------------------------------------------------------------
    # Commit lookup
    # ------------------------------------------------------------------

    def _resolve_commit_id(self, commit_id: str) -> str:
        """Resolve a commit-ish to its full SHA.

        Raises:
            NotFoundError: If the ID does not name a commit
        """
        if not commit_id or commit_id.startswith("-"):
            raise NotFoundError("commit", commit_id)

        with self._cache_lock:
            if commit_id in self._commit_cache:
                return commit_id

        cmd = ["git", "rev-parse", "--verify", "--quiet", f"{commit_id}^{{commit}}"]
        result = run_git_command(
            cmd,
            cwd=self.path,
            check=False,
            timeout=self.config.git_timeout,
            locale=self.config.git_locale,
        )
        if result.returncode == 0:
            return str(result.stdout.strip())
        if is_benign_exit(result.returncode, result.stderr):
            raise NotFoundError("commit", commit_id)
        raise_for_process_failure(
            cmd, self.path, result.returncode, result.stderr, result.stdout
        )

    def get_commit(self, commit_id: str) -> Commit:
        """Return the commit named by commit_id (SHA, abbreviation or ref).

        Raises:
            NotFoundError: If the ID does not name a commit
        """
        sha = self._resolve_commit_id(commit_id)

        with self._cache_lock:
            cached = self._commit_cache.get(sha)
        if cached is not None:
            return cached

        commits = self._log(["-1", sha])
        if not commits:
            raise NotFoundError("commit", commit_id)
        return commits[0]

    def _log(self, args: List[str], paths: Optional[List[str]] = None) -> List[Commit]:
        """Run git log with the commit format and parse the result."""
        cmd = ["log", f"--format={self.LOG_FORMAT}"] + args + ["--"]
        if paths:
            cmd.extend(paths)
        return self._remember(self._parse_log_output(self.run_git(cmd)))

    def _parse_log_output(self, output: str) -> List[Commit]:
        """Parse LOG_FORMAT output into Commit objects.

        Args:
            output: Raw output from git log

        Returns:
            List of Commit objects in output order
        """
        commits = []

        for record in output.split("\x00\n"):
            if not record.strip():
                continue

            fields = record.split("\x00")
            if len(fields) < self.LOG_FIELD_COUNT:
                logger.debug(f"Skipping malformed log record: {record[:80]!r}")
                continue

            commits.append(
                Commit(
                    repo=self,
                    id=fields[0].strip(),
                    parents=tuple(fields[1].split()),
                    author=Signature(
                        name=fields[2], email=fields[3], when=fields[4]
                    ),
                    committer=Signature(
                        name=fields[5], email=fields[6], when=fields[7]
                    ),
                    message=fields[8].rstrip("\n"),
                )
            )

        return commits

    def _remember(self, commits: List[Commit]) -> List[Commit]:
        """Add commits to the cache, returning the cached instances."""
        with self._cache_lock:
            return [self._commit_cache.setdefault(c.id, c) for c in commits]

    @staticmethod
    def _revision(ref: CommitRef) -> str:
        return ref.id if isinstance(ref, Commit) else ref

    # ------------------------------------------------------------------
    # History listings
    # ------------------------------------------------------------------

    def get_commit_by_path(self, commit_id: str, relpath: str) -> Commit:
        """Return the latest commit at or before commit_id that touched relpath.

        Raises:
            NotFoundError: If no commit touched the path
        """
        commits = self._log(["-1", commit_id], paths=[relpath])
        if not commits:
            raise NotFoundError("commit touching path", relpath)
        return commits[0]

    def commits_count(self, revision: str, relpath: str = "") -> int:
        """Return the number of commits reachable from revision."""
        cmd = ["rev-list", "--count", revision]
        if relpath:
            cmd.extend(["--", relpath])
        return int(self.run_git(cmd).strip())

    def commits_by_range_size(self, revision: str, page: int, size: int) -> List[Commit]:
        """Return one page of history starting at revision.

        Args:
            revision: Starting revision
            page: 1-based page number
            size: Commits per page
        """
        if page < 1 or size < 1:
            raise ValueError("page and size must be positive")
        return self._log(
            [revision, f"--skip={(page - 1) * size}", f"--max-count={size}"]
        )

    def commits_by_range(self, revision: str, page: int) -> List[Commit]:
        """Return one page of history using the configured page size."""
        return self.commits_by_range_size(
            revision, page, self.config.commits_range_size
        )

    def commits_before(self, commit_id: str) -> List[Commit]:
        """Return commit_id and all of its ancestors, newest first."""
        return self._log([commit_id])

    def commits_before_limit(self, commit_id: str, num: int) -> List[Commit]:
        """Return at most num commits of commit_id's history, newest first."""
        return self._log([f"--max-count={num}", commit_id])

    def commits_between(
        self, last: CommitRef, before: Optional[CommitRef] = None
    ) -> List[Commit]:
        """Return commits reachable from last but not from before.

        before itself is excluded and last is included; with no before the
        whole history of last is returned.
        """
        if before is None:
            return self._log([self._revision(last)])
        return self._log([f"{self._revision(before)}..{self._revision(last)}"])

    def search_commits(self, commit_id: str, keyword: str) -> List[Commit]:
        """Return commits in commit_id's history whose message mentions keyword."""
        return self._log([commit_id, "-i", f"--grep={keyword}"])

    def get_files_changed(self, id1: str, id2: str) -> List[str]:
        """Return paths that differ between two revisions."""
        output = self.run_git(
            ["-c", "core.quotePath=false", "diff", "--name-only", id1, id2]
        )
        return split_lines(output)

    # ------------------------------------------------------------------
    # Tree and blob access
    # ------------------------------------------------------------------

    def tree_entry_type(self, commit_id: str, relpath: str) -> Optional[str]:
        """Return the object type of relpath in commit_id's tree, or None.

        The type is what ls-tree reports: "blob", "tree" or "commit" (a
        submodule gitlink).
        """
        output = self.run_git(["ls-tree", "-z", commit_id, "--", relpath])
        for entry in output.split("\0"):
            # <mode> SP <type> SP <object> TAB <path>
            meta, _, name = entry.partition("\t")
            fields = meta.split()
            if name == relpath and len(fields) == 3:
                return fields[1]
        return None

    def read_blob(self, commit_id: str, relpath: str) -> bytes:
        """Return the raw content of relpath at commit_id.

        Raises:
            NotFoundError: If relpath is missing or is not a blob (a directory
                or a submodule) in the commit's tree
        """
        if self.tree_entry_type(commit_id, relpath) != "blob":
            raise NotFoundError("blob", f"{commit_id}:{relpath}")

        cmd = ["git", "cat-file", "blob", f"{commit_id}:{relpath}"]
        result = run_git_command(
            cmd,
            cwd=self.path,
            check=False,
            text=False,
            timeout=self.config.git_timeout,
            locale=self.config.git_locale,
        )
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace")
            raise_for_process_failure(cmd, self.path, result.returncode, stderr)
        return bytes(result.stdout)
