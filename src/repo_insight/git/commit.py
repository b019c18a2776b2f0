"""Commit entity and parent-chain navigation."""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Mapping, Optional, Tuple

from ..errors import NotFoundError
from .collaborator_stats import (
    commits_count_per_collaborator,
    num_stat_commits_per_user,
)
from .file_status import get_commit_file_status
from .models import CommitFileStatus, CommitsInfo, Signature, StatsUser, SubModule
from .submodules import SubmoduleRegistry

if TYPE_CHECKING:
    from .repository import Repository

logger = logging.getLogger(__name__)

# Leading bytes of the image formats recognised by content sniffing
_IMAGE_SIGNATURES: Tuple[Tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"\x00\x00\x02\x00", "image/x-icon"),
)
_SNIFF_LENGTH = 1024


def detect_image_type(data: bytes) -> Optional[str]:
    """Return the image content type of data, or None if it is not an image."""
    head = data[:_SNIFF_LENGTH]
    for signature, content_type in _IMAGE_SIGNATURES:
        if head.startswith(signature):
            return content_type
    if head[:4] == b"RIFF" and head[8:14] == b"WEBPVP":
        return "image/webp"
    return None


@dataclass(frozen=True)
class Commit:
    """A git commit.

    Commits are content-addressed, so a Commit never changes once built.
    parents[0] is the mainline parent.
    """

    repo: "Repository" = field(repr=False, compare=False)
    id: str
    author: Signature
    committer: Signature
    message: str
    parents: Tuple[str, ...] = ()
    _submodules: SubmoduleRegistry = field(
        init=False, repr=False, compare=False, hash=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "_submodules", SubmoduleRegistry(self))

    def summary(self) -> str:
        """Return the first line of the commit message."""
        return self.message.split("\n")[0]

    # Parents

    def parent_id(self, n: int) -> str:
        """Return the ID of the n-th parent (0-based).

        Raises:
            NotFoundError: If the commit has no such parent
        """
        if n < 0 or n >= len(self.parents):
            raise NotFoundError("parent", f"{self.id}^{n + 1}")
        return self.parents[n]

    def parent(self, n: int) -> "Commit":
        """Return the n-th parent (0-based) as a fully resolved Commit.

        Raises:
            NotFoundError: If the commit has no such parent
        """
        return self.repo.get_commit(self.parent_id(n))

    def parent_count(self) -> int:
        """Return the number of parents: 0 for a root commit, 2+ for merges."""
        return len(self.parents)

    # History

    def get_commit_by_path(self, relpath: str) -> "Commit":
        """Return the latest commit, as seen from this one, that touched relpath."""
        return self.repo.get_commit_by_path(self.id, relpath)

    def commits_count(self) -> int:
        return self.repo.commits_count(self.id)

    def commits_by_range_size(self, page: int, size: int) -> List["Commit"]:
        return self.repo.commits_by_range_size(self.id, page, size)

    def commits_by_range(self, page: int) -> List["Commit"]:
        return self.repo.commits_by_range(self.id, page)

    def commits_before(self) -> List["Commit"]:
        return self.repo.commits_before(self.id)

    def commits_before_limit(self, num: int) -> List["Commit"]:
        return self.repo.commits_before_limit(self.id, num)

    def commits_before_until(self, commit_id: str) -> List["Commit"]:
        """Return commits after commit_id up to and including this one.

        Raises:
            NotFoundError: If commit_id does not name a commit
        """
        end_commit = self.repo.get_commit(commit_id)
        return self.repo.commits_between(self, end_commit)

    def search_commits(self, keyword: str) -> List["Commit"]:
        return self.repo.search_commits(self.id, keyword)

    def get_files_changed_since_commit(self, past_commit: str) -> List[str]:
        return self.repo.get_files_changed(past_commit, self.id)

    # Content

    def is_image_file(self, name: str) -> bool:
        """Return True if the blob at name looks like an image."""
        try:
            data = self.repo.read_blob(self.id, name)
        except NotFoundError:
            return False
        return detect_image_type(data) is not None

    def file_status(self) -> CommitFileStatus:
        """Return files added, removed and modified by this commit."""
        return get_commit_file_status(
            self.repo.path,
            self.id,
            timeout=self.repo.config.git_timeout,
            locale=self.repo.config.git_locale,
        )

    def get_sub_modules(self) -> Mapping[str, SubModule]:
        """Return submodules registered at this commit, keyed by path.

        Raises:
            NotFoundError: If the commit has no .gitmodules submodule section
        """
        return self._submodules.get_sub_modules()

    def get_sub_module(self, path: str) -> Optional[SubModule]:
        """Return the submodule at path, or None if there is none."""
        return self._submodules.get_sub_module(path)

    # Collaborator statistics

    def commits_count_per_collaborator(self, user: str) -> CommitsInfo:
        return commits_count_per_collaborator(
            self.repo.path,
            user,
            timeout=self.repo.config.git_timeout,
            locale=self.repo.config.git_locale,
        )

    def num_stat_commits_per_user(self, user: str) -> StatsUser:
        return num_stat_commits_per_user(
            self.repo.path,
            user,
            timeout=self.repo.config.git_timeout,
            locale=self.repo.config.git_locale,
        )
