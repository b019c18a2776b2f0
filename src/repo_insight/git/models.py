"""
Data model for git metadata extraction and code search results.

Result records are plain dataclasses; search options are a pydantic model
because they carry caller input that has to be validated.
"""

from dataclasses import dataclass, field
from typing import List

from pydantic import BaseModel, Field

# Sentinel bucket used when an author has no commits at all
EMPTY_DATE_BUCKET = "00-000-0000"

# Label recorded when statistics are gathered for every author
ALL_USERS_LABEL = "all"


@dataclass(frozen=True)
class Signature:
    """Author or committer identity of a commit."""

    name: str
    email: str
    when: str  # ISO-8601 timestamp as reported by git


@dataclass(frozen=True)
class Match:
    """A single code search hit.

    content holds the whole context block for the hit, header line included.
    """

    commit_id: str
    path: str
    content: str


@dataclass
class MatchesResults:
    """A page of code search hits plus the history-wide hit count.

    number_matches never drops below the matches delivered through this
    page, so with case-only differences it can grow on later pages.
    """

    number_matches: int
    results: List[Match] = field(default_factory=list)


class RepoSearchOptions(BaseModel):
    """Parameters of a paginated code search."""

    keyword: str = Field(description="Fixed string to search for")
    owner_id: int = Field(
        default=0, description="Owner of the repository, carried for the caller"
    )
    order_by: str = Field(
        default="",
        description="History ordering flag passed to rev-list (e.g. --date-order)",
    )
    page: int = Field(default=1, ge=1, description="1-based page number")
    page_size: int = Field(default=10, gt=0, description="Matches per page")


@dataclass
class CommitFileStatus:
    """Status of files in a commit, relative to its first parent."""

    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SubModule:
    """A submodule registered in .gitmodules."""

    path: str
    url: str


@dataclass
class CommitsPerUser:
    """Number of commits by one user within one date bucket."""

    num_commits: int
    date: str  # DD-Mon-YYYY, compared as a string
    user: str


@dataclass
class CommitsInfo:
    """Date histogram of a user's commits."""

    info: List[CommitsPerUser] = field(default_factory=list)
    total: int = 0


@dataclass
class StatsUser:
    """Line insertions and deletions attributed to one author."""

    insertions: int
    deletions: int
    author: str
    files: int
