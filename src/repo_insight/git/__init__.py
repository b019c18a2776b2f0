"""
Git metadata extraction and search.

Provides commit graph navigation, history-wide code search, per-commit file
status, submodule descriptors and per-author statistics, all derived from
the text output of the git CLI.
"""

from ..errors import (
    GitInsightError,
    NotFoundError,
    ParseFailureError,
    ProcessFailureError,
)
from .code_search import CodeSearchEngine
from .collaborator_stats import (
    commits_count_per_collaborator,
    num_stat_commits_per_user,
)
from .commit import Commit
from .file_status import get_commit_file_status
from .models import (
    CommitFileStatus,
    CommitsInfo,
    CommitsPerUser,
    Match,
    MatchesResults,
    RepoSearchOptions,
    Signature,
    StatsUser,
    SubModule,
)
from .repository import Repository
from .submodules import SubmoduleRegistry

__all__ = [
    "CodeSearchEngine",
    "Commit",
    "CommitFileStatus",
    "CommitsInfo",
    "CommitsPerUser",
    "GitInsightError",
    "Match",
    "MatchesResults",
    "NotFoundError",
    "ParseFailureError",
    "ProcessFailureError",
    "RepoSearchOptions",
    "Repository",
    "Signature",
    "StatsUser",
    "SubModule",
    "SubmoduleRegistry",
    "commits_count_per_collaborator",
    "get_commit_file_status",
    "num_stat_commits_per_user",
]
