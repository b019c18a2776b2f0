"""
Per-author commit and line-change statistics.

Two independent aggregations:

- a date histogram: the author's commit dates collapsed into
  "count:DD-Mon-YYYY" lines (adjacent duplicates counted, as uniq -c does),
  then parsed into buckets with a running total;
- numstat totals: insertions and deletions summed over every numstat line
  of the author's history.

Both tolerate noisy input: numbers that do not parse count as zero and
lines of unexpected shape contribute nothing.
"""

import itertools
import logging
import re
from pathlib import Path
from typing import Iterable, Optional, Union

from ..utils.git_runner import DEFAULT_GIT_LOCALE, run_git_checked
from .models import (
    ALL_USERS_LABEL,
    EMPTY_DATE_BUCKET,
    CommitsInfo,
    CommitsPerUser,
    StatsUser,
)
from .text_frames import split_fields, split_lines

logger = logging.getLogger(__name__)

# %b is locale dependent; git runs with a pinned locale
DATE_BUCKET_FORMAT = "%d-%b-%Y"

_NUMBER_PATTERN = re.compile(r"[0-9]+")


def _parse_int(text: str) -> int:
    try:
        return int(text.strip())
    except ValueError:
        logger.debug(f"Treating unparseable number {text!r} as 0")
        return 0


def uniq_count(values: Iterable[str]) -> str:
    """Collapse adjacent equal values into "count:value" lines."""
    return "".join(
        f"{len(list(group))}:{value}\n" for value, group in itertools.groupby(values)
    )


def parse_commits_per_user(output: str, user: str) -> CommitsInfo:
    """Parse "count:date" lines into a commit histogram.

    Args:
        output: Newline-terminated "count:date" lines
        user: Author the histogram belongs to; empty means every author

    Returns:
        CommitsInfo with one row per line, or a single zero placeholder row
        when there are no lines
    """
    if not user:
        user = ALL_USERS_LABEL

    commits = CommitsInfo()
    lines = split_lines(output)

    if not lines:
        commits.info.append(
            CommitsPerUser(num_commits=0, date=EMPTY_DATE_BUCKET, user=user)
        )
        return commits

    for line in lines:
        info = split_fields(line, ":", maxsplit=1)
        num_commits = _parse_int(info[0])
        date = info[1] if len(info) > 1 else ""
        commits.info.append(
            CommitsPerUser(num_commits=num_commits, date=date, user=user)
        )
        commits.total += num_commits

    return commits


def _has_history(repo_path: Path, timeout: Optional[float], locale: str) -> bool:
    """Return False when HEAD is unborn (a repository with no commits yet)."""
    output = run_git_checked(
        ["git", "rev-parse", "--verify", "--quiet", "HEAD"],
        cwd=repo_path,
        allow_benign_exit=True,
        timeout=timeout,
        locale=locale,
    )
    return bool(output.strip())


def commits_count_per_collaborator(
    repo_path: Union[str, Path],
    user: str,
    timeout: Optional[float] = None,
    locale: str = DEFAULT_GIT_LOCALE,
) -> CommitsInfo:
    """Return a date histogram of user's commits.

    An empty history yields the same single placeholder row as an author
    without commits.

    Args:
        repo_path: Path to the git repository
        user: Author filter (name or email pattern); empty for every author
        timeout: Optional timeout for the git invocation, in seconds
        locale: Locale forced on git output

    Raises:
        ProcessFailureError: If git fails
    """
    repo_path = Path(repo_path)
    if not _has_history(repo_path, timeout, locale):
        return parse_commits_per_user("", user)

    cmd = ["git", "log", "--format=%ad", f"--date=format:{DATE_BUCKET_FORMAT}"]
    if user:
        cmd.append(f"--author={user}")

    output = run_git_checked(cmd, cwd=repo_path, timeout=timeout, locale=locale)
    return parse_commits_per_user(uniq_count(split_lines(output)), user)


def _stat_columns(line: str) -> str:
    """Return the insertions/deletions columns of a numstat line."""
    return "\t".join(line.split("\t", 2)[:2])


def parse_numstat(output: str, user: str) -> StatsUser:
    """Sum numstat lines into insertion and deletion totals.

    Only the two leading stat columns are searched for numbers, so digits in
    file names never count. A line contributes only when exactly two numbers
    are found; binary entries ("-") and malformed lines contribute zero but
    are still counted as files. Blank separator lines are skipped.
    """
    insertions = 0
    deletions = 0
    files = 0

    for line in split_lines(output):
        if not line.strip():
            continue
        files += 1

        numbers = _NUMBER_PATTERN.findall(_stat_columns(line))
        if len(numbers) == 2:
            insertions += _parse_int(numbers[0])
            deletions += _parse_int(numbers[1])

    return StatsUser(
        insertions=insertions, deletions=deletions, author=user, files=files
    )


def num_stat_commits_per_user(
    repo_path: Union[str, Path],
    user: str,
    timeout: Optional[float] = None,
    locale: str = DEFAULT_GIT_LOCALE,
) -> StatsUser:
    """Return line insertion and deletion totals for user's commits.

    Raises:
        ProcessFailureError: If git fails
    """
    repo_path = Path(repo_path)
    if not _has_history(repo_path, timeout, locale):
        return parse_numstat("", user)

    cmd = [
        "git",
        "log",
        "--numstat",
        "--pretty=tformat:",
        f"--author={user}",
        "--until=now",
    ]
    try:
        output = run_git_checked(
            cmd, cwd=Path(repo_path), timeout=timeout, locale=locale
        )
    except Exception as e:
        logger.error(f"numstat query failed for author {user!r}: {e}")
        raise

    return parse_numstat(output, user)
