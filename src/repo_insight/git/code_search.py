"""
History-wide code search.

Searches every commit reachable from any ref with git grep, in two
independent phases:

1. count: fixed-string, case-sensitive, one output line per matching
   (commit, file) pair;
2. fetch: fixed-string, case-insensitive, with context lines and heading/break
   formatting so that each hit forms a blank-line separated block. Blocks are
   paginated before they are parsed.

The phases are separate git invocations, so results are only consistent
while the repository is not being written to.
"""

import logging
import time
from typing import List, Optional

from ..errors import ParseFailureError
from ..utils.git_runner import (
    is_benign_exit,
    raise_for_process_failure,
    run_git_batched,
)
from .models import Match, MatchesResults, RepoSearchOptions
from .repository import Repository
from .text_frames import count_records, read_header, split_blocks, split_fields, split_lines

logger = logging.getLogger(__name__)


class CodeSearchEngine:
    """Paginated fixed-string search across the full commit history."""

    def __init__(self, repo: Repository):
        """Initialize CodeSearchEngine.

        Args:
            repo: Repository to search
        """
        self.repo = repo
        self.config = repo.config

    def _list_revisions(self, order_by: str = "") -> List[str]:
        """List every commit reachable from any ref."""
        cmd = ["rev-list", "--all"]
        if order_by:
            if not order_by.startswith("--"):
                raise ValueError(f"order_by must be a rev-list flag: {order_by!r}")
            cmd.append(order_by)
        return split_lines(self.repo.run_git(cmd))

    def _grep(self, grep_cmd: List[str], revisions: List[str]) -> List[str]:
        """Run git grep over revisions in batches, returning output per batch.

        Raises:
            ProcessFailureError: If git grep fails for a reason other than
                finding nothing
        """
        outputs, stderr, returncode = run_git_batched(
            grep_cmd,
            revisions,
            cwd=self.repo.path,
            batch_size=self.config.grep_batch_size,
            timeout=self.config.git_timeout,
            locale=self.config.git_locale,
        )
        if returncode != 0 and not is_benign_exit(returncode, stderr):
            raise_for_process_failure(grep_cmd, self.repo.path, returncode, stderr)
        return outputs

    def get_number_of_code_matches(self, keyword: str) -> int:
        """Return the number of (commit, file) pairs containing keyword.

        The match is fixed-string and case-sensitive; binary files are
        skipped. Returns 0 when nothing matches.
        """
        revisions = self._list_revisions()
        if not revisions:
            return 0

        grep_cmd = ["git", "grep", "-F", "-c", "-I", "-e", keyword]
        outputs = self._grep(grep_cmd, revisions)
        return sum(count_records(output) for output in outputs)

    def get_range_of_matches(self, options: RepoSearchOptions) -> Optional[List[Match]]:
        """Return one page of case-insensitive matches for options.keyword.

        Returns:
            None when nothing matches anywhere in history; an empty list when
            the page lies beyond the last match

        Raises:
            ParseFailureError: If a selected block has no readable header
        """
        revisions = self._list_revisions(options.order_by)
        if not revisions:
            return None

        context = str(self.config.search_context_lines)
        grep_cmd = [
            "git",
            "grep",
            "-F",
            "-I",
            "-i",
            "-n",
            "--no-color",
            "--full-name",
            "--break",
            "--heading",
            "-B",
            context,
            "-A",
            context,
            "-e",
            options.keyword,
        ]
        outputs = self._grep(grep_cmd, revisions)

        blocks = [block for output in outputs for block in split_blocks(output)]
        if not blocks:
            return None

        start = (options.page - 1) * options.page_size
        end = min(options.page * options.page_size, len(blocks))

        return [self._parse_block(block) for block in blocks[start:end]]

    @staticmethod
    def _parse_block(block: str) -> Match:
        """Parse one "<commit>:<path>" headed block into a Match.

        Raises:
            ParseFailureError: If the header is missing or malformed
        """
        header, _ = read_header(block)
        info = split_fields(header, ":", maxsplit=1)
        if len(info) < 2:
            raise ParseFailureError(f"Malformed match header: {header!r}")

        return Match(
            commit_id=info[0],
            path=info[1].strip(" "),
            content=block.rstrip("\n"),
        )

    def search_matches_in_repo(self, options: RepoSearchOptions) -> MatchesResults:
        """Return the total match count together with one page of matches.

        number_matches is the count phase total, raised to the number of
        matches delivered up to and including this page when the
        case-insensitive fetch finds more. Only that floor depends on the
        requested page; a case-sensitive keyword reports the same total on
        every page.

        The first failure of either phase is propagated.
        """
        start_time = time.time()

        number_matches = self.get_number_of_code_matches(options.keyword)
        results = self.get_range_of_matches(options) or []

        # The count is case-sensitive and the fetch is not; never report
        # fewer matches than the pages already delivered
        seen = (options.page - 1) * options.page_size + len(results)
        if results and number_matches < seen:
            number_matches = seen

        elapsed = (time.time() - start_time) * 1000
        logger.debug(
            f"Code search for {options.keyword!r} page {options.page}: "
            f"{len(results)} of {number_matches} matches in {elapsed:.1f}ms"
        )

        return MatchesResults(number_matches=number_matches, results=results)
