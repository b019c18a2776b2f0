"""
Tests for history-wide code search.

Pagination and parsing are checked with a mocked git; the full two-phase
search is also run against a real repository.
"""

from unittest.mock import MagicMock, patch

import pytest

from repo_insight.config import Config
from repo_insight.errors import ParseFailureError, ProcessFailureError
from repo_insight.git.code_search import CodeSearchEngine
from repo_insight.git.models import RepoSearchOptions
from repo_insight.git.repository import Repository

REVS = "c3\nc2\nc1\n"


def _grep_output(count: int) -> str:
    """Fetch-phase output with count blocks, one per file."""
    blocks = [f"c1:file{i}.txt\n1:keyword {i}\n" for i in range(count)]
    return "\n".join(blocks)


def _ok(stdout: str) -> MagicMock:
    return MagicMock(returncode=0, stdout=stdout, stderr="")


NOTHING_FOUND = MagicMock(returncode=1, stdout="", stderr="")


@pytest.fixture
def engine(fake_repo_dir):
    return CodeSearchEngine(Repository(fake_repo_dir))


class TestCountPhase:
    """Test suite for get_number_of_code_matches."""

    def test_counts_output_records(self, engine):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [
                _ok(REVS),
                _ok("c3:README.md:2\nc2:README.md:2\nc1:README.md:1\n"),
            ]

            assert engine.get_number_of_code_matches("TODO") == 3

            grep_cmd = mock_run.call_args_list[1][0][0]
            assert grep_cmd[:7] == ["git", "grep", "-F", "-c", "-I", "-e", "TODO"]
            assert grep_cmd[7:] == ["c3", "c2", "c1"]

    def test_nothing_found_is_zero(self, engine):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [_ok(REVS), NOTHING_FOUND]

            assert engine.get_number_of_code_matches("absent") == 0

    def test_empty_history_is_zero(self, engine):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [_ok("")]

            assert engine.get_number_of_code_matches("x") == 0
            assert mock_run.call_count == 1

    def test_counts_accumulate_over_batches(self, fake_repo_dir):
        repo = Repository(fake_repo_dir, config=Config(grep_batch_size=2))
        engine = CodeSearchEngine(repo)

        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [
                _ok(REVS),
                _ok("c3:a:1\nc2:a:1\n"),
                _ok("c1:a:1\n"),
            ]

            assert engine.get_number_of_code_matches("a") == 3

    def test_grep_failure_raises(self, engine):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [
                _ok(REVS),
                MagicMock(returncode=128, stdout="", stderr="fatal: bad object c2"),
            ]

            with pytest.raises(ProcessFailureError, match="bad object"):
                engine.get_number_of_code_matches("x")


class TestFetchPhase:
    """Test suite for get_range_of_matches."""

    @pytest.mark.parametrize(
        "total,page,size,expected",
        [
            (5, 1, 2, 2),
            (5, 2, 2, 2),
            (5, 3, 2, 1),
            (5, 4, 2, 0),
            (3, 1, 10, 3),
            (10, 2, 5, 5),
        ],
    )
    def test_page_length(self, engine, total, page, size, expected):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [_ok(REVS), _ok(_grep_output(total))]

            matches = engine.get_range_of_matches(
                RepoSearchOptions(keyword="keyword", page=page, page_size=size)
            )

        assert len(matches) == expected == max(0, min(size, total - (page - 1) * size))

    def test_page_selects_window_before_parsing(self, engine):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [_ok(REVS), _ok(_grep_output(5))]

            matches = engine.get_range_of_matches(
                RepoSearchOptions(keyword="keyword", page=2, page_size=2)
            )

        assert [m.path for m in matches] == ["file2.txt", "file3.txt"]
        assert matches[0].commit_id == "c1"
        assert matches[0].content == "c1:file2.txt\n1:keyword 2"

    def test_fetch_command(self, engine):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [_ok(REVS), _ok(_grep_output(1))]

            engine.get_range_of_matches(
                RepoSearchOptions(keyword="Key", order_by="--date-order")
            )

            assert mock_run.call_args_list[0][0][0] == [
                "git",
                "rev-list",
                "--all",
                "--date-order",
            ]
            grep_cmd = mock_run.call_args_list[1][0][0]
            for flag in ("-F", "-I", "-i", "-n", "--break", "--heading", "--full-name"):
                assert flag in grep_cmd
            assert grep_cmd[grep_cmd.index("-B") + 1] == "2"
            assert grep_cmd[grep_cmd.index("-A") + 1] == "2"
            assert grep_cmd[grep_cmd.index("-e") + 1] == "Key"

    def test_fetch_runs_under_configured_locale(self, fake_repo_dir):
        engine = CodeSearchEngine(
            Repository(fake_repo_dir, config=Config(git_locale="C.UTF-8"))
        )
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [_ok(REVS), _ok(_grep_output(1))]

            engine.get_range_of_matches(RepoSearchOptions(keyword="ÜBER"))

            grep_env = mock_run.call_args_list[1][1]["env"]
            assert grep_env["LC_ALL"] == "C.UTF-8"
            assert grep_env["LANG"] == "C.UTF-8"

    def test_nothing_found_is_none(self, engine):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [_ok(REVS), NOTHING_FOUND]

            assert engine.get_range_of_matches(RepoSearchOptions(keyword="x")) is None

    def test_header_keeps_colons_in_path(self, engine):
        output = "c1:dir/a:b.txt\n3:x\n"
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [_ok(REVS), _ok(output)]

            matches = engine.get_range_of_matches(RepoSearchOptions(keyword="x"))

        assert matches[0].commit_id == "c1"
        assert matches[0].path == "dir/a:b.txt"

    @pytest.mark.parametrize("output", ["no-header-line", "nocolon\n1:x\n"])
    def test_malformed_block_raises(self, engine, output):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [_ok(REVS), _ok(output)]

            with pytest.raises(ParseFailureError):
                engine.get_range_of_matches(RepoSearchOptions(keyword="x"))

    def test_blocks_do_not_fuse_across_batches(self, fake_repo_dir):
        repo = Repository(fake_repo_dir, config=Config(grep_batch_size=1))
        engine = CodeSearchEngine(repo)

        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [
                _ok("c2\nc1\n"),
                _ok("c2:a.txt\n1:x\n"),
                _ok("c1:b.txt\n1:x\n"),
            ]

            matches = engine.get_range_of_matches(RepoSearchOptions(keyword="x"))

        assert [(m.commit_id, m.path) for m in matches] == [
            ("c2", "a.txt"),
            ("c1", "b.txt"),
        ]

    def test_order_by_must_be_a_flag(self, engine):
        with pytest.raises(ValueError):
            engine.get_range_of_matches(
                RepoSearchOptions(keyword="x", order_by="HEAD; rm")
            )


class TestSearchMatchesInRepo:
    """Test suite for the composed two-phase search."""

    def test_zero_matches(self, engine):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [_ok(REVS), NOTHING_FOUND, _ok(REVS), NOTHING_FOUND]

            result = engine.search_matches_in_repo(RepoSearchOptions(keyword="x"))

        assert result.number_matches == 0
        assert result.results == []

    def test_first_failure_propagates(self, engine):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [
                _ok(REVS),
                MagicMock(returncode=2, stdout="", stderr="fatal: boom"),
            ]

            with pytest.raises(ProcessFailureError):
                engine.search_matches_in_repo(RepoSearchOptions(keyword="x"))
            assert mock_run.call_count == 2

    def test_count_never_below_delivered_matches(self, engine):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [
                _ok(REVS),
                _ok("c1:file0.txt:1\n"),
                _ok(REVS),
                _ok(_grep_output(4)),
            ]

            result = engine.search_matches_in_repo(
                RepoSearchOptions(keyword="keyword", page=2, page_size=2)
            )

        assert len(result.results) == 2
        assert result.number_matches == 4

    def test_count_floor_applies_only_up_to_requested_page(self, engine):
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [
                _ok(REVS),
                _ok("c1:file0.txt:1\n"),
                _ok(REVS),
                _ok(_grep_output(4)),
            ]

            result = engine.search_matches_in_repo(
                RepoSearchOptions(keyword="keyword", page=1, page_size=2)
            )

        assert len(result.results) == 2
        assert result.number_matches == 2


class TestSearchAgainstRealRepository:
    def test_count_is_case_sensitive(self, sample_repo):
        engine = CodeSearchEngine(Repository(sample_repo.path))

        # README.md in each of the three commits; "todo" in src/app.py differs in case
        assert engine.get_number_of_code_matches("TODO") == 3
        assert engine.get_number_of_code_matches("absent-keyword") == 0

    def test_fetch_is_case_insensitive_and_paginated(self, sample_repo):
        engine = CodeSearchEngine(Repository(sample_repo.path))

        matches = engine.get_range_of_matches(
            RepoSearchOptions(keyword="todo", page=1, page_size=10)
        )

        pairs = {(m.commit_id, m.path) for m in matches}
        assert pairs == {
            (sample_repo.third, "README.md"),
            (sample_repo.second, "README.md"),
            (sample_repo.first, "README.md"),
            (sample_repo.first, "src/app.py"),
        }
        for match in matches:
            assert match.content.startswith(f"{match.commit_id}:{match.path}\n")

    def test_binary_files_are_skipped(self, sample_repo):
        engine = CodeSearchEngine(Repository(sample_repo.path))

        assert engine.get_number_of_code_matches("PNG") == 0

    def test_search_matches_in_repo(self, sample_repo):
        engine = CodeSearchEngine(Repository(sample_repo.path))

        result = engine.search_matches_in_repo(
            RepoSearchOptions(keyword="TODO", page=1, page_size=2)
        )

        assert len(result.results) == 2
        assert result.number_matches >= len(result.results)

        beyond = engine.search_matches_in_repo(
            RepoSearchOptions(keyword="TODO", page=5, page_size=2)
        )
        assert beyond.results == []
        assert beyond.number_matches == 3
