"""
Classification of the files changed by a single commit.

git's name-status report is consumed as a live stream: git writes into an
OS pipe while a scanner thread reads and classifies lines as they arrive.
The write end is closed on every exit path, which is what lets the scanner
observe end-of-stream and finish.
"""

import logging
import os
import subprocess
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Optional, Union

from ..utils.git_runner import (
    DEFAULT_GIT_LOCALE,
    raise_for_process_failure,
    run_git_command,
)
from .models import CommitFileStatus
from .text_frames import split_fields

logger = logging.getLogger(__name__)


def classify_name_status_line(line: str, file_status: CommitFileStatus) -> None:
    """Record one name-status line in file_status.

    Lines with fewer than two fields are skipped. Only the A, D and M status
    codes are classified; rename, copy and type-change codes are ignored.
    """
    fields = split_fields(line.rstrip("\r\n"), maxsplit=1)
    if len(fields) < 2:
        return

    code, path = fields[0][0], fields[1]
    if code == "A":
        file_status.added.append(path)
    elif code == "D":
        file_status.removed.append(path)
    elif code == "M":
        file_status.modified.append(path)
    else:
        logger.debug(f"Ignoring name-status code {fields[0]!r} for {path}")


def scan_name_status(lines: Iterable[str]) -> CommitFileStatus:
    """Classify every line of a name-status report."""
    file_status = CommitFileStatus()
    for line in lines:
        classify_name_status_line(line, file_status)
    return file_status


def get_commit_file_status(
    repo_path: Union[str, Path],
    commit_id: str,
    timeout: Optional[float] = None,
    locale: str = DEFAULT_GIT_LOCALE,
) -> CommitFileStatus:
    """Return files added, removed and modified by commit_id.

    Args:
        repo_path: Path to the git repository
        commit_id: Commit to inspect
        timeout: Optional timeout for the git invocation, in seconds
        locale: Locale forced on git output

    Returns:
        CommitFileStatus relative to the commit's first parent

    Raises:
        ProcessFailureError: If git fails; partial output is discarded
    """
    cwd = Path(repo_path)
    cmd = [
        "git",
        "-c",
        "core.quotePath=false",
        "log",
        "-1",
        "--name-status",
        "--pretty=format:",
        commit_id,
        "--",
    ]

    read_fd, write_fd = os.pipe()
    with os.fdopen(read_fd, "r", encoding="utf-8", errors="replace") as reader:
        with ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="name-status-scanner"
        ) as executor:
            done = executor.submit(scan_name_status, reader)
            try:
                result = run_git_command(
                    cmd,
                    cwd=cwd,
                    check=False,
                    capture_output=False,
                    stdout=write_fd,
                    stderr=subprocess.PIPE,
                    timeout=timeout,
                    locale=locale,
                )
            finally:
                # Close the writer so the scanner sees end-of-stream
                os.close(write_fd)
            file_status = done.result()

    if result.returncode != 0:
        raise_for_process_failure(cmd, cwd, result.returncode, result.stderr)

    return file_status
