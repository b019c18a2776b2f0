"""
Single entry point for every git invocation made by repo-insight.

Each call runs with the inspected repository registered as a safe.directory
(so repositories owned by another user stay readable) and with a pinned
locale, because month abbreviations and diagnostics are parsed. Failures are
turned into ProcessFailureError carrying git's stderr. Long revision lists
are split across several invocations, as xargs would.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, Iterable, List, NoReturn, Optional, Tuple

from ..errors import ProcessFailureError


logger = logging.getLogger(__name__)

DEFAULT_GIT_LOCALE = "C"


def get_git_environment(
    project_dir: Path, locale: str = DEFAULT_GIT_LOCALE
) -> Dict[str, str]:
    """
    Get environment variables for git commands.

    Handles dubious ownership by registering the repository as a
    safe.directory, and pins LC_ALL/LANG so that parsed output does not
    depend on the caller's locale.

    Args:
        project_dir: Path to the repository directory
        locale: Locale to force for git output

    Returns:
        Dictionary of environment variables for git commands
    """
    env = os.environ.copy()

    env["GIT_CONFIG_COUNT"] = "1"
    env["GIT_CONFIG_KEY_0"] = "safe.directory"
    env["GIT_CONFIG_VALUE_0"] = str(Path(project_dir).resolve())

    # Preserve existing GIT_CONFIG_* entries, shifted past our safe.directory
    config_count = 1
    for key in os.environ:
        if key.startswith("GIT_CONFIG_KEY_"):
            idx = key.replace("GIT_CONFIG_KEY_", "")
            if idx.isdigit():
                new_idx = int(idx) + 1
                env[f"GIT_CONFIG_KEY_{new_idx}"] = os.environ[key]
                if f"GIT_CONFIG_VALUE_{idx}" in os.environ:
                    env[f"GIT_CONFIG_VALUE_{new_idx}"] = os.environ[
                        f"GIT_CONFIG_VALUE_{idx}"
                    ]
                config_count = max(config_count, new_idx + 1)

    env["GIT_CONFIG_COUNT"] = str(config_count)

    env["LC_ALL"] = locale
    env["LANG"] = locale

    return env


def run_git_command(
    cmd: List[str],
    cwd: Path,
    check: bool = True,
    capture_output: bool = True,
    text: bool = True,
    timeout: Optional[float] = None,
    locale: str = DEFAULT_GIT_LOCALE,
    **kwargs,
) -> subprocess.CompletedProcess:
    """
    Run git with the safe.directory and locale environment applied.

    Text output is decoded as UTF-8, replacing undecodable bytes. Extra
    keyword arguments go to subprocess.run; an env mapping there is merged
    over the prepared environment.

    Returns:
        The finished process

    Raises:
        ValueError: If the command does not start with 'git'
        subprocess.CalledProcessError: If check=True and command fails
        subprocess.TimeoutExpired: If timeout is exceeded
    """
    if not cmd or cmd[0] != "git":
        raise ValueError("Command must start with 'git'")

    env = get_git_environment(cwd, locale=locale)

    if "env" in kwargs:
        env.update(kwargs["env"])
        kwargs.pop("env")

    if text:
        kwargs.setdefault("encoding", "utf-8")
        kwargs.setdefault("errors", "replace")

    logger.debug(f"Running git command in {cwd}: {' '.join(cmd)}")

    return subprocess.run(
        cmd,
        cwd=cwd,
        check=check,
        capture_output=capture_output,
        text=text,
        timeout=timeout,
        env=env,
        **kwargs,
    )


def is_benign_exit(returncode: int, stderr: Optional[str]) -> bool:
    """Exit status 1 without diagnostic output means "nothing found"."""
    return returncode == 1 and not (stderr or "").strip()


def raise_for_process_failure(
    cmd: List[str],
    cwd: Path,
    returncode: int,
    stderr: Optional[str],
    stdout: Optional[str] = None,
) -> NoReturn:
    """Raise ProcessFailureError for a failed git invocation.

    The failure is recorded in the exception log (when one is initialized)
    before raising.

    Raises:
        ProcessFailureError: Always
    """
    error = ProcessFailureError(cmd, returncode, stderr or "")
    _log_git_failure(error, cwd, stdout)
    raise error


def run_git_checked(
    cmd: List[str],
    cwd: Path,
    allow_benign_exit: bool = False,
    timeout: Optional[float] = None,
    locale: str = DEFAULT_GIT_LOCALE,
    **kwargs,
) -> str:
    """Run a git command and return its stdout.

    Args:
        cmd: Git command as a list
        cwd: Working directory for the command
        allow_benign_exit: Treat exit status 1 with empty stderr as success
        timeout: Optional timeout in seconds
        locale: Locale forced on git output

    Returns:
        Decoded stdout

    Raises:
        ProcessFailureError: If git exits with a failure status
    """
    result = run_git_command(
        cmd, cwd=cwd, check=False, timeout=timeout, locale=locale, **kwargs
    )
    if result.returncode != 0:
        if allow_benign_exit and is_benign_exit(result.returncode, result.stderr):
            return result.stdout or ""
        raise_for_process_failure(
            cmd, cwd, result.returncode, result.stderr, result.stdout
        )
    return str(result.stdout or "")


def _batches(items: List[str], size: int) -> Iterable[List[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def run_git_batched(
    base_cmd: List[str],
    arguments: List[str],
    cwd: Path,
    batch_size: int = 256,
    timeout: Optional[float] = None,
    locale: str = DEFAULT_GIT_LOCALE,
) -> Tuple[List[str], str, int]:
    """Run base_cmd once per batch of trailing arguments, like xargs.

    Outputs are returned per batch: the last record of one batch and the
    first record of the next are not separated by any delimiter.

    Args:
        base_cmd: Git command without the batched arguments
        arguments: Arguments appended to base_cmd in batches
        cwd: Working directory for the command
        batch_size: Maximum number of arguments per invocation
        timeout: Optional timeout per invocation, in seconds
        locale: Locale forced on git output

    Returns:
        Tuple of (stdout per batch, concatenated stderr, worst exit status)
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")

    stdout_parts: List[str] = []
    stderr_parts: List[str] = []
    returncode = 0

    for batch in _batches(arguments, batch_size):
        result = run_git_command(
            base_cmd + batch,
            cwd=cwd,
            check=False,
            timeout=timeout,
            locale=locale,
        )
        stdout_parts.append(result.stdout or "")
        if result.stderr:
            stderr_parts.append(result.stderr)
        returncode = max(returncode, result.returncode)

    return stdout_parts, "".join(stderr_parts), returncode


def _log_git_failure(
    error: ProcessFailureError,
    cwd: Path,
    stdout: Optional[str],
) -> None:
    """Log a git command failure with full context."""
    from .exception_logger import ExceptionLogger

    logger.warning(f"Git command failed with status {error.returncode}: {error}")

    exception_logger = ExceptionLogger.get_instance()
    if exception_logger:
        context = {
            "git_command": " ".join(error.cmd),
            "cwd": str(cwd),
            "returncode": error.returncode,
            "stdout": stdout or "",
            "stderr": error.stderr,
        }
        exception_logger.log_exception(error, context=context)


def is_git_repository(project_dir: Path) -> bool:
    """Return True if git recognises project_dir as (part of) a repository."""
    try:
        run_git_command(["git", "rev-parse", "--git-dir"], cwd=project_dir)
    except (subprocess.CalledProcessError, FileNotFoundError, NotADirectoryError):
        return False
    return True
