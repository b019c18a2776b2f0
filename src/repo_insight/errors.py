"""Exceptions raised by the git metadata layer."""

from typing import List, Optional


class GitInsightError(Exception):
    """Base class for repo-insight errors."""

    pass


class NotFoundError(GitInsightError):
    """A commit, parent index, or tree entry does not exist."""

    def __init__(self, kind: str, identifier: str = ""):
        self.kind = kind
        self.identifier = identifier
        if identifier:
            super().__init__(f"{kind} does not exist: {identifier}")
        else:
            super().__init__(f"{kind} does not exist")


class ProcessFailureError(GitInsightError):
    """A git invocation exited with a failure status.

    The diagnostic text git wrote to stderr is attached to the message.
    """

    def __init__(self, cmd: List[str], returncode: int, stderr: Optional[str] = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        message = f"exit status {returncode}"
        if self.stderr:
            message = f"{message} - {self.stderr}"
        super().__init__(message)


class ParseFailureError(GitInsightError):
    """A required structural element is missing from git output."""

    pass
