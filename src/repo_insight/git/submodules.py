"""
Submodule descriptors parsed from a commit's .gitmodules blob.

The parse is a small state machine: a "[submodule" line opens a section,
"path = ..." records the pending path and "url = ..." stores the submodule
and closes the section. A url that appears before its path is stored under
an empty path.
"""

import logging
import threading
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Iterable, Mapping, Optional

from ..errors import NotFoundError
from .models import SubModule
from .text_frames import split_key_value

if TYPE_CHECKING:
    from .commit import Commit

logger = logging.getLogger(__name__)

GITMODULES_PATH = ".gitmodules"
SECTION_MARKER = "[submodule"


def has_submodule_section(lines: Iterable[str]) -> bool:
    return any(line.startswith(SECTION_MARKER) for line in lines)


def parse_submodules(lines: Iterable[str]) -> Dict[str, SubModule]:
    """Parse .gitmodules lines into submodules keyed by path."""
    modules: Dict[str, SubModule] = {}
    in_module = False
    path = ""

    for line in lines:
        if line.startswith(SECTION_MARKER):
            in_module = True
            path = ""
            continue
        if not in_module:
            continue

        key, value = split_key_value(line)
        if key == "path":
            path = value or ""
        elif key == "url":
            modules[path] = SubModule(path=path, url=value or "")
            in_module = False

    return modules


class SubmoduleRegistry:
    """Lazily loaded, per-commit submodule mapping.

    The mapping is built at most once per Commit, under a lock, and is
    read-only afterwards.
    """

    def __init__(self, commit: "Commit"):
        self._commit = commit
        self._modules: Optional[Mapping[str, SubModule]] = None
        self._lock = threading.Lock()

    def get_sub_modules(self) -> Mapping[str, SubModule]:
        """Return the commit's submodules keyed by path.

        Raises:
            NotFoundError: If the commit has no .gitmodules or the file
                declares no submodule section
        """
        modules = self._modules
        if modules is not None:
            return modules

        with self._lock:
            if self._modules is None:
                self._modules = MappingProxyType(self._load())
            return self._modules

    def get_sub_module(self, path: str) -> Optional[SubModule]:
        """Return the submodule registered at path, or None."""
        return self.get_sub_modules().get(path)

    def _load(self) -> Dict[str, SubModule]:
        commit = self._commit
        data = commit.repo.read_blob(commit.id, GITMODULES_PATH)
        lines = data.decode("utf-8", errors="replace").splitlines()

        if not has_submodule_section(lines):
            raise NotFoundError("submodule section in .gitmodules", commit.id)

        modules = parse_submodules(lines)
        logger.debug(f"Loaded {len(modules)} submodule(s) for commit {commit.id}")
        return modules
