"""Configuration management for repo-insight."""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".repo-insight"
CONFIG_FILE_NAME = "config.json"


class Config(BaseModel):
    """Settings shared by every git query of one repository."""

    repo_path: Path = Field(default=Path("."), description="Repository to inspect")

    commits_range_size: int = Field(
        default=50,
        gt=0,
        description="Number of commits per page for paged history listings",
    )
    search_page_size: int = Field(
        default=10, gt=0, description="Default number of code matches per page"
    )
    search_context_lines: int = Field(
        default=2,
        ge=0,
        description="Lines of context shown before and after each code match",
    )
    grep_batch_size: int = Field(
        default=256,
        gt=0,
        description="Maximum number of revisions passed to a single git grep",
    )

    # Also drives git grep -i case folding: under "C" only ASCII letters fold,
    # so non-ASCII keywords match case-insensitively only with a UTF-8
    # locale such as "C.UTF-8". Month names in %b stay English under both.
    git_locale: str = Field(
        default="C",
        description=(
            "Locale forced on git so that dates and messages parse reliably; "
            "use C.UTF-8 for case-insensitive search of non-ASCII keywords"
        ),
    )
    git_timeout: Optional[float] = Field(
        default=None,
        description="Timeout for each git invocation in seconds (None disables it)",
    )

    @field_validator("repo_path", mode="before")
    @classmethod
    def convert_path(cls, v: Any) -> Path:
        if isinstance(v, (str, Path)):
            return Path(v)
        raise ValueError(f"repo_path must be a path, got {type(v).__name__}")


class ConfigManager:
    """Reads and writes .repo-insight/config.json.

    repo_path is stored relative to the directory holding .repo-insight, so a
    checked-in config keeps working after the checkout moves.
    """

    DEFAULT_CONFIG_PATH = Path(CONFIG_DIR_NAME) / CONFIG_FILE_NAME

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = Path(config_path) if config_path else self.DEFAULT_CONFIG_PATH
        self._config: Optional[Config] = None

    @property
    def config_root(self) -> Path:
        """Directory that contains .repo-insight."""
        return self.config_path.parent.parent

    def load(self) -> Config:
        """Load the config file, or fall back to defaults when there is none.

        Raises:
            ValueError: If the file exists but cannot be read or validated
        """
        if not self.config_path.exists():
            logger.debug(f"No config at {self.config_path}, using defaults")
            self._config = Config()
            return self._config

        try:
            data = json.loads(self.config_path.read_text())
            if "repo_path" in data:
                data["repo_path"] = str(self._resolve_relative_path(data["repo_path"]))
            self._config = Config(**data)
        except (OSError, json.JSONDecodeError, ValidationError, TypeError) as e:
            raise ValueError(f"Failed to load config from {self.config_path}: {e}")

        return self._config

    def save(self, config: Optional[Config] = None) -> None:
        """Write config (or the loaded one) to disk."""
        config = config or self._config
        if config is None:
            raise ValueError("No configuration to save")

        data = config.model_dump(mode="json")
        data["repo_path"] = self._make_relative_to_config(config.repo_path)

        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self.config_path.write_text(json.dumps(data, indent=2, sort_keys=True))

    def get_config(self) -> Config:
        if self._config is None:
            return self.load()
        return self._config

    def create_default_config(self, repo_path: Path = Path(".")) -> Config:
        """Write a default config for repo_path and make it current."""
        self._config = Config(repo_path=repo_path)
        self.save()
        return self._config

    def update_config(self, **kwargs: Any) -> Config:
        """Replace the given fields, validate, and persist the result."""
        updated = Config(**{**self.get_config().model_dump(), **kwargs})
        self._config = updated
        self.save()
        return updated

    @staticmethod
    def find_config_path(start_dir: Optional[Path] = None) -> Optional[Path]:
        """Walk up from start_dir (default: cwd) looking for .repo-insight/config.json."""
        current = Path(start_dir) if start_dir else Path.cwd()

        for directory in (current, *current.parents):
            candidate = directory / CONFIG_DIR_NAME / CONFIG_FILE_NAME
            if candidate.exists():
                return candidate

        return None

    @classmethod
    def create_with_backtrack(cls, start_dir: Optional[Path] = None) -> "ConfigManager":
        """Return a manager for the nearest config above start_dir.

        When none exists, the manager points at start_dir/.repo-insight/config.json.
        """
        found = cls.find_config_path(start_dir)
        if found is not None:
            return cls(found)
        base = Path(start_dir) if start_dir else Path.cwd()
        return cls(base / CONFIG_DIR_NAME / CONFIG_FILE_NAME)

    def _make_relative_to_config(self, path: Path) -> str:
        if not path.is_absolute():
            return str(path)

        try:
            relative = path.resolve().relative_to(self.config_root.resolve())
        except ValueError:
            # Outside the config root
            return str(path.resolve())
        return str(relative)

    def _resolve_relative_path(self, path_str: str) -> Path:
        path = Path(path_str)
        if path.is_absolute():
            return path
        return (self.config_root / path).resolve()
