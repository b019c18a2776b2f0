"""Append-only JSON log of failed git invocations and uncaught errors.

One file per process is written under <repo>/.repo-insight, named after the
start time and PID. Each entry carries the stack trace, the thread name and
caller context such as the git argv, stderr and exit status.
"""

import json
import os
import threading
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any


LOG_DIR_NAME = ".repo-insight"


class ExceptionLogger:
    """Process-wide failure log, created once by initialize()."""

    _instance: Optional["ExceptionLogger"] = None
    _lock = threading.Lock()
    log_file_path: Optional[Path] = None

    def __init__(self, log_file_path: Path):
        self.log_file_path = log_file_path
        self._write_lock = threading.Lock()

    @classmethod
    def initialize(cls, project_root: Path) -> "ExceptionLogger":
        """Initialize the global exception logger (idempotent singleton).

        WARNING: If already initialized, returns the existing instance.
        Tests should call reset() if they need fresh instances.

        Args:
            project_root: Root directory of the repository being inspected

        Returns:
            Initialized ExceptionLogger instance (singleton)
        """
        with cls._lock:
            if cls._instance is not None:
                return cls._instance

            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            pid = os.getpid()

            log_dir = Path(project_root) / LOG_DIR_NAME
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file_path = log_dir / f"error_{timestamp}_{pid}.log"
            instance = cls(log_file_path)
            log_file_path.touch()

            cls._instance = instance
            return instance

    @classmethod
    def get_instance(cls) -> Optional["ExceptionLogger"]:
        """Get the current exception logger instance, or None."""
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Forget the singleton instance."""
        with cls._lock:
            cls._instance = None

    def log_exception(
        self,
        exception: BaseException,
        thread_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Append one JSON entry for exception, followed by a --- separator."""
        if not self.log_file_path:
            return

        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "thread": thread_name or threading.current_thread().name,
            "exception_type": type(exception).__name__,
            "exception_message": str(exception),
            "stack_trace": "".join(
                traceback.format_exception(
                    type(exception), exception, exception.__traceback__
                )
            ),
            "context": context or {},
        }

        with self._write_lock:
            with open(self.log_file_path, "a") as f:
                f.write(json.dumps(log_entry, indent=2, default=str))
                f.write("\n---\n")
