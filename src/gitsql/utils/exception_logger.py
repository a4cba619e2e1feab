"""Centralized exception logger for gitsql.

Appends exceptions with debugging context to a JSON-lines style log file:
- Timestamp and process ID-based log file name
- Complete stack trace
- Command context (for git operations)

The log file is only created once the first exception is written, so a
clean session leaves nothing behind.
"""

import json
import os
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


class ExceptionLogger:
    """Centralized exception logging facility."""

    _instance: Optional["ExceptionLogger"] = None

    def __init__(self, log_file_path: Path):
        """Initialize exception logger with specific log file path.

        Args:
            log_file_path: Path to the log file for writing exceptions
        """
        self.log_file_path = log_file_path

    @classmethod
    def initialize(cls, log_dir: Path) -> "ExceptionLogger":
        """Initialize the global exception logger (idempotent singleton).

        WARNING: This is a singleton. If already initialized, returns the existing
        instance rather than creating a new one. Tests should call reset() if
        they need fresh instances.

        Args:
            log_dir: Directory the log file will be created in

        Returns:
            Initialized ExceptionLogger instance (singleton)
        """
        if cls._instance is not None:
            return cls._instance

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        pid = os.getpid()

        cls._instance = cls(Path(log_dir).expanduser() / f"error_{timestamp}_{pid}.log")
        return cls._instance

    @classmethod
    def get_instance(cls) -> Optional["ExceptionLogger"]:
        """Get the current exception logger instance, None if not initialized."""
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    def log_exception(
        self,
        exception: BaseException,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log an exception with full context.

        Args:
            exception: The exception to log
            context: Additional context data to include in log (optional)
        """
        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "exception_type": type(exception).__name__,
            "exception_message": str(exception),
            "stack_trace": "".join(
                traceback.format_exception(
                    type(exception), exception, exception.__traceback__
                )
            ),
            "context": context or {},
        }

        try:
            self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_file_path, "a") as f:
                f.write(json.dumps(log_entry, indent=2, default=str))
                f.write("\n---\n")
        except OSError:
            # Log dir not writable
            pass


def log_exception(exception: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
    """Log through the global exception logger if one is initialized."""
    logger = ExceptionLogger.get_instance()
    if logger:
        logger.log_exception(exception, context=context)
