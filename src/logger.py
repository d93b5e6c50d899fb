"""Logging setup shared by the decoder and its driver.

Log records are written as JSON lines to a size-rotated file; in development
they are echoed to the console with the same formatter. Dict messages are
merged into the JSON record, which the decoder uses for structured fields
such as buffer sizes.

Classes:
    LogManager: Builds and owns the application logger.
"""

import logging
import logging.handlers
import os

from pythonjsonlogger import json

LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(filename)s %(name)s %(funcName)s %(lineno)s %(message)s"
)
RENAMED_FIELDS = {
    "asctime": "timestamp",
    "levelname": "level",
    "funcName": "function",
    "lineno": "line",
}


class LogManager:
    """Creates a named logger with JSON output and file rotation.

    Attributes:
        logger (logging.Logger): Configured logger instance.
        log_dir (str): Directory holding the log files.
        formatter (json.JsonFormatter): Formatter shared by all handlers.
    """

    logger: logging.Logger
    log_dir: str
    formatter: json.JsonFormatter

    def __init__(
        self,
        app_name: str,
        log_dir: str,
        level: int = logging.INFO,
        max_size: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 5,
        development: bool = False,
    ) -> None:
        """Set up the logger, its log directory and handlers.

        Args:
            app_name: Logger name, also the log file stem.
            log_dir: Directory for log files, ``~`` is expanded.
            level: Logging level (default: logging.INFO).
            max_size: Rotate the log file past this many bytes (default: 10MB).
            backup_count: Rotated files to keep (default: 5).
            development: Also log to the console (default: False).

        Raises:
            AssertionError: If log_dir is empty.
            OSError: If the log directory cannot be created.

        Examples:
            >>> logger = LogManager(
            ...     app_name="jsonstream",
            ...     log_dir="/tmp/jsonstream",
            ...     level=logging.DEBUG,
            ... ).logger
        """
        assert log_dir, "log_dir is required"

        self.log_dir = os.path.expanduser(log_dir)
        try:
            os.makedirs(self.log_dir, mode=0o755, exist_ok=True)
        except OSError as e:
            raise OSError(f"Failed to create log directory: {e}")

        self.logger: logging.Logger = logging.getLogger(app_name)
        self.logger.setLevel(level)
        self.formatter: json.JsonFormatter = json.JsonFormatter(
            fmt=LOG_FORMAT, rename_fields=RENAMED_FIELDS
        )

        # A second manager for the same name must not duplicate output
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        self._add_handler(self._file_handler(app_name, max_size, backup_count))
        if development:
            self._add_handler(logging.StreamHandler())

    def _file_handler(
        self, app_name: str, max_size: int, backup_count: int
    ) -> logging.Handler:
        """Build the rotating handler writing to ``{log_dir}/{app_name}.log``."""
        log_file = os.path.join(self.log_dir, f"{app_name}.log")
        return logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_size, backupCount=backup_count
        )

    def _add_handler(self, handler: logging.Handler) -> None:
        handler.setFormatter(self.formatter)
        self.logger.addHandler(handler)
