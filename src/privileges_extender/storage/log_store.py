"""Access to the application log file."""

import logging
from pathlib import Path

LOG_FORMAT = "[%(asctime)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LogStore:
    """Reads and clears the log file written by the file handler.

    Attributes:
        path: Path to the log file
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def create_handler(self, level: int = logging.INFO) -> logging.FileHandler:
        """Build a file handler appending timestamped entries to ``path``.

        Creates the parent directory if needed.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(self.path, encoding="utf-8")
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        return handler

    def read_all(self) -> str | None:
        """Return the whole log, or None if it does not exist yet."""
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8", errors="replace")

    def tail(self, lines: int = 200) -> str:
        """Return the last ``lines`` lines of the log.

        Args:
            lines: Number of lines to return

        Returns:
            Joined lines, empty string if the log is missing
        """
        content = self.read_all()
        if not content or lines <= 0:
            return ""
        return "\n".join(content.splitlines()[-lines:])

    def clear(self) -> None:
        """Truncate the log file."""
        if self.path.exists():
            with open(self.path, "w", encoding="utf-8"):
                pass
