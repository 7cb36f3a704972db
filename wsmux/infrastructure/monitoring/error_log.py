"""Daily error log files for failed API requests.

Each failed request appends one line to ``wsapi_errors_<YYYYMMDD>.log``::

    [2024-05-01T12:00:00+00:00] [Error 503 | Service Unavailable] [https://...?a=1]
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union
from urllib.parse import unquote_plus

logger = logging.getLogger(__name__)

ERROR_LOG_PREFIX = "wsapi_errors_"
LINE_TERMINATOR = "\r\n"


class ErrorLogWriter:
    """Appends request errors to a dated log file."""

    def __init__(
        self,
        directory: Union[str, Path],
        base_dir: Optional[Path] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """Initializes the writer.

        Args:
            directory: Log directory. Relative paths resolve against base_dir.
            base_dir: Anchor for relative directories (defaults to the cwd).
            now: Clock used for the timestamp and the file name.
        """
        path = Path(directory).expanduser()
        if not path.is_absolute():
            path = (base_dir or Path.cwd()) / path
        self.directory = path
        self._now = now

    def log_file_for(self, when: datetime) -> Path:
        return self.directory / f"{ERROR_LOG_PREFIX}{when.strftime('%Y%m%d')}.log"

    def write(self, request_uri: str, http_code: str, error_message: str) -> Path:
        """Appends one error line.

        Args:
            request_uri: The request URI including its query string.
            http_code: Status code of the failed request.
            error_message: Human-readable error text.

        Returns:
            The file that was written.
        """
        when = self._now()
        line = f"[{when.isoformat()}] [Error {http_code} | {error_message}] [{unquote_plus(request_uri)}]{LINE_TERMINATOR}"
        self.directory.mkdir(parents=True, exist_ok=True)
        log_file = self.log_file_for(when)
        with open(log_file, "a", encoding="utf-8", newline="") as f:
            f.write(line)
        logger.debug(f"Wrote error entry for status {http_code} to {log_file}")
        return log_file
