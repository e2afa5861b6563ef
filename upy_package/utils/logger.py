"""
Logging for upy-package.

Messages are tagged with the component that emitted them and go to stderr,
so listings printed on stdout can be piped. Raw serial traffic of the
runtime probe can be captured to a separate file.
"""
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")


class AppLogger:
    """Source-tagged front end over a ``logging.Logger``."""

    def __init__(self, name: str = "upy_package"):
        self._logger = logging.getLogger(name)
        self._logger.setLevel(logging.DEBUG)
        self._logger.propagate = False
        self._file_handler: Optional[logging.FileHandler] = None
        self._serial_log: Optional[TextIO] = None

        self._console = next(
            (h for h in self._logger.handlers if getattr(h, "upy_console", False)), None
        )
        if self._console is None:
            self._console = logging.StreamHandler(sys.stderr)
            self._console.upy_console = True
            self._console.setLevel(logging.WARNING)
            self._console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
            self._logger.addHandler(self._console)

    def set_console_level(self, level: int) -> None:
        """Change console verbosity (logging.DEBUG for --debug)."""
        self._console.setLevel(level)

    def set_file_log(self, path: Path) -> None:
        """Mirror every message, debug included, into ``path``."""
        if self._file_handler:
            self._logger.removeHandler(self._file_handler)
            self._file_handler.close()

        path.parent.mkdir(parents=True, exist_ok=True)
        self._file_handler = logging.FileHandler(path, encoding="utf-8")
        self._file_handler.setLevel(logging.DEBUG)
        self._file_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s"
        ))
        self._logger.addHandler(self._file_handler)

    def start_serial_log(self, path: Path) -> None:
        """Capture bytes exchanged with boards into ``path`` until stopped."""
        self.stop_serial_log()
        path.parent.mkdir(parents=True, exist_ok=True)
        self._serial_log = open(path, "w", encoding="utf-8")
        self._serial_log.write(f"# serial capture started {datetime.now().isoformat()}\n")

    def stop_serial_log(self) -> None:
        if self._serial_log:
            self._serial_log.write(f"# serial capture stopped {datetime.now().isoformat()}\n")
            self._serial_log.close()
            self._serial_log = None

    def log_serial_tx(self, data: str) -> None:
        self._write_serial("TX", data)

    def log_serial_rx(self, data: str) -> None:
        self._write_serial("RX", data)

    def _write_serial(self, direction: str, data: str) -> None:
        if self._serial_log:
            ts = datetime.now().strftime("%H:%M:%S.%f")[:-3]
            self._serial_log.write(f"{direction} | {ts} | {data!r}\n")
            self._serial_log.flush()

    def _log(self, level: int, source: str, message: Optional[str]) -> None:
        # Called as (message) or (source, message)
        if message is None:
            source, message = "App", source
        self._logger.log(level, "[%s] %s", source, message)

    def debug(self, source: str, message: Optional[str] = None) -> None:
        self._log(logging.DEBUG, source, message)

    def info(self, source: str, message: Optional[str] = None) -> None:
        self._log(logging.INFO, source, message)

    def warning(self, source: str, message: Optional[str] = None) -> None:
        self._log(logging.WARNING, source, message)

    def error(self, source: str, message: Optional[str] = None) -> None:
        self._log(logging.ERROR, source, message)

    def success(self, source: str, message: Optional[str] = None) -> None:
        """Log a completed operation at the SUCCESS level (between INFO and WARNING)."""
        self._log(SUCCESS, source, message)


_logger: Optional[AppLogger] = None


def get_logger() -> AppLogger:
    """Get or create the process-wide logger."""
    global _logger
    if _logger is None:
        _logger = AppLogger()
    return _logger
