"""
Global configuration for upy-package.

This module contains all configurable parameters used throughout the application.
Modify values here to adjust behavior without changing code.
"""
import os
from pathlib import Path
from typing import Tuple


class Settings:
    """Global application settings - class-level constants for easy access."""

    # Application metadata
    APP_NAME = "upy-package"
    VERSION = "1.0.0"
    DESCRIPTION = "A command-line tool to install MicroPython packages on Arduino boards"

    # Paths
    LOG_FILE_PATH = str(Path.home() / ".config" / "upy-package" / "logs" / "upy-package.log")

    # Board detection
    ARDUINO_VID = 0x2341  # Arduino SA
    CORRUPTED_SERIAL_MARKER = "&"  # Windows sometimes reports "&"-joined instance paths

    # Package registry
    REGISTRY_URLS: Tuple[str, ...] = (
        "https://raw.githubusercontent.com/arduino/package-index-py/main/package-list.yaml",
        "https://raw.githubusercontent.com/arduino/package-index-py/main/micropython-lib.yaml",
    )
    REGISTRY_TIMEOUT = 15.0  # seconds per source
    REGISTRY_MAX_WORKERS = 4
    REGISTRY_USER_AGENT = f"{APP_NAME}/{VERSION}"

    # Direct references that bypass the registry
    CUSTOM_REFERENCE_PREFIXES: Tuple[str, ...] = ("github:", "gitlab:", "http://", "https://")
    CUSTOM_REFERENCE_EXTENSIONS: Tuple[str, ...] = (".py", ".mpy", ".json")

    # mpremote packager
    MPREMOTE_PATH = "mpremote"
    MPREMOTE_TIMEOUT = 120  # seconds per package
    MPREMOTE_TARGET_PATH = None  # None lets mip pick /lib

    # Serial communication (runtime probe)
    SERIAL_BAUDRATE = 115200
    SERIAL_WRITE_TIMEOUT = 1.0
    PROBE_TIMEOUT = 5.0  # Max wait for raw REPL responses

    # Environment overrides
    ENV_REGISTRY_URLS = "UPY_PACKAGE_REGISTRY_URLS"
    ENV_MPREMOTE = "UPY_PACKAGE_MPREMOTE"
    ENV_LOG_FILE = "UPY_PACKAGE_LOG_FILE"

    @classmethod
    def get_registry_urls(cls) -> Tuple[str, ...]:
        """Get registry sources, honouring a comma separated env override."""
        override = os.environ.get(cls.ENV_REGISTRY_URLS, "")
        urls = tuple(u.strip() for u in override.split(",") if u.strip())
        return urls or cls.REGISTRY_URLS

    @classmethod
    def get_mpremote_path(cls) -> str:
        """Get the mpremote executable to delegate installs to."""
        return os.environ.get(cls.ENV_MPREMOTE) or cls.MPREMOTE_PATH

    @classmethod
    def get_log_file_path(cls) -> Path:
        """Get log file path."""
        return Path(os.environ.get(cls.ENV_LOG_FILE) or cls.LOG_FILE_PATH).expanduser()


class _ConfigProxy:
    """
    Read-only view over `Settings` shared by all modules as `CONFIG`.

    Plain constants are forwarded; helpers resolve environment overrides.
    """

    APP_VERSION = Settings.VERSION

    def __getattr__(self, name):
        if hasattr(Settings, name):
            return getattr(Settings, name)
        raise AttributeError(f"CONFIG has no attribute '{name}'")

    def get_registry_urls(self) -> Tuple[str, ...]:
        return Settings.get_registry_urls()

    def get_mpremote_path(self) -> str:
        return Settings.get_mpremote_path()

    def get_log_file_path(self) -> Path:
        return Settings.get_log_file_path()


CONFIG = _ConfigProxy()
