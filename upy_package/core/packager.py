"""
Package transfer module using mpremote.

Hands a resolved package reference to ``mpremote mip install`` for a board.
"""
import json
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from upy_package.config.settings import CONFIG
from upy_package.utils.logger import get_logger

REMOTE_PREFIXES = ("github:", "gitlab:", "http://", "https://")


class PackagerStatus(Enum):
    """Package transfer status."""
    SUCCESS = "success"
    FAILED = "failed"
    TOOL_NOT_FOUND = "tool_not_found"
    TIMEOUT = "timeout"


@dataclass
class PackagerResult:
    """Result of a package transfer."""
    status: PackagerStatus
    message: str
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.status == PackagerStatus.SUCCESS

    @property
    def output(self) -> str:
        return "\n".join(s for s in (self.stdout, self.stderr) if s)


def resolve_descriptor_urls(descriptor: Dict[str, Any], reference: str) -> Dict[str, Any]:
    """
    Rewrite relative ``urls`` entries of a descriptor against the remote
    source of ``reference``.

    Only remote references (``github:``, ``gitlab:``, http(s)) have a base to
    resolve against; anything else is returned unchanged.
    """
    if not reference.startswith(REMOTE_PREFIXES) or not isinstance(descriptor.get("urls"), list):
        return descriptor

    base = reference.rstrip("/")
    if base.lower().endswith(".json"):
        base = base.rsplit("/", 1)[0]

    urls = []
    for entry in descriptor["urls"]:
        if isinstance(entry, (list, tuple)) and len(entry) == 2 and _is_relative(entry[1]):
            path = entry[1][2:] if entry[1].startswith("./") else entry[1]
            entry = [entry[0], f"{base}/{path}"]
        urls.append(entry)
    return {**descriptor, "urls": urls}


def _is_relative(url: Any) -> bool:
    return isinstance(url, str) and ":" not in url and not url.startswith("/")


class Packager:
    """Transfers a package onto a board."""

    def package_and_install(
        self,
        serial_port: str,
        reference: str,
        version: Optional[str] = None,
        descriptor_override: Optional[Dict[str, Any]] = None
    ) -> PackagerResult:
        raise NotImplementedError


class MpremotePackager(Packager):
    """
    Installs packages with ``mpremote connect <port> mip install``.

    Failures are reported through PackagerResult, never raised.
    """

    def __init__(
        self,
        mpremote_path: Optional[str] = None,
        target_path: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        """
        Args:
            mpremote_path: mpremote executable. Uses the configured one if not provided.
            target_path: Directory on the board to install into (mip default otherwise)
            timeout: Seconds allowed per install
        """
        self._logger = get_logger()
        self._mpremote_path = mpremote_path or CONFIG.get_mpremote_path()
        self._target_path = target_path or CONFIG.MPREMOTE_TARGET_PATH
        self._timeout = timeout or CONFIG.MPREMOTE_TIMEOUT

    @property
    def mpremote_path(self) -> str:
        return self._mpremote_path

    def build_command(self, serial_port: str, reference: str, version: Optional[str] = None) -> List[str]:
        """Build the mpremote command line for one install."""
        cmd = [self._mpremote_path, "connect", serial_port, "mip", "install"]
        if self._target_path:
            cmd.append(f"--target={self._target_path}")
        cmd.append(f"{reference}@{version}" if version else reference)
        return cmd

    def package_and_install(
        self,
        serial_port: str,
        reference: str,
        version: Optional[str] = None,
        descriptor_override: Optional[Dict[str, Any]] = None
    ) -> PackagerResult:
        """
        Install one package on the board at ``serial_port``.

        A descriptor override is written to a temporary package.json which
        is installed instead of the remote one. Relative ``urls`` in it
        are resolved against ``reference``.
        """
        if not self._tool_exists():
            msg = f"mpremote not found: {self._mpremote_path}"
            self._logger.error("MpremotePackager", msg)
            return PackagerResult(status=PackagerStatus.TOOL_NOT_FOUND, message=msg)

        if descriptor_override:
            with tempfile.TemporaryDirectory(prefix="upy-package-") as tmp:
                descriptor_path = Path(tmp) / "package.json"
                descriptor = resolve_descriptor_urls(descriptor_override, reference)
                descriptor_path.write_text(json.dumps(descriptor, indent=2), encoding="utf-8")
                self._logger.debug("MpremotePackager", f"Using descriptor override for {reference}")
                return self._run(self.build_command(serial_port, str(descriptor_path), version), reference)

        return self._run(self.build_command(serial_port, reference, version), reference)

    def _run(self, cmd: List[str], reference: str) -> PackagerResult:
        self._logger.info("MpremotePackager", f"Command: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout
            )
        except subprocess.TimeoutExpired:
            msg = f"Installation of '{reference}' timed out ({self._timeout}s)"
            self._logger.error("MpremotePackager", msg)
            return PackagerResult(status=PackagerStatus.TIMEOUT, message=msg)
        except OSError as e:
            msg = f"Error running mpremote: {e}"
            self._logger.error("MpremotePackager", msg)
            return PackagerResult(status=PackagerStatus.FAILED, message=msg)

        self._logger.debug("MpremotePackager", f"Exit code: {result.returncode}")
        self._logger.debug("MpremotePackager", f"stdout: {result.stdout}")
        if result.stderr:
            self._logger.debug("MpremotePackager", f"stderr: {result.stderr}")

        # mip reports some failures on stdout with a zero exit code
        failed = result.returncode != 0 or "Package not found" in result.stdout
        if not failed:
            self._logger.success("MpremotePackager", f"Installed {reference}")
            return PackagerResult(
                status=PackagerStatus.SUCCESS,
                message=f"Installed {reference}",
                exit_code=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr
            )

        error_msg = (result.stderr or result.stdout).strip()
        return PackagerResult(
            status=PackagerStatus.FAILED,
            message=f"Installation of '{reference}' failed: {error_msg}",
            exit_code=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr
        )

    def _tool_exists(self) -> bool:
        """Check if the mpremote executable can be found."""
        path = Path(self._mpremote_path)
        if path.is_file():
            return True
        return shutil.which(self._mpremote_path) is not None
