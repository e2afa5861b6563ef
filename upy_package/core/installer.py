"""
Install orchestration.

Turns a package argument into an installable reference, gates it on the
board's runtime and hands it to the packager.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from upy_package.core.compatibility import CompatibilityGate, CompatibilityResult
from upy_package.core.errors import InstallationError, PackageNotFoundError
from upy_package.core.package_manager import (
    CustomReferencePolicy, PackageManager, is_custom_reference, split_version_pin
)
from upy_package.core.packager import Packager, PackagerResult, PackagerStatus
from upy_package.core.registry import Package
from upy_package.utils.logger import get_logger


class InstallStatus(Enum):
    """Outcome of one install request."""
    INSTALLED = "installed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class InstallResult:
    """Result of one install request."""
    status: InstallStatus
    requested: str
    message: str
    reference: Optional[str] = None
    compatibility: Optional[CompatibilityResult] = None
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.status == InstallStatus.INSTALLED


# (substring in packager output, clearer explanation)
KNOWN_FAILURES = (
    ("Package not found", "No package.json descriptor was found in the remote source of '{reference}'."),
    ("HTTP Error 404", "The remote source of '{reference}' does not exist or has no package.json descriptor."),
    ("404 Not Found", "The remote source of '{reference}' does not exist or has no package.json descriptor."),
    ("failed to access", "Could not connect to the board at {port}. Is another program using it?"),
    ("no device found", "The board at {port} is no longer connected."),
)


def explain_failure(result: PackagerResult, reference: str, serial_port: str) -> str:
    """Return a clearer message for recognized packager failures."""
    if result.status == PackagerStatus.TOOL_NOT_FOUND:
        return f"{result.message}. Install it with 'pip install mpremote'."
    output = f"{result.message}\n{result.output}".lower()
    for signature, explanation in KNOWN_FAILURES:
        if signature.lower() in output:
            return explanation.format(reference=reference, port=serial_port)
    return result.message


class InstallOrchestrator:
    """
    Installs packages onto a board.

    Requests are handled one at a time; the packager needs exclusive use of
    the board's serial connection.
    """

    def __init__(
        self,
        package_manager: PackageManager,
        gate: CompatibilityGate,
        packager: Packager,
        confirm: Optional[Callable[[CompatibilityResult], bool]] = None,
        policy: Optional[CustomReferencePolicy] = None
    ):
        """
        Args:
            package_manager: Registry lookups for bare package names
            gate: Runtime compatibility check
            packager: Performs the actual transfer
            confirm: Asked whether to continue after a runtime mismatch.
                Without it every mismatch is skipped.
            policy: Which arguments count as direct references
        """
        self._logger = get_logger()
        self._packages = package_manager
        self._gate = gate
        self._packager = packager
        self._confirm = confirm
        self._policy = policy

    def install(
        self,
        reference: Union[str, Package],
        device,
        version: Optional[str] = None,
        descriptor_override: Optional[Dict[str, Any]] = None
    ) -> InstallResult:
        """
        Install one package.

        Args:
            reference: Registry name, direct reference or resolved Package
            device: Target SerialDevice
            version: Optional version pin
            descriptor_override: Replaces the package's own descriptor

        Returns:
            INSTALLED, or SKIPPED when a runtime mismatch was declined

        Raises:
            PackageNotFoundError: If a registry name is unknown
            InstallationError: If the packager fails
        """
        if isinstance(reference, str) and is_custom_reference(reference, self._policy):
            self._logger.info("Installer", f"Installing direct reference {reference} on {device}")
            return self._delegate(reference, reference, device, version, descriptor_override, None)

        package = reference if isinstance(reference, Package) else self._packages.find_by_name(reference)

        compatibility = self._gate.check(package, device)
        if not compatibility.compatible:
            proceed = self._confirm(compatibility) if self._confirm else False
            if not proceed:
                msg = f"Installation of '{package.name}' skipped. Unsupported runtime installed."
                self._logger.warning("Installer", msg)
                return InstallResult(
                    status=InstallStatus.SKIPPED,
                    requested=package.name,
                    message=msg,
                    reference=package.reference,
                    compatibility=compatibility
                )
            self._logger.info("Installer", f"Continuing with '{package.name}' despite runtime mismatch")

        override = descriptor_override if descriptor_override is not None else package.package_descriptor
        self._logger.info("Installer", f"Installing {package.name} on {device}")
        return self._delegate(package.name, package.reference, device, version, override, compatibility)

    def _delegate(
        self,
        requested: str,
        reference: str,
        device,
        version: Optional[str],
        descriptor_override: Optional[Dict[str, Any]],
        compatibility: Optional[CompatibilityResult]
    ) -> InstallResult:
        result = self._packager.package_and_install(
            device.serial_port, reference, version, descriptor_override
        )
        if not result.success:
            msg = explain_failure(result, reference, device.serial_port)
            self._logger.error("Installer", msg)
            raise InstallationError(reference, msg, result)

        return InstallResult(
            status=InstallStatus.INSTALLED,
            requested=requested,
            message=f"Installed '{requested}'",
            reference=reference,
            compatibility=compatibility
        )

    def install_all(
        self,
        references: Sequence[Union[str, Package]],
        device,
        stop_on_error: bool = False,
        on_result: Optional[Callable[[InstallResult], None]] = None
    ) -> List[InstallResult]:
        """
        Install several packages in request order.

        Unknown names and packager failures are recorded as FAILED results.
        Registry, descriptor and probe errors abort the batch.

        Args:
            references: Package arguments (``name@version`` pins a registry
                package), optionally as Package objects
            device: Target SerialDevice
            stop_on_error: Stop after the first FAILED result
            on_result: Called with each result as soon as it is known
        """
        results: List[InstallResult] = []
        for reference in references:
            requested = reference.name if isinstance(reference, Package) else reference
            version = None
            if isinstance(reference, str) and not is_custom_reference(reference, self._policy):
                reference, version = split_version_pin(reference)
            try:
                result = self.install(reference, device, version=version)
            except (PackageNotFoundError, InstallationError) as e:
                result = InstallResult(
                    status=InstallStatus.FAILED,
                    requested=requested,
                    message=str(e),
                    reference=getattr(e, "reference", None),
                    error=e
                )
            results.append(result)
            if on_result:
                on_result(result)
            if stop_on_error and result.status == InstallStatus.FAILED:
                break
        return results
