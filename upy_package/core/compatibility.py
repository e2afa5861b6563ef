"""
Runtime compatibility check between a package and a board.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import semantic_version

from upy_package.core.errors import InvalidRuntimeRequirementError, InvalidRuntimeVersionError
from upy_package.core.registry import Package
from upy_package.core.runtime_probe import RuntimeProbe
from upy_package.utils.logger import get_logger


class CompatibilityStatus(Enum):
    """Outcome of a compatibility check."""
    COMPATIBLE = "compatible"
    MISMATCH = "mismatch"


@dataclass
class CompatibilityResult:
    """Result of a compatibility check."""
    status: CompatibilityStatus
    package_name: str
    required: Optional[str] = None
    actual: Optional[str] = None

    @property
    def compatible(self) -> bool:
        return self.status == CompatibilityStatus.COMPATIBLE

    @property
    def message(self) -> str:
        if self.compatible:
            return f"Package '{self.package_name}' is compatible with the board runtime"
        return (
            f"Package '{self.package_name}' requires a different runtime version "
            f"({self.required}) than the one running on the board ({self.actual})."
        )


def parse_runtime_version(version: str) -> semantic_version.Version:
    """
    Parse a version string reported by a board.

    Surrounding whitespace and one leading ``v`` or ``=`` are accepted.

    Raises:
        InvalidRuntimeVersionError: If the rest is not a semantic version
    """
    cleaned = (version or "").strip()
    if cleaned[:1] in ("v", "="):
        cleaned = cleaned[1:]
    try:
        return semantic_version.Version(cleaned)
    except ValueError as e:
        raise InvalidRuntimeVersionError(version) from e


_COMPARATOR_SPACE = re.compile(r"(<=|>=|<|>|=|\^|~)\s+")


def normalize_requirement(requirement: str) -> str:
    """Drop whitespace between a comparator and its version (``>= 1.20.0``)."""
    return _COMPARATOR_SPACE.sub(r"\1", requirement.strip())


class CompatibilityGate:
    """
    Compares a package's runtime requirement against a board's runtime.

    Requirements use npm range syntax: comparators, hyphen ranges,
    wildcards, ``^``, ``~`` and ``||``.
    """

    def __init__(self, probe: RuntimeProbe):
        self._logger = get_logger()
        self._probe = probe

    def check(self, package: Package, device) -> CompatibilityResult:
        """
        Check whether a package may be installed on a board.

        The board is only contacted when the package declares a requirement.
        A mismatch is reported, never raised; the caller decides whether to
        continue.

        Raises:
            InvalidRuntimeVersionError: If the probe returns a malformed version
            InvalidRuntimeRequirementError: If the package's range is malformed
        """
        requirement = package.required_runtime
        if not requirement:
            return CompatibilityResult(CompatibilityStatus.COMPATIBLE, package.name)

        try:
            spec = semantic_version.NpmSpec(normalize_requirement(requirement))
        except ValueError as e:
            raise InvalidRuntimeRequirementError(package.name, requirement) from e

        actual = self._probe.probe_runtime_version(device)
        version = parse_runtime_version(actual)
        self._logger.debug(
            "CompatibilityGate",
            f"{package.name}: requires {requirement}, board runs {version}"
        )

        if spec.match(version):
            return CompatibilityResult(
                CompatibilityStatus.COMPATIBLE, package.name, requirement, str(version)
            )

        result = CompatibilityResult(
            CompatibilityStatus.MISMATCH, package.name, requirement, str(version)
        )
        self._logger.warning("CompatibilityGate", result.message)
        return result
