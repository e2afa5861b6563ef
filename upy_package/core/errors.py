"""
Exception types raised by the upy-package core.

A runtime mismatch is not an exception; see CompatibilityStatus.MISMATCH.
"""
from typing import Optional


class UpyPackageError(Exception):
    """Base class for all upy-package errors."""


class DeviceEnumerationError(UpyPackageError):
    """The operating system serial port inventory could not be read."""


class AmbiguousDescriptorError(UpyPackageError):
    """Two descriptors share the same vendor/product pair."""

    def __init__(self, vendor_id: int, product_id: int, names=()):
        self.vendor_id = vendor_id
        self.product_id = product_id
        self.names = tuple(names)
        detail = f" ({', '.join(self.names)})" if self.names else ""
        super().__init__(
            f"Multiple descriptors found for device {vendor_id:04x}:{product_id:04x}{detail}"
        )


class DeviceSelectionError(UpyPackageError):
    """A device choice was required but missing or did not match a port."""


class RegistryFetchError(UpyPackageError):
    """A registry source could not be downloaded or parsed."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Error fetching package list from {url}: {reason}")


class InvalidPackageError(UpyPackageError, ValueError):
    """A registry record is not a valid package."""


class PackageNotFoundError(UpyPackageError, LookupError):
    """No registry package has the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Package '{name}' not found.")


class InvalidRuntimeVersionError(UpyPackageError):
    """The runtime version reported by a device is not a semantic version."""

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"Board runtime version {version!r} is not valid.")


class InvalidRuntimeRequirementError(UpyPackageError):
    """A package declares a runtime range that cannot be parsed."""

    def __init__(self, package_name: str, requirement: str):
        self.package_name = package_name
        self.requirement = requirement
        super().__init__(
            f"Package '{package_name}' declares an invalid runtime requirement: {requirement!r}"
        )


class RuntimeProbeError(UpyPackageError):
    """The runtime version could not be read from the device."""


class InstallationError(UpyPackageError):
    """The packager failed to install a package."""

    def __init__(self, reference: str, message: str, result: Optional[object] = None):
        self.reference = reference
        self.result = result
        super().__init__(message)
