"""
Package lookup over the aggregated registry.
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple

from upy_package.config.settings import CONFIG
from upy_package.core.errors import PackageNotFoundError
from upy_package.core.registry import Package, RegistryAggregator
from upy_package.utils.logger import get_logger


@dataclass(frozen=True)
class CustomReferencePolicy:
    """
    Decides which package arguments name an installable source directly.

    A token is a direct reference when it starts with one of ``prefixes``
    or ends with one of ``extensions`` (both compared case-insensitively).
    Anything else is looked up in the registry.
    """
    prefixes: Tuple[str, ...] = CONFIG.CUSTOM_REFERENCE_PREFIXES
    extensions: Tuple[str, ...] = CONFIG.CUSTOM_REFERENCE_EXTENSIONS

    def is_custom_reference(self, token: str) -> bool:
        lowered = token.strip().lower()
        if not lowered:
            return False
        if any(lowered.startswith(p.lower()) for p in self.prefixes):
            return True
        return any(lowered.endswith(ext.lower()) for ext in self.extensions)


DEFAULT_POLICY = CustomReferencePolicy()


def is_custom_reference(token: str, policy: Optional[CustomReferencePolicy] = None) -> bool:
    """True if ``token`` bypasses the registry and is passed to the packager as is."""
    return (policy or DEFAULT_POLICY).is_custom_reference(token)


def split_version_pin(token: str) -> Tuple[str, Optional[str]]:
    """Split ``name@1.2.3`` into name and version; other tokens have no pin."""
    name, sep, version = token.rpartition("@")
    if not sep or not name or not version:
        return token, None
    return name, version


class PackageManager:
    """
    Resolves package names against the aggregated registry.

    The registry is fetched on first use and kept for the lifetime of the
    instance.
    """

    def __init__(self, aggregator: Optional[RegistryAggregator] = None):
        self._logger = get_logger()
        self._aggregator = aggregator or RegistryAggregator()
        self._packages: Optional[List[Package]] = None

    def get_package_list(self) -> List[Package]:
        """
        Get all packages in aggregate order.

        Raises:
            RegistryFetchError: If the registry cannot be loaded
        """
        if self._packages is None:
            self._packages = self._aggregator.fetch()
        return list(self._packages)

    def find_by_name(self, name: str) -> Package:
        """
        Exact, case-sensitive lookup; the first occurrence wins.

        Raises:
            PackageNotFoundError: If no package has that name
        """
        for package in self.get_package_list():
            if package.name == name:
                return package
        raise PackageNotFoundError(name)

    def get_package_info(self, name: str) -> Optional[Package]:
        """Like find_by_name but returns None for unknown packages."""
        try:
            return self.find_by_name(name)
        except PackageNotFoundError:
            return None

    def search(self, pattern: str) -> List[Package]:
        """
        Case-insensitive substring search over name, description and tags.

        An empty pattern matches every package.
        """
        needle = pattern.lower()
        return [p for p in self.get_package_list() if self._matches(p, needle)]

    @staticmethod
    def _matches(package: Package, needle: str) -> bool:
        if needle in package.name.lower():
            return True
        if package.description and needle in package.description.lower():
            return True
        return any(needle in tag.lower() for tag in package.tags)
