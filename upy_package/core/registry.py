"""
Package registry module.

Downloads the YAML package lists from the configured sources and merges
them into one ordered list of packages.
"""
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import yaml

from upy_package.config.settings import CONFIG
from upy_package.core.errors import InvalidPackageError, RegistryFetchError
from upy_package.utils.logger import get_logger


@dataclass(frozen=True)
class Package:
    """A package entry from the registry."""
    name: str
    url: Optional[str] = None
    version: Optional[str] = None
    description: Optional[str] = None
    tags: Tuple[str, ...] = ()
    author: Optional[str] = None
    license: Optional[str] = None
    docs: Optional[str] = None
    required_runtime: Optional[str] = None
    package_descriptor: Optional[Dict[str, Any]] = None

    @property
    def reference(self) -> str:
        """Installable reference; micropython-lib packages are installed by name."""
        return self.url or self.name

    @classmethod
    def from_dict(cls, record: Any) -> "Package":
        """
        Build a package from a raw registry record.

        Raises:
            InvalidPackageError: If the record is not a mapping, has no name
                or carries malformed tags or authors
        """
        if not isinstance(record, Mapping):
            raise InvalidPackageError(f"Package record must be a mapping, got {type(record).__name__}")

        name = record.get("name")
        if not isinstance(name, str) or not name.strip():
            raise InvalidPackageError(f"Package record without a name: {dict(record)!r}")

        overrides = record.get("overrides")
        overrides = dict(overrides) if isinstance(overrides, Mapping) else {}

        runtime_override = overrides.pop("runtime", None)
        required_runtime = (
            record.get("required_runtime")
            or record.get("runtime")
            or runtime_override
        )

        descriptor = record.get("package_descriptor")
        if not isinstance(descriptor, Mapping):
            descriptor = overrides or None

        return cls(
            name=name,
            url=_optional_str(record.get("url")),
            version=_optional_str(record.get("version")),
            description=_optional_str(record.get("description")),
            tags=_tags(record.get("tags")),
            author=_author(record),
            license=_optional_str(record.get("license")),
            docs=_optional_str(record.get("docs")),
            required_runtime=_optional_str(required_runtime),
            package_descriptor=dict(descriptor) if descriptor else None,
        )


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _tags(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
        raise InvalidPackageError(f"Package tags must be a string or a list of strings, got {value!r}")
    return tuple(value)


def _author(record: Mapping) -> Optional[str]:
    author = record.get("author")
    if author:
        return str(author)
    authors = record.get("authors")
    if isinstance(authors, str):
        return authors or None
    if not authors:
        return None
    if not isinstance(authors, list):
        raise InvalidPackageError(f"Package authors must be a string or a list, got {authors!r}")
    return ", ".join(str(a) for a in authors)


def parse_package_list(text: str) -> List[Package]:
    """
    Parse one registry document.

    The document is a mapping whose ``packages`` key holds a list of records.

    Raises:
        yaml.YAMLError: If the text is not valid YAML
        InvalidPackageError: If the document or one of its records is malformed
    """
    document = yaml.safe_load(text)
    if not isinstance(document, Mapping) or "packages" not in document:
        raise InvalidPackageError("Registry document has no 'packages' key")

    records = document["packages"] or []
    if not isinstance(records, list):
        raise InvalidPackageError("'packages' must be a list")
    return [Package.from_dict(record) for record in records]


def http_fetch(url: str, timeout: float) -> str:
    """Download a registry document as text."""
    request = urllib.request.Request(url, headers={"User-Agent": CONFIG.REGISTRY_USER_AGENT})
    with urllib.request.urlopen(request, timeout=timeout) as response:
        return response.read().decode("utf-8")


class RegistryAggregator:
    """
    Fetches and merges package lists from an ordered set of sources.

    Source order, then document order, decides which entry wins when two
    packages share a name.
    """

    def __init__(
        self,
        source_urls: Optional[Iterable[str]] = None,
        fetcher: Optional[Callable[[str, float], str]] = None,
        timeout: Optional[float] = None,
        max_workers: Optional[int] = None
    ):
        self._logger = get_logger()
        self.source_urls: Tuple[str, ...] = tuple(
            source_urls if source_urls is not None else CONFIG.get_registry_urls()
        )
        self._fetcher = fetcher or http_fetch
        self._timeout = timeout if timeout is not None else CONFIG.REGISTRY_TIMEOUT
        self._max_workers = max_workers or CONFIG.REGISTRY_MAX_WORKERS

    def fetch(self) -> List[Package]:
        """
        Download every source and merge the results.

        Returns:
            All packages, in source order then document order

        Raises:
            RegistryFetchError: If any single source fails
        """
        if not self.source_urls:
            return []

        workers = min(self._max_workers, len(self.source_urls))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            # map() yields in submission order regardless of completion order
            per_source = list(executor.map(self._fetch_source, self.source_urls))

        packages: List[Package] = []
        for source_packages in per_source:
            packages.extend(source_packages)
        self._logger.info(
            "RegistryAggregator",
            f"Loaded {len(packages)} packages from {len(self.source_urls)} source(s)"
        )
        return packages

    def _fetch_source(self, url: str) -> List[Package]:
        self._logger.debug("RegistryAggregator", f"Fetching {url}")
        try:
            text = self._fetcher(url, self._timeout)
        except urllib.error.HTTPError as e:
            raise RegistryFetchError(url, f"HTTP {e.code} {e.reason}") from e
        except (urllib.error.URLError, OSError, UnicodeDecodeError) as e:
            raise RegistryFetchError(url, str(e)) from e

        try:
            packages = parse_package_list(text)
        except (yaml.YAMLError, InvalidPackageError) as e:
            raise RegistryFetchError(url, f"invalid package list: {e}") from e

        self._logger.debug("RegistryAggregator", f"{url}: {len(packages)} packages")
        return packages
