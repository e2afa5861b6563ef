"""Tests for registry parsing and aggregation."""
import threading
import time
import urllib.error

import pytest

from conftest import REGISTRY_A, REGISTRY_B, SOURCES, DictFetcher
from upy_package.core.errors import InvalidPackageError, RegistryFetchError
from upy_package.core.registry import Package, RegistryAggregator, parse_package_list


class TestPackageFromDict:

    def test_minimal_record_gets_defaults(self) -> None:
        package = Package.from_dict({"name": "aioble"})

        assert package == Package(name="aioble")
        assert package.tags == ()
        assert package.reference == "aioble"

    def test_full_record(self) -> None:
        package = Package.from_dict({
            "name": "senml",
            "url": "github:arduino/senml-micropython",
            "version": "1.0.0",
            "description": "SenML encoder",
            "tags": ["iot", "encoding"],
            "authors": ["Arduino", "Contributors"],
            "license": "MIT",
            "docs": "https://example.com/docs",
            "required_runtime": ">=1.20.0",
            "package_descriptor": {"urls": [["senml.py", "senml.py"]]},
        })

        assert package.reference == "github:arduino/senml-micropython"
        assert package.tags == ("iot", "encoding")
        assert package.author == "Arduino, Contributors"
        assert package.required_runtime == ">=1.20.0"
        assert package.package_descriptor == {"urls": [["senml.py", "senml.py"]]}

    def test_runtime_from_overrides(self) -> None:
        package = Package.from_dict({
            "name": "x",
            "overrides": {"runtime": "^1.21", "deps": [["aioble", "latest"]]},
        })

        assert package.required_runtime == "^1.21"
        assert package.package_descriptor == {"deps": [["aioble", "latest"]]}

    @pytest.mark.parametrize("record", [{}, {"name": ""}, {"url": "x"}, ["name"], "aioble"])
    def test_rejects_records_without_name(self, record) -> None:
        with pytest.raises(InvalidPackageError):
            Package.from_dict(record)

    @pytest.mark.parametrize("field, value", [
        ("tags", 5),
        ("tags", {"iot": True}),
        ("tags", ["iot", 3]),
        ("authors", 7),
    ])
    def test_rejects_malformed_fields(self, field, value) -> None:
        with pytest.raises(InvalidPackageError):
            Package.from_dict({"name": "x", field: value})

    def test_single_tag_string(self) -> None:
        assert Package.from_dict({"name": "x", "tags": "iot"}).tags == ("iot",)


class TestParsePackageList:

    def test_document_order_is_kept(self) -> None:
        names = [p.name for p in parse_package_list(REGISTRY_B)]

        assert names == ["micropython-ujson", "duplicate", "aioble"]

    def test_empty_packages(self) -> None:
        assert parse_package_list("packages:\n") == []

    def test_missing_packages_key(self) -> None:
        with pytest.raises(InvalidPackageError):
            parse_package_list("other: []\n")


class TestRegistryAggregator:

    def test_merges_in_source_order(self, fetcher) -> None:
        packages = RegistryAggregator(list(SOURCES), fetcher=fetcher).fetch()

        assert [p.name for p in packages] == [
            "arduino-iot-cloud", "senml", "duplicate",
            "micropython-ujson", "duplicate", "aioble",
        ]
        assert sorted(fetcher.requested) == sorted(SOURCES)

    def test_concurrent_fetch_keeps_source_order(self) -> None:
        slow_first = threading.Event()

        def fetcher(url, timeout):
            if url.endswith("a"):
                # Finish after the second source
                slow_first.wait(1.0)
                time.sleep(0.05)
                return "packages:\n  - name: from-a\n"
            slow_first.set()
            return "packages:\n  - name: from-b\n"

        packages = RegistryAggregator(["a", "b"], fetcher=fetcher, max_workers=2).fetch()

        assert [p.name for p in packages] == ["from-a", "from-b"]

    def test_one_failing_source_fails_everything(self) -> None:
        fetcher = DictFetcher({"https://a.example/list.yaml": REGISTRY_A})
        aggregator = RegistryAggregator(
            ["https://a.example/list.yaml", "https://missing.example/list.yaml"],
            fetcher=fetcher
        )

        with pytest.raises(RegistryFetchError) as excinfo:
            aggregator.fetch()
        assert excinfo.value.url == "https://missing.example/list.yaml"

    def test_http_error(self) -> None:
        def fetcher(url, timeout):
            raise urllib.error.HTTPError(url, 404, "Not Found", None, None)

        with pytest.raises(RegistryFetchError, match="HTTP 404"):
            RegistryAggregator(["https://x.example"], fetcher=fetcher).fetch()

    @pytest.mark.parametrize("body", [
        "packages: [\n",
        "- just\n- a list\n",
        "packages:\n  - description: nameless\n",
        "packages:\n  - name: x\n    tags: 5\n",
    ])
    def test_malformed_documents(self, body) -> None:
        with pytest.raises(RegistryFetchError, match="invalid package list"):
            RegistryAggregator(["u"], fetcher=lambda url, timeout: body).fetch()

    def test_no_sources(self) -> None:
        assert RegistryAggregator([], fetcher=DictFetcher({})).fetch() == []

    def test_sources_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("UPY_PACKAGE_REGISTRY_URLS", "https://one.example, https://two.example")

        assert RegistryAggregator().source_urls == ("https://one.example", "https://two.example")
