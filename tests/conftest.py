"""Shared fakes for the upy-package test suite."""
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest

from upy_package.core.device_detector import SerialDevice
from upy_package.core.package_manager import PackageManager
from upy_package.core.packager import Packager, PackagerResult, PackagerStatus
from upy_package.core.registry import RegistryAggregator
from upy_package.core.runtime_probe import RuntimeProbe


def make_port(device, vid=None, pid=None, serial_number=None):
    return SimpleNamespace(device=device, vid=vid, pid=pid, serial_number=serial_number)


class DictFetcher:
    """Serves registry documents from memory and records requests."""

    def __init__(self, documents: Dict[str, str]):
        self.documents = documents
        self.requested: List[str] = []

    def __call__(self, url: str, timeout: float) -> str:
        self.requested.append(url)
        if url not in self.documents:
            raise OSError(f"unreachable: {url}")
        return self.documents[url]


class FakeProbe(RuntimeProbe):
    def __init__(self, version: str = "1.22.0"):
        self.version = version
        self.calls = 0

    def probe_runtime_version(self, device) -> str:
        self.calls += 1
        return self.version


class FakePackager(Packager):
    def __init__(self, result: Optional[PackagerResult] = None):
        self.result = result or PackagerResult(PackagerStatus.SUCCESS, "ok")
        self.calls: List[tuple] = []

    def package_and_install(self, serial_port, reference, version=None, descriptor_override=None):
        self.calls.append((serial_port, reference, version, descriptor_override))
        return self.result


REGISTRY_A = """
packages:
  - name: arduino-iot-cloud
    url: https://github.com/arduino/arduino-iot-cloud-py
    description: Arduino IoT Cloud client library
    tags: [cloud, iot]
    author: Arduino
    license: MPL-2.0
  - name: senml
    url: github:arduino/senml-micropython
    description: SenML encoder
    tags: [iot, encoding]
    runtime: ">=1.20.0"
  - name: duplicate
    url: A
"""

REGISTRY_B = """
packages:
  - name: micropython-ujson
    description: JSON helpers
  - name: duplicate
    url: B
  - name: aioble
    description: Asyncio BLE library
    tags: [bluetooth, BLE]
"""

SOURCES = {"https://a.example/list.yaml": REGISTRY_A, "https://b.example/list.yaml": REGISTRY_B}


@pytest.fixture
def fetcher() -> DictFetcher:
    return DictFetcher(dict(SOURCES))


@pytest.fixture
def package_manager(fetcher) -> PackageManager:
    return PackageManager(RegistryAggregator(list(SOURCES), fetcher=fetcher))


@pytest.fixture
def device() -> SerialDevice:
    return SerialDevice(
        vendor_id=0x2341, product_id=0x056B, serial_port="/dev/ttyACM0",
        serial_number="ABC123", manufacturer="Arduino", name="Nano ESP32"
    )
