"""Tests for the mpremote packager."""
import json
import subprocess
from types import SimpleNamespace

import pytest

from upy_package.core.packager import MpremotePackager, PackagerStatus, resolve_descriptor_urls


@pytest.fixture
def runs(monkeypatch):
    """Capture subprocess.run calls; tests set the returned process."""
    calls = []
    state = SimpleNamespace(process=SimpleNamespace(returncode=0, stdout="Done\n", stderr=""))

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        if isinstance(state.process, Exception):
            raise state.process
        return state.process

    monkeypatch.setattr("upy_package.core.packager.subprocess.run", fake_run)
    monkeypatch.setattr("upy_package.core.packager.shutil.which", lambda name: f"/usr/bin/{name}")
    state.calls = calls
    return state


def test_build_command() -> None:
    packager = MpremotePackager(mpremote_path="mpremote")

    assert packager.build_command("/dev/ttyACM0", "aioble") == [
        "mpremote", "connect", "/dev/ttyACM0", "mip", "install", "aioble"
    ]
    assert packager.build_command("COM3", "aioble", "0.5.0")[-1] == "aioble@0.5.0"


def test_target_path() -> None:
    cmd = MpremotePackager(mpremote_path="mpremote", target_path="/lib/x").build_command("COM3", "a")

    assert "--target=/lib/x" in cmd


def test_success(runs) -> None:
    result = MpremotePackager(mpremote_path="mpremote").package_and_install("COM3", "github:a/b")

    assert result.success
    assert runs.calls == [["mpremote", "connect", "COM3", "mip", "install", "github:a/b"]]


def test_non_zero_exit(runs) -> None:
    runs.process = SimpleNamespace(returncode=1, stdout="", stderr="failed to access COM3\n")

    result = MpremotePackager(mpremote_path="mpremote").package_and_install("COM3", "aioble")

    assert result.status == PackagerStatus.FAILED
    assert "failed to access COM3" in result.message
    assert result.exit_code == 1


def test_package_not_found_on_stdout(runs) -> None:
    runs.process = SimpleNamespace(returncode=0, stdout="Package not found: github:a/b/package.json\n", stderr="")

    result = MpremotePackager(mpremote_path="mpremote").package_and_install("COM3", "github:a/b")

    assert result.status == PackagerStatus.FAILED


def test_timeout(runs) -> None:
    runs.process = subprocess.TimeoutExpired(cmd="mpremote", timeout=1)

    result = MpremotePackager(mpremote_path="mpremote", timeout=1).package_and_install("COM3", "aioble")

    assert result.status == PackagerStatus.TIMEOUT


def test_tool_missing(monkeypatch) -> None:
    monkeypatch.setattr("upy_package.core.packager.shutil.which", lambda name: None)

    result = MpremotePackager(mpremote_path="no-such-mpremote").package_and_install("COM3", "aioble")

    assert result.status == PackagerStatus.TOOL_NOT_FOUND


def test_descriptor_override_is_installed_from_file(monkeypatch) -> None:
    seen = {}

    def fake_run(cmd, **kwargs):
        with open(cmd[-1], encoding="utf-8") as f:
            seen["descriptor"] = json.load(f)
        seen["cmd"] = cmd
        return SimpleNamespace(returncode=0, stdout="", stderr="")

    monkeypatch.setattr("upy_package.core.packager.subprocess.run", fake_run)
    monkeypatch.setattr("upy_package.core.packager.shutil.which", lambda name: name)
    override = {"urls": [["senml.py", "github:arduino/senml/senml.py"]], "version": "1.0"}

    result = MpremotePackager(mpremote_path="mpremote").package_and_install(
        "COM3", "github:arduino/senml", descriptor_override=override
    )

    assert result.success
    assert seen["descriptor"] == override
    assert seen["cmd"][-1].endswith("package.json")


def test_relative_descriptor_urls_point_at_the_remote_source(monkeypatch) -> None:
    seen = {}

    def fake_run(cmd, **kwargs):
        with open(cmd[-1], encoding="utf-8") as f:
            seen["descriptor"] = json.load(f)
        return SimpleNamespace(returncode=0, stdout="", stderr="")

    monkeypatch.setattr("upy_package.core.packager.subprocess.run", fake_run)
    monkeypatch.setattr("upy_package.core.packager.shutil.which", lambda name: name)
    override = {"urls": [["senml.py", "senml.py"], ["lib/x.py", "github:other/x/x.py"]]}

    MpremotePackager(mpremote_path="mpremote").package_and_install(
        "COM3", "github:a/senml", descriptor_override=override
    )

    assert seen["descriptor"]["urls"] == [
        ["senml.py", "github:a/senml/senml.py"],
        ["lib/x.py", "github:other/x/x.py"],
    ]


@pytest.mark.parametrize("reference, expected", [
    ("github:a/senml/", "github:a/senml/src/senml.py"),
    ("https://example.com/pkg/package.json", "https://example.com/pkg/src/senml.py"),
    ("senml", "./src/senml.py"),
])
def test_resolve_descriptor_urls(reference, expected) -> None:
    descriptor = {"urls": [["senml.py", "./src/senml.py"]], "version": "1.0"}

    resolved = resolve_descriptor_urls(descriptor, reference)

    assert resolved["urls"] == [["senml.py", expected]]
    assert resolved["version"] == "1.0"
