#!/usr/bin/env python3
"""
upy-package - Main Entry Point

Installs MicroPython packages from the package registry onto a connected
Arduino board.

Usage:
    upy-package list
    upy-package info <package>
    upy-package find <pattern>
    upy-package install <package> [<package> ...] [--debug]
    upy-package create-index <directory> <output>
"""
import argparse
import logging
import sys
import traceback
from pathlib import Path
from typing import List, Optional

from upy_package.config.settings import CONFIG
from upy_package.core.compatibility import CompatibilityGate, CompatibilityResult
from upy_package.core.device_detector import DeviceManager, SerialDevice
from upy_package.core.errors import UpyPackageError
from upy_package.core.index_builder import write_index
from upy_package.core.installer import InstallOrchestrator, InstallResult, InstallStatus
from upy_package.core.package_manager import PackageManager
from upy_package.core.packager import MpremotePackager
from upy_package.core.runtime_probe import SerialRuntimeProbe
from upy_package.utils.format import (
    format_package_info, format_package_list, format_search_results
)
from upy_package.utils.logger import get_logger


def _usb_id(value: str) -> int:
    """Parse 0x2341 style ids for argparse."""
    try:
        return int(value, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid USB id: {value}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=CONFIG.APP_NAME,
        description=f"{CONFIG.APP_NAME} - {CONFIG.DESCRIPTION}"
    )
    parser.add_argument("--version", action="version", version=CONFIG.APP_VERSION)
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument(
        "--log-file", nargs="?", type=Path, const=CONFIG.get_log_file_path(),
        help="Also write the log to a file"
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("list", help="List packages from registries")

    info = subparsers.add_parser("info", help="Get information about a package")
    info.add_argument("package")

    find = subparsers.add_parser("find", help="Find packages using the supplied search pattern")
    find.add_argument("pattern")

    install = subparsers.add_parser(
        "install", help="Install MicroPython packages on a connected Arduino board"
    )
    install.add_argument("packages", nargs="+", metavar="package", help="Package names to install")
    install.add_argument("--vid", type=_usb_id, default=CONFIG.ARDUINO_VID, help="USB vendor id filter")
    install.add_argument("--pid", type=_usb_id, default=None, help="USB product id filter")
    install.add_argument("--target", help="Target path on the board")
    install.add_argument("--yes", action="store_true", help="Install despite runtime mismatches")
    install.add_argument("--stop-on-error", action="store_true", help="Stop after the first failure")
    install.add_argument("--serial-log", type=Path, help="Record serial traffic to this file")

    index = subparsers.add_parser("create-index", help="Generate a registry YAML from a package folder")
    index.add_argument("directory", type=Path)
    index.add_argument("output", type=Path)

    return parser


def choose_device(devices: List[SerialDevice]) -> str:
    """Ask the user to pick a board; returns its serial port."""
    print("Please select your board:")
    for number, device in enumerate(devices, start=1):
        print(f"  {number}) {device.display_name}")
    while True:
        answer = input(f"Board [1-{len(devices)}]: ").strip()
        if answer.isdigit() and 1 <= int(answer) <= len(devices):
            return devices[int(answer) - 1].serial_port
        print("Invalid selection.")


def confirm_mismatch(result: CompatibilityResult) -> bool:
    print(f"🚨 {result.message}")
    answer = input("Do you want to continue with the installation? [y/N] ").strip().lower()
    return answer in ("y", "yes")


def print_install_result(result: InstallResult) -> None:
    if result.status == InstallStatus.INSTALLED:
        print(f"✅ {result.message}")
    elif result.status == InstallStatus.SKIPPED:
        print(f"🙅 {result.message}")
    else:
        print(f"❌ {result.message}")


def cmd_list(args, package_manager: PackageManager) -> int:
    packages = package_manager.get_package_list()
    if packages:
        print(format_package_list(packages))
    return 0


def cmd_info(args, package_manager: PackageManager) -> int:
    package = package_manager.get_package_info(args.package)
    if package is None:
        print(f"🤷 No package found with name {args.package}")
        return 1
    print(format_package_info(package))
    return 0


def cmd_find(args, package_manager: PackageManager) -> int:
    print(format_search_results(package_manager.search(args.pattern), args.pattern))
    return 0


def cmd_install(args, package_manager: PackageManager) -> int:
    logger = get_logger()
    if args.serial_log:
        logger.start_serial_log(args.serial_log)

    try:
        device = DeviceManager().get_device(args.vid, args.pid, chooser=choose_device)
        if device is None:
            print("🤷 No connected Arduino board found. Please connect a board and try again.")
            return 1

        orchestrator = InstallOrchestrator(
            package_manager,
            CompatibilityGate(SerialRuntimeProbe()),
            MpremotePackager(target_path=args.target),
            confirm=(lambda result: True) if args.yes else confirm_mismatch
        )

        print(f"📦 Installing on '{device.display_name}' (SN: {device.serial_number or 'unknown'})")
        results = orchestrator.install_all(
            args.packages, device,
            stop_on_error=args.stop_on_error,
            on_result=print_install_result
        )
    finally:
        logger.stop_serial_log()

    if any(r.status == InstallStatus.FAILED for r in results):
        return 1
    print("✅ Installation complete")
    return 0


def cmd_create_index(args, package_manager: PackageManager) -> int:
    write_index(args.directory, args.output)
    print(f"YAML file saved to {args.output}")
    return 0


COMMANDS = {
    "list": cmd_list,
    "info": cmd_info,
    "find": cmd_find,
    "install": cmd_install,
    "create-index": cmd_create_index,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    logger = get_logger()
    if args.debug:
        logger.set_console_level(logging.DEBUG)
    if args.log_file:
        logger.set_file_log(args.log_file)

    try:
        return COMMANDS[args.command](args, PackageManager())
    except UpyPackageError as e:
        print(f"❌ {e}", file=sys.stderr)
        if args.debug:
            traceback.print_exc()
        return 1
    except KeyboardInterrupt:
        print("\nAborted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
