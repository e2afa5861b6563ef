"""
Board detection module.

Enumerates boards appearing as serial ports, annotates them with known
descriptors and decides which one an operation should target.
"""
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Union

import serial.tools.list_ports

from upy_package.config.settings import CONFIG
from upy_package.core.descriptors import DescriptorTable
from upy_package.core.errors import DeviceEnumerationError, DeviceSelectionError
from upy_package.utils.logger import get_logger


@dataclass
class SerialDevice:
    """Represents a board connected through a serial port."""
    vendor_id: int
    product_id: int
    serial_port: str
    serial_number: Optional[str] = None
    manufacturer: Optional[str] = None
    name: Optional[str] = None

    @property
    def display_name(self) -> str:
        label = " ".join(p for p in (self.manufacturer, self.name) if p)
        if not label:
            label = f"Unknown board ({self.vendor_id:04x}:{self.product_id:04x})"
        return f"{label} at {self.serial_port}"

    def __str__(self) -> str:
        return self.display_name


def _parse_usb_id(value) -> Optional[int]:
    """pyserial reports ints; other backends report hex strings."""
    if value is None or value == "":
        return None
    if isinstance(value, int):
        return value
    return int(str(value), 16)


class SerialDeviceFinder:
    """
    Lists serial ports that carry a USB vendor and product id.

    Every call queries the operating system again; boards can be hot-plugged.
    """

    def __init__(self, port_lister: Optional[Callable[[], Sequence]] = None):
        """
        Args:
            port_lister: Callable returning port objects with ``device``,
                ``vid``, ``pid`` and ``serial_number``. Defaults to pyserial.
        """
        self._logger = get_logger()
        self._port_lister = port_lister or serial.tools.list_ports.comports

    def get_device_list(
        self,
        vendor_id: Optional[int] = None,
        product_id: Optional[int] = None
    ) -> List[SerialDevice]:
        """
        Enumerate connected serial devices.

        Args:
            vendor_id: Only keep devices with this vendor id
            product_id: Only keep devices with this product id

        Returns:
            Devices in the order the operating system lists them

        Raises:
            DeviceEnumerationError: If the port inventory cannot be read
        """
        try:
            ports = list(self._port_lister())
        except Exception as e:
            raise DeviceEnumerationError(f"Could not list serial ports: {e}") from e

        devices: List[SerialDevice] = []
        for port in ports:
            try:
                vid = _parse_usb_id(getattr(port, "vid", None))
                pid = _parse_usb_id(getattr(port, "pid", None))
            except ValueError:
                ids = (getattr(port, "vid", None), getattr(port, "pid", None))
                self._logger.warning("SerialDeviceFinder", f"Ignoring {port.device}: unreadable USB id {ids}")
                continue
            if vid is None or pid is None:
                continue

            if vendor_id is not None and vid != vendor_id:
                continue
            if product_id is not None and pid != product_id:
                continue

            serial_number = getattr(port, "serial_number", None) or None
            if serial_number and CONFIG.CORRUPTED_SERIAL_MARKER in serial_number:
                self._logger.debug(
                    "SerialDeviceFinder",
                    f"Ignoring corrupted serial number on {port.device}: {serial_number}"
                )
                serial_number = None

            devices.append(SerialDevice(
                vendor_id=vid,
                product_id=pid,
                serial_port=port.device,
                serial_number=serial_number
            ))

        self._logger.debug("SerialDeviceFinder", f"Found {len(devices)} serial device(s)")
        return devices


class RequiresChoice:
    """Several boards are connected; the caller has to pick one."""

    def __init__(self, devices: Sequence[SerialDevice]):
        self.devices: List[SerialDevice] = list(devices)

    @property
    def serial_ports(self) -> List[str]:
        return [d.serial_port for d in self.devices]

    def select(self, serial_port: str) -> SerialDevice:
        """
        Pick the device connected to a port.

        Raises:
            DeviceSelectionError: If no listed device uses that port
        """
        for device in self.devices:
            if device.serial_port == serial_port:
                return device
        raise DeviceSelectionError(
            f"No connected board at '{serial_port}'. "
            f"Available: {', '.join(self.serial_ports)}"
        )

    def __repr__(self) -> str:
        return f"RequiresChoice({self.serial_ports!r})"


Resolution = Union[SerialDevice, RequiresChoice, None]


class DeviceManager:
    """
    Combines enumeration with the descriptor table and the selection policy.
    """

    def __init__(
        self,
        finder: Optional[SerialDeviceFinder] = None,
        descriptors: Optional[DescriptorTable] = None
    ):
        self._logger = get_logger()
        self._finder = finder or SerialDeviceFinder()
        self._descriptors = descriptors if descriptors is not None else DescriptorTable()
        self._descriptors.validate()

    def get_connected_devices(
        self,
        vendor_id: Optional[int] = None,
        product_id: Optional[int] = None
    ) -> List[SerialDevice]:
        """
        Get connected boards annotated with manufacturer and name.

        Unknown boards are kept with manufacturer and name unset.

        Raises:
            DeviceEnumerationError: If the port inventory cannot be read
            AmbiguousDescriptorError: If the descriptor table has a collision
        """
        devices = self._finder.get_device_list(vendor_id, product_id)
        for device in devices:
            descriptor = self._descriptors.lookup(device.vendor_id, device.product_id)
            if descriptor is None:
                continue
            device.manufacturer = descriptor.manufacturer
            device.name = descriptor.name
        return devices

    @staticmethod
    def resolve(devices: Sequence[SerialDevice]) -> Resolution:
        """
        Apply the selection policy.

        Returns:
            None without devices, the device itself when there is exactly one,
            otherwise a RequiresChoice listing all candidates
        """
        if not devices:
            return None
        if len(devices) == 1:
            return devices[0]
        return RequiresChoice(devices)

    def get_device(
        self,
        vendor_id: Optional[int] = None,
        product_id: Optional[int] = None,
        chooser: Optional[Callable[[List[SerialDevice]], str]] = None
    ) -> Optional[SerialDevice]:
        """
        Enumerate and select a single board.

        Args:
            vendor_id: Optional vendor id filter
            product_id: Optional product id filter
            chooser: Called with the candidates when several boards are
                connected; returns the serial port of the chosen one

        Returns:
            The selected board or None if no board is connected

        Raises:
            DeviceSelectionError: If a choice is required and cannot be made
        """
        resolution = self.resolve(self.get_connected_devices(vendor_id, product_id))
        if not isinstance(resolution, RequiresChoice):
            return resolution

        if chooser is None:
            raise DeviceSelectionError(
                f"{len(resolution.devices)} boards connected; a board must be selected"
            )
        device = resolution.select(chooser(resolution.devices))
        self._logger.info("DeviceManager", f"Selected {device}")
        return device
