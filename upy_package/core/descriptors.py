"""
Known board descriptors.

Maps USB vendor/product id pairs to manufacturer and board names.
"""
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from upy_package.core.errors import AmbiguousDescriptorError


@dataclass(frozen=True)
class DeviceDescriptor:
    """Static metadata for one board model."""
    vendor_id: int
    product_id: int
    manufacturer: str
    name: str

    @property
    def key(self) -> Tuple[int, int]:
        return (self.vendor_id, self.product_id)


DEFAULT_DESCRIPTORS: Tuple[DeviceDescriptor, ...] = (
    DeviceDescriptor(0x2341, 0x0468, "Arduino", "Portenta C33"),
    DeviceDescriptor(0x2341, 0x0566, "Arduino", "Giga R1 WiFi"),
    DeviceDescriptor(0x2341, 0x055B, "Arduino", "Portenta H7"),
    DeviceDescriptor(0x2341, 0x0564, "Arduino", "Opta"),
    DeviceDescriptor(0x2341, 0x025E, "Arduino", "Nano RP2040 Connect"),
    DeviceDescriptor(0x2341, 0x055F, "Arduino", "Nicla Vision"),
    DeviceDescriptor(0xF055, 0x9802, "Arduino", "Nano 33 BLE"),  # MicroPython VID
    DeviceDescriptor(0x2341, 0x056B, "Arduino", "Nano ESP32"),
)


class DescriptorTable:
    """
    Lookup table of board descriptors.

    A (vendor_id, product_id) pair must identify at most one descriptor.
    """

    def __init__(self, descriptors: Iterable[DeviceDescriptor] = DEFAULT_DESCRIPTORS):
        self._descriptors: List[DeviceDescriptor] = list(descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self):
        return iter(self._descriptors)

    def validate(self) -> None:
        """
        Check the whole table for colliding id pairs.

        Raises:
            AmbiguousDescriptorError: For the first duplicated pair found
        """
        counts = Counter(d.key for d in self._descriptors)
        for key, count in counts.items():
            if count > 1:
                self._raise_ambiguous(key)

    def lookup(self, vendor_id: int, product_id: int) -> Optional[DeviceDescriptor]:
        """
        Find the descriptor for a vendor/product pair.

        Returns:
            The matching descriptor or None if the board is unknown
        """
        matches = [d for d in self._descriptors if d.key == (vendor_id, product_id)]
        if len(matches) > 1:
            self._raise_ambiguous((vendor_id, product_id))
        return matches[0] if matches else None

    def _raise_ambiguous(self, key: Tuple[int, int]) -> None:
        names = [f"{d.manufacturer} {d.name}" for d in self._descriptors if d.key == key]
        raise AmbiguousDescriptorError(key[0], key[1], names)
