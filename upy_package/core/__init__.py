"""Core functionality modules for upy-package."""
from .compatibility import CompatibilityGate, CompatibilityResult, CompatibilityStatus
from .descriptors import DEFAULT_DESCRIPTORS, DescriptorTable, DeviceDescriptor
from .device_detector import DeviceManager, RequiresChoice, SerialDevice, SerialDeviceFinder
from .installer import InstallOrchestrator, InstallResult, InstallStatus
from .package_manager import CustomReferencePolicy, PackageManager, is_custom_reference
from .packager import MpremotePackager, Packager, PackagerResult, PackagerStatus
from .registry import Package, RegistryAggregator
from .runtime_probe import RuntimeProbe, SerialRuntimeProbe

__all__ = [
    'CompatibilityGate', 'CompatibilityResult', 'CompatibilityStatus',
    'DEFAULT_DESCRIPTORS', 'DescriptorTable', 'DeviceDescriptor',
    'DeviceManager', 'RequiresChoice', 'SerialDevice', 'SerialDeviceFinder',
    'InstallOrchestrator', 'InstallResult', 'InstallStatus',
    'CustomReferencePolicy', 'PackageManager', 'is_custom_reference',
    'MpremotePackager', 'Packager', 'PackagerResult', 'PackagerStatus',
    'Package', 'RegistryAggregator',
    'RuntimeProbe', 'SerialRuntimeProbe',
]
