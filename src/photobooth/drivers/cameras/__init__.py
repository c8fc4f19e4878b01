"""Camera drivers.

Protocols:
    CameraDriver: blocking operations against one camera

Implementations:
    CCAPICameraDriver: Canon Camera Control API over HTTP
    DigitalTwinCameraDriver: simulated camera
"""

from photobooth.drivers.cameras.ccapi import CCAPICameraDriver
from photobooth.drivers.cameras.twin import (
    DigitalTwinCameraConfig,
    DigitalTwinCameraDriver,
)
from photobooth.drivers.cameras.types import CameraDriver, DeviceInfo

__all__ = [
    "CCAPICameraDriver",
    "CameraDriver",
    "DeviceInfo",
    "DigitalTwinCameraConfig",
    "DigitalTwinCameraDriver",
]
