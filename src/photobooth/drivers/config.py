"""Driver configuration and factory.

Switches between the real camera/printer drivers and their digital twins so
the booth can run on a laptop with nothing attached.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from photobooth.drivers.cameras import (
    CameraDriver,
    CCAPICameraDriver,
    DigitalTwinCameraConfig,
    DigitalTwinCameraDriver,
)
from photobooth.drivers.cameras.ccapi import (
    DEFAULT_CAPTURE_SETTLE_S,
    DEFAULT_CONNECT_TIMEOUT_S,
    DEFAULT_PORT,
    DEFAULT_READ_TIMEOUT_S,
    DEFAULT_STORAGE_FOLDER,
)
from photobooth.drivers.printers import (
    DigitalTwinPrinterDriver,
    LprPrinterDriver,
    PrinterDriver,
)
from photobooth.observability import get_logger

logger = get_logger(__name__)


class DriverMode(Enum):
    """Driver mode selection."""

    HARDWARE = "hardware"  # CCAPI camera, CUPS printer
    DIGITAL_TWIN = "digital_twin"  # Simulated devices


@dataclass
class DriverConfig:
    """Hardware connection settings.

    Attributes:
        mode: HARDWARE or DIGITAL_TWIN.
        camera_port: CCAPI port.
        storage_folder: SD card folder that receives new shots.
        connect_timeout_s: TCP connect timeout per camera request.
        read_timeout_s: Read timeout per camera request.
        capture_settle_s: Card-write wait after the shutter command.
        printer_queue: CUPS destination for hardware mode.
    """

    mode: DriverMode = DriverMode.DIGITAL_TWIN
    camera_port: int = DEFAULT_PORT
    storage_folder: str = DEFAULT_STORAGE_FOLDER
    connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S
    read_timeout_s: float = DEFAULT_READ_TIMEOUT_S
    capture_settle_s: float = DEFAULT_CAPTURE_SETTLE_S
    printer_queue: str | None = None


class DriverFactory:
    """Build drivers for the configured mode.

    Hardware Mode Requirements:
        - create_camera_driver(): camera IP reachable on the booth network
        - create_printer_driver(): ``printer_queue`` set and CUPS installed
    """

    def __init__(self, config: DriverConfig | None = None) -> None:
        self.config = config or DriverConfig()

    def create_camera_driver(self, camera_ip: str) -> CameraDriver:
        """Camera driver for ``camera_ip`` (ignored in digital twin mode)."""
        if self.config.mode is DriverMode.HARDWARE:
            logger.info("Using CCAPI camera", host=camera_ip, port=self.config.camera_port)
            return CCAPICameraDriver(
                camera_ip,
                port=self.config.camera_port,
                storage_folder=self.config.storage_folder,
                connect_timeout=self.config.connect_timeout_s,
                read_timeout=self.config.read_timeout_s,
                capture_settle_s=self.config.capture_settle_s,
            )
        logger.info("Using digital twin camera")
        return DigitalTwinCameraDriver(
            DigitalTwinCameraConfig(capture_settle_s=self.config.capture_settle_s)
        )

    def create_printer_driver(self) -> PrinterDriver:
        """Printer driver for the configured mode.

        Raises:
            ValueError: Hardware mode without a printer queue.
        """
        if self.config.mode is DriverMode.HARDWARE:
            if not self.config.printer_queue:
                raise ValueError("printer_queue is required in hardware mode")
            logger.info("Using CUPS printer", queue=self.config.printer_queue)
            return LprPrinterDriver(self.config.printer_queue)
        logger.info("Using digital twin printer")
        return DigitalTwinPrinterDriver(print_delay_s=1.0)
