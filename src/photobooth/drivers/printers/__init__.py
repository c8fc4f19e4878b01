"""Printer drivers.

Protocols:
    PrinterDriver: availability check and single-copy print

Implementations:
    LprPrinterDriver: silent printing to a CUPS queue
    DigitalTwinPrinterDriver: simulated printer
"""

from photobooth.drivers.printers.cups import LprPrinterDriver
from photobooth.drivers.printers.twin import DigitalTwinPrinterDriver, PrintedJob
from photobooth.drivers.printers.types import (
    Orientation,
    PaperSize,
    PrinterDriver,
    PrintOutcome,
    PrintStatus,
)

__all__ = [
    "DigitalTwinPrinterDriver",
    "LprPrinterDriver",
    "Orientation",
    "PaperSize",
    "PrintOutcome",
    "PrintStatus",
    "PrintedJob",
    "PrinterDriver",
]
