"""Digital twin printer.

Accepts every job unless told otherwise. Outcomes can be scripted per job,
and every submitted job is recorded for inspection.

Example:
    printer = DigitalTwinPrinterDriver()
    printer.script(PrintOutcome.cancelled())
    printer.print_image(img, Orientation.LANDSCAPE, "Photo", PaperSize.FOUR_BY_SIX)
    printer.jobs[0].orientation  # Orientation.LANDSCAPE
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from photobooth.drivers.printers.types import (
    Orientation,
    PaperSize,
    PrintOutcome,
)
from photobooth.observability import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = get_logger(__name__)

__all__ = ["DigitalTwinPrinterDriver", "PrintedJob"]


@dataclass(frozen=True, slots=True)
class PrintedJob:
    """A job as the twin received it."""

    job_name: str
    orientation: Orientation
    paper_size: PaperSize
    width: int
    height: int


class DigitalTwinPrinterDriver:
    """In-process printer stand-in."""

    def __init__(
        self,
        available: bool = True,
        print_delay_s: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._available = available
        self._print_delay_s = print_delay_s
        self._sleep = sleep
        self._lock = threading.Lock()
        self._scripted: list[PrintOutcome] = []
        self.jobs: list[PrintedJob] = []

    def set_available(self, available: bool) -> None:
        """Simulate the printer going offline or coming back."""
        with self._lock:
            self._available = available

    def script(self, *outcomes: PrintOutcome) -> None:
        """Queue outcomes for the next jobs; unscripted jobs succeed."""
        with self._lock:
            self._scripted.extend(outcomes)

    def is_available(self) -> bool:
        """Availability switch set by ``set_available``."""
        with self._lock:
            return self._available

    def print_image(
        self,
        image: NDArray[Any],
        orientation: Orientation,
        job_name: str,
        paper_size: PaperSize,
    ) -> PrintOutcome:
        """Record the job and return the next scripted outcome.

        Unscripted jobs succeed with job id ``twin-<n>``. Availability is not
        checked here; callers probe ``is_available`` first, as with CUPS.
        """
        if self._print_delay_s > 0:
            self._sleep(self._print_delay_s)

        height, width = image.shape[:2]
        with self._lock:
            self.jobs.append(
                PrintedJob(job_name, orientation, paper_size, int(width), int(height))
            )
            outcome = (
                self._scripted.pop(0)
                if self._scripted
                else PrintOutcome.succeeded(f"twin-{len(self.jobs)}")
            )
        logger.info(
            "Twin printer finished job",
            job_name=job_name,
            status=outcome.status.value,
            orientation=orientation.value,
        )
        return outcome
