"""Printer driver protocol and shared types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from numpy.typing import NDArray

__all__ = [
    "Orientation",
    "PaperSize",
    "PrintOutcome",
    "PrintStatus",
    "PrinterDriver",
]


class PaperSize(Enum):
    """Photo paper loaded in the printer."""

    FOUR_BY_SIX = "4x6"
    FIVE_BY_SEVEN = "5x7"

    @property
    def display_name(self) -> str:
        """Label for operator screens."""
        width, height = self.value.split("x")
        return f"{width}×{height} inches"

    @property
    def size_in_points(self) -> tuple[int, int]:
        """(width, height) at 72 points per inch."""
        width, height = (int(part) for part in self.value.split("x"))
        return width * 72, height * 72

    @property
    def pwg_media(self) -> str:
        """PWG 5101.1 media name understood by CUPS/IPP."""
        return {
            PaperSize.FOUR_BY_SIX: "na_index-4x6_4x6in",
            PaperSize.FIVE_BY_SEVEN: "na_5x7_5x7in",
        }[self]


class Orientation(Enum):
    """Page orientation for a print."""

    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"

    @property
    def ipp_value(self) -> int:
        """IPP ``orientation-requested`` enum (3 portrait, 4 landscape)."""
        return 4 if self is Orientation.LANDSCAPE else 3


class PrintStatus(Enum):
    """How a print attempt ended."""

    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class PrintOutcome:
    """Result reported by the printing subsystem.

    Attributes:
        status: Terminal status.
        message: Printer or spooler message for failures.
        job_id: Spooler job identifier when one was assigned.
    """

    status: PrintStatus
    message: str | None = None
    job_id: str | None = None

    @classmethod
    def succeeded(cls, job_id: str | None = None) -> PrintOutcome:
        """Outcome of a job the spooler completed."""
        return cls(PrintStatus.SUCCEEDED, job_id=job_id)

    @classmethod
    def cancelled(cls, message: str = "Print was cancelled") -> PrintOutcome:
        """Outcome of a job withdrawn before it printed."""
        return cls(PrintStatus.CANCELLED, message=message)

    @classmethod
    def failed(cls, message: str = "Printer error") -> PrintOutcome:
        """Outcome of a job the printer could not complete."""
        return cls(PrintStatus.FAILED, message=message)

    @property
    def ok(self) -> bool:
        """True only for a successful print."""
        return self.status is PrintStatus.SUCCEEDED


@runtime_checkable
class PrinterDriver(Protocol):  # pragma: no cover
    """Blocking access to the printing subsystem.

    ``print_image`` reports failures through ``PrintOutcome`` rather than
    raising; an unexpected exception is treated by the queue as a failure.
    """

    def is_available(self) -> bool:
        """True when a print submitted now could be accepted."""
        ...

    def print_image(
        self,
        image: NDArray[Any],
        orientation: Orientation,
        job_name: str,
        paper_size: PaperSize,
    ) -> PrintOutcome:
        """Print one copy of ``image`` and wait for the spooler's verdict."""
        ...
