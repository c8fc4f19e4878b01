"""Session states and events.

``SessionState`` is a closed union of frozen dataclasses. ``Event`` is the
union of everything the state machine's mailbox accepts: user intents, timer
ticks and device completions. Completions carry the epoch current when the
operation was issued so the machine can drop late results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

from photobooth.drivers.printers.types import PrintStatus

if TYPE_CHECKING:
    from numpy.typing import NDArray

__all__ = [
    "CAMERA_NOT_CONNECTED",
    "PRINTER_NOT_CONNECTED",
    "Capturing",
    "Countdown",
    "Error",
    "Event",
    "Idle",
    "Intent",
    "IntentEvent",
    "Preview",
    "Printing",
    "Review",
    "SessionState",
    "CaptureFinished",
    "PrintFinished",
    "SettleElapsed",
    "Tick",
    "WorkFailed",
]

CAMERA_NOT_CONNECTED = (
    "Camera not connected. Please check the WiFi connection to the camera."
)
PRINTER_NOT_CONNECTED = "Printer not connected. Please check the printer connection."


def _image_shape(image: Any) -> list[int] | None:
    shape = getattr(image, "shape", None)
    return [int(d) for d in shape] if shape is not None else None


@dataclass(frozen=True, slots=True)
class Idle:
    name: ClassVar[str] = "idle"

    def to_dict(self) -> dict[str, Any]:
        return {"state": self.name}


@dataclass(frozen=True, slots=True)
class Preview:
    name: ClassVar[str] = "preview"

    def to_dict(self) -> dict[str, Any]:
        return {"state": self.name}


@dataclass(frozen=True, slots=True)
class Countdown:
    remaining: int
    name: ClassVar[str] = "countdown"

    def to_dict(self) -> dict[str, Any]:
        return {"state": self.name, "remaining": self.remaining}


@dataclass(frozen=True, slots=True)
class Capturing:
    name: ClassVar[str] = "capturing"

    def to_dict(self) -> dict[str, Any]:
        return {"state": self.name}


@dataclass(frozen=True, slots=True)
class Review:
    image: NDArray[Any] = field(repr=False, compare=False)
    name: ClassVar[str] = "review"

    def to_dict(self) -> dict[str, Any]:
        return {"state": self.name, "image_shape": _image_shape(self.image)}


@dataclass(frozen=True, slots=True)
class Printing:
    """Print in progress; ``confirmed`` once the first copy succeeded."""

    image: NDArray[Any] = field(repr=False, compare=False)
    confirmed: bool = False
    name: ClassVar[str] = "printing"

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.name,
            "confirmed": self.confirmed,
            "image_shape": _image_shape(self.image),
        }


@dataclass(frozen=True, slots=True)
class Error:
    """User-visible failure. Only ``acknowledge`` or ``reset`` leave it.

    ``image`` is kept when the error came from Review, so the photo is not
    lost while the operator fixes the printer.
    """

    message: str
    image: NDArray[Any] | None = field(default=None, repr=False, compare=False)
    name: ClassVar[str] = "error"

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.name,
            "message": self.message,
            "has_image": self.image is not None,
        }


SessionState = Idle | Preview | Countdown | Capturing | Review | Printing | Error


class Intent(Enum):
    """User and operator intents."""

    START_SESSION = "start_session"
    START_COUNTDOWN = "start_countdown"
    CANCEL = "cancel"
    RETAKE = "retake"
    PRINT = "print"
    ACKNOWLEDGE = "acknowledge"
    RESET = "reset"


@dataclass(frozen=True, slots=True)
class IntentEvent:
    intent: Intent


@dataclass(frozen=True, slots=True)
class Tick:
    epoch: int


@dataclass(frozen=True, slots=True)
class CaptureFinished:
    """Capture completion; ``image`` on success, ``reason`` on failure."""

    epoch: int
    image: NDArray[Any] | None = field(default=None, repr=False, compare=False)
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class PrintFinished:
    epoch: int
    status: PrintStatus
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class SettleElapsed:
    epoch: int


@dataclass(frozen=True, slots=True)
class WorkFailed:
    """A background task of the session raised instead of posting its result."""

    epoch: int
    task: str
    reason: str


Event = (
    IntentEvent | Tick | CaptureFinished | PrintFinished | SettleElapsed | WorkFailed
)
