"""Operator settings and session timing.

``BoothSettings`` is the immutable snapshot the session state machine reads
at the start of each countdown and each print. ``SettingsStore`` holds the
current snapshot and swaps it atomically when the operator changes
something, so a running cycle keeps the values it started with.
"""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass
from typing import Any

from photobooth.drivers.printers.types import PaperSize

__all__ = [
    "BoothSettings",
    "DEFAULT_CAMERA_IP",
    "SessionTiming",
    "SettingsStore",
    "is_plain_name",
]

DEFAULT_CAMERA_IP = "192.168.1.1"


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_plain_name(name: str) -> bool:
    """True for a bare file stem with no directory part."""
    return (
        isinstance(name, str)
        and name not in ("", ".", "..")
        and "/" not in name
        and "\\" not in name
        and "\x00" not in name
    )


@dataclass(frozen=True, slots=True)
class BoothSettings:
    """Operator-configurable values.

    Attributes:
        camera_ip: Address of the camera on the booth's WiFi.
        countdown_seconds: Countdown length, at least 1.
        copies: Prints per session, at least 1.
        paper_size: Paper loaded in the printer.
        overlay_enabled: Composite the selected overlay before printing.
        overlay_name: Overlay file stem inside the overlay directory.
        auto_print: Print as soon as the photo is reviewed.

    Raises:
        ValueError: countdown_seconds or copies not an integer of at least
            1, a flag that is not a bool, or an overlay name that is not a
            plain file stem.
    """

    camera_ip: str = DEFAULT_CAMERA_IP
    countdown_seconds: int = 3
    copies: int = 1
    paper_size: PaperSize = PaperSize.FOUR_BY_SIX
    overlay_enabled: bool = False
    overlay_name: str | None = None
    auto_print: bool = False

    def __post_init__(self) -> None:
        for name in ("countdown_seconds", "copies"):
            value = getattr(self, name)
            if not _is_int(value):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            if value < 1:
                raise ValueError(f"{name} must be >= 1, got {value}")
        for name in ("overlay_enabled", "auto_print"):
            if not isinstance(getattr(self, name), bool):
                raise ValueError(f"{name} must be true or false")
        if not isinstance(self.paper_size, PaperSize):
            raise ValueError(f"unsupported paper_size {self.paper_size!r}")
        if self.overlay_name is not None and not is_plain_name(self.overlay_name):
            raise ValueError(f"invalid overlay_name {self.overlay_name!r}")

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation."""
        return {
            "camera_ip": self.camera_ip,
            "countdown_seconds": self.countdown_seconds,
            "copies": self.copies,
            "paper_size": self.paper_size.value,
            "overlay_enabled": self.overlay_enabled,
            "overlay_name": self.overlay_name,
            "auto_print": self.auto_print,
        }


@dataclass(frozen=True, slots=True)
class SessionTiming:
    """Fixed delays of the session lifecycle, in seconds.

    Attributes:
        tick_interval_s: Time between countdown ticks.
        capture_settle_s: Pause after stopping live view before the shutter
            command, so the camera releases its streaming state.
        print_settle_s: How long the print confirmation stays on screen.
    """

    tick_interval_s: float = 1.0
    capture_settle_s: float = 0.5
    print_settle_s: float = 2.0


class SettingsStore:
    """Thread-safe holder of the current ``BoothSettings``."""

    def __init__(self, settings: BoothSettings | None = None) -> None:
        self._settings = settings or BoothSettings()
        self._lock = threading.Lock()

    def get(self) -> BoothSettings:
        """Current snapshot."""
        with self._lock:
            return self._settings

    def update(self, **changes: Any) -> BoothSettings:
        """Replace fields and return the new snapshot.

        Raises:
            ValueError: The new values fail validation; nothing changes.
            TypeError: Unknown field name.
        """
        if isinstance(changes.get("paper_size"), str):
            changes["paper_size"] = PaperSize(changes["paper_size"])
        with self._lock:
            self._settings = dataclasses.replace(self._settings, **changes)
            return self._settings

    __call__ = get
