"""Exception hierarchy for the photo-booth kiosk.

Exception Hierarchy:
    BoothError (base)
    ├── ConnectivityError   - device unreachable (network error, timeout)
    ├── ProtocolError       - device answered with a non-success status
    │   └── DecodeError     - payload is not a valid image / document
    ├── CaptureError        - shutter command rejected
    │   └── NoImageError    - shutter fired but no file appeared in storage
    └── PrintError          - printing subsystem reported a failure
        └── PrintCancelledError - job cancelled by user or system

Drivers raise these, chaining the library exception that caused them. The
session state machine is the only place they become user-visible messages;
cancellation is never shown as a failure.
"""

from __future__ import annotations

from typing import Any


class BoothError(Exception):
    """Base exception for all booth errors.

    Attributes:
        message: Human-readable description.
        details: Extra context for logs (status code, URL, ...).
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConnectivityError(BoothError):
    """Device could not be reached."""


class ProtocolError(BoothError):
    """Device returned a non-success HTTP status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        merged = dict(details or {})
        if status_code is not None:
            merged["status_code"] = status_code
        super().__init__(message, merged)
        self.status_code = status_code


class DecodeError(ProtocolError):
    """Device payload could not be decoded."""


class CaptureError(BoothError):
    """Shutter command failed."""


class NoImageError(CaptureError):
    """Capture appeared to succeed but no image was stored."""


class PrintError(BoothError):
    """Print job failed."""


class PrintCancelledError(PrintError):
    """Print job was cancelled."""
