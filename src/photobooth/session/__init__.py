"""Session orchestration: states, events and the single-owner state machine."""

from photobooth.session.machine import SessionStateMachine, StateListener
from photobooth.session.states import (
    CAMERA_NOT_CONNECTED,
    PRINTER_NOT_CONNECTED,
    Capturing,
    Countdown,
    Error,
    Idle,
    Intent,
    Preview,
    Printing,
    Review,
    SessionState,
)

__all__ = [
    "CAMERA_NOT_CONNECTED",
    "PRINTER_NOT_CONNECTED",
    "Capturing",
    "Countdown",
    "Error",
    "Idle",
    "Intent",
    "Preview",
    "Printing",
    "Review",
    "SessionState",
    "SessionStateMachine",
    "StateListener",
]
