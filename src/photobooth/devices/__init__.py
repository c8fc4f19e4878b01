"""Async device layer.

Wraps the blocking drivers in asyncio-friendly components:

    Camera: executor-offloaded camera operations and capture statistics
    LiveViewLoop: cancellable latest-frame-only preview producer
    ConnectionMonitor: periodic reachability probes with reconnect counters
    PrintQueue: FIFO single-flight printing with multi-copy expansion
"""

from photobooth.devices.camera import Camera, CaptureResult
from photobooth.devices.live_view import LiveFrame, LiveViewLoop
from photobooth.devices.monitor import (
    ConnectionMonitor,
    ConnectionStatus,
    ReconnectCounter,
)
from photobooth.devices.print_queue import PrintJob, PrintQueue

__all__ = [
    "Camera",
    "CaptureResult",
    "ConnectionMonitor",
    "ConnectionStatus",
    "LiveFrame",
    "LiveViewLoop",
    "PrintJob",
    "PrintQueue",
    "ReconnectCounter",
]
