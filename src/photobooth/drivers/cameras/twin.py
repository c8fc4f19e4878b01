"""Digital twin camera driver.

Simulates a CCAPI camera without hardware: synthetic live-view frames,
a growing "SD card" of captured stills, and switches for reachability and
injected failures. Used by ``photobooth serve`` without ``--hardware`` and by the
test suite.

Example:
    driver = DigitalTwinCameraDriver()
    driver.start_live_view()
    frame = driver.fetch_frame()          # 640x424 BGR array

    driver.set_reachable(False)
    driver.check_reachable()              # False
    driver.fetch_frame()                  # raises ConnectivityError

    driver.fail_next("trigger_capture", NoImageError("No image found on camera"))
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import cv2
import numpy as np

from photobooth.drivers.cameras.types import DeviceInfo
from photobooth.errors import BoothError, ConnectivityError, ProtocolError
from photobooth.observability import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = get_logger(__name__)

__all__ = ["DigitalTwinCameraConfig", "DigitalTwinCameraDriver"]


@dataclass
class DigitalTwinCameraConfig:
    """Behaviour of the simulated camera.

    Attributes:
        live_view_size: (width, height) of live-view frames.
        capture_size: (width, height) of captured stills.
        capture_settle_s: Simulated card-write delay inside trigger_capture.
        frame_latency_s: Simulated network latency per frame fetch.
        stop_latency_s: Delay before a live-view stop takes effect.
        reachable: Initial reachability.
    """

    live_view_size: tuple[int, int] = (640, 424)
    capture_size: tuple[int, int] = (1800, 1200)
    capture_settle_s: float = 0.0
    frame_latency_s: float = 0.0
    stop_latency_s: float = 0.0
    reachable: bool = True


class DigitalTwinCameraDriver:
    """In-process stand-in for ``CCAPICameraDriver``.

    Thread Safety:
        Switches and counters are guarded by a lock; the driver is called
        from executor threads while tests flip switches on the loop thread.
    """

    def __init__(
        self,
        config: DigitalTwinCameraConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config or DigitalTwinCameraConfig()
        self._sleep = sleep
        self._lock = threading.Lock()
        self._reachable = self._config.reachable
        self._live_view_active = False
        self._failures: dict[str, list[BoothError]] = {}
        self._frame_counter = 0
        self._stored: list[str] = []
        self._shooting_mode = "p"
        self.calls: list[str] = []

    def __repr__(self) -> str:
        return (
            f"DigitalTwinCameraDriver(reachable={self._reachable}, "
            f"stored={len(self._stored)})"
        )

    # -------------------------------------------------------------------------
    # Simulation switches
    # -------------------------------------------------------------------------

    def set_reachable(self, reachable: bool) -> None:
        """Simulate the camera dropping off or rejoining WiFi."""
        with self._lock:
            self._reachable = reachable
        logger.info("Twin camera reachability changed", reachable=reachable)

    def fail_next(self, operation: str, error: BoothError, times: int = 1) -> None:
        """Make the next ``times`` calls of ``operation`` raise ``error``."""
        with self._lock:
            self._failures.setdefault(operation, []).extend([error] * times)

    @property
    def is_live_view_active(self) -> bool:
        """Whether live view is currently running on the twin."""
        with self._lock:
            return self._live_view_active

    @property
    def stored_files(self) -> list[str]:
        """Names of the simulated SD card contents."""
        with self._lock:
            return list(self._stored)

    @property
    def shooting_mode(self) -> str:
        """Current simulated shooting mode."""
        return self._shooting_mode

    def _enter(self, operation: str) -> None:
        with self._lock:
            self.calls.append(operation)
            if not self._reachable:
                raise ConnectivityError(
                    "Failed to connect to camera", details={"operation": operation}
                )
            pending = self._failures.get(operation)
            error = pending.pop(0) if pending else None
        if error is not None:
            raise error

    # -------------------------------------------------------------------------
    # CameraDriver protocol
    # -------------------------------------------------------------------------

    def check_reachable(self) -> bool:
        """Reachability switch; injected failures make the probe fail."""
        try:
            self._enter("check_reachable")
        except BoothError:
            return False
        return True

    def get_device_info(self) -> DeviceInfo:
        """Fixed identity of the simulated body."""
        self._enter("get_device_info")
        return DeviceInfo(
            manufacturer="Canon",
            product_name="Digital Twin",
            serial_number="000000000000",
            firmware_version="1.0.0",
        )

    def start_live_view(self) -> None:
        """Start simulated live view."""
        self._enter("start_live_view")
        with self._lock:
            self._live_view_active = True

    def stop_live_view(self) -> None:
        """Stop simulated live view; never raises."""
        with self._lock:
            self.calls.append("stop_live_view")
        if self._config.stop_latency_s > 0:
            self._sleep(self._config.stop_latency_s)
        with self._lock:
            self._live_view_active = False

    def fetch_frame(self) -> NDArray[Any]:
        """Render the next synthetic live-view frame.

        Raises:
            ProtocolError: Live view was not started.
        """
        self._enter("fetch_frame")
        if self._config.frame_latency_s > 0:
            self._sleep(self._config.frame_latency_s)
        with self._lock:
            if not self._live_view_active:
                raise ProtocolError("Live view failed", status_code=503)
            self._frame_counter += 1
            number = self._frame_counter
        return _render_pattern(self._config.live_view_size, f"LIVE {number}")

    def trigger_capture(self) -> NDArray[Any]:
        """Store a new synthetic still and return it."""
        self._enter("trigger_capture")
        if self._config.capture_settle_s > 0:
            self._sleep(self._config.capture_settle_s)
        with self._lock:
            name = f"IMG_{len(self._stored) + 1:04d}.JPG"
            self._stored.append(name)
        logger.info("Twin camera captured", file=name)
        return _render_pattern(self._config.capture_size, name)

    def set_shooting_mode(self, mode: str) -> None:
        """Record the requested mode."""
        self._enter("set_shooting_mode")
        self._shooting_mode = mode

    def close(self) -> None:
        """Nothing to release."""
        with self._lock:
            self._live_view_active = False


def _render_pattern(size: tuple[int, int], label: str) -> NDArray[Any]:
    """Draw a gradient test card with a centred label."""
    width, height = size
    ramp = np.linspace(0, 255, width, dtype=np.uint8)
    img: NDArray[Any] = np.zeros((height, width, 3), dtype=np.uint8)
    img[:, :, 0] = ramp
    img[:, :, 2] = ramp[::-1]
    img[:, :, 1] = 64

    cv2.rectangle(img, (8, 8), (width - 9, height - 9), (255, 255, 255), 2)
    cv2.putText(
        img,
        label,
        (width // 10, height // 2),
        cv2.FONT_HERSHEY_SIMPLEX,
        max(width / 640, 0.5),
        (255, 255, 255),
        2,
    )
    return img
