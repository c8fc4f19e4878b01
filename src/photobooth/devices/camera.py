"""Async camera device with driver injection.

Wraps a blocking ``CameraDriver`` (CCAPI or digital twin) and runs each call
on the loop's default executor, so network waits never block the event loop
that owns session state.

Example:
    from photobooth.devices.camera import Camera
    from photobooth.drivers.cameras import DigitalTwinCameraDriver

    async def main():
        camera = Camera(DigitalTwinCameraDriver())
        if await camera.check_reachable():
            result = await camera.capture()
            print(result.width, result.height, result.duration_ms)

    asyncio.run(main())
"""

from __future__ import annotations

import asyncio
import functools
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar

from photobooth.errors import BoothError, CaptureError
from photobooth.observability import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from photobooth.drivers.cameras import CameraDriver, DeviceInfo
    from photobooth.observability import BoothStats

logger = get_logger(__name__)

__all__ = ["Camera", "CaptureResult"]

T = TypeVar("T")


@dataclass(slots=True)
class CaptureResult:
    """A successfully captured still.

    Attributes:
        image: Decoded BGR image.
        duration_ms: Shutter-to-download time.
        timestamp: UTC time the download completed.
    """

    image: NDArray[Any]
    duration_ms: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])


class Camera:
    """Logical camera bound to one driver.

    Injectable Dependencies:
        - driver: camera protocol driver (required)
        - stats: capture statistics collector (optional)
    """

    def __init__(self, driver: CameraDriver, stats: BoothStats | None = None) -> None:
        self._driver = driver
        self._stats = stats

    @property
    def driver(self) -> CameraDriver:
        """The injected driver."""
        return self._driver

    def __repr__(self) -> str:
        return f"Camera(driver={self._driver!r})"

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    async def check_reachable(self) -> bool:
        """Probe the camera. Never raises."""
        try:
            return await self._call(self._driver.check_reachable)
        except Exception as e:
            # Driver contract says this cannot raise; treat a broken driver
            # as an unreachable camera.
            logger.warning("Camera probe raised", error=str(e), error_type=type(e).__name__)
            return False

    async def device_info(self) -> DeviceInfo:
        """Identity of the connected camera."""
        return await self._call(self._driver.get_device_info)

    async def start_live_view(self) -> None:
        """Start live view on the camera."""
        await self._call(self._driver.start_live_view)

    async def stop_live_view(self) -> None:
        """Stop live view. Best effort: errors are logged, not raised."""
        try:
            await self._call(self._driver.stop_live_view)
        except Exception as e:
            logger.debug("Live view stop failed", error=str(e))

    async def fetch_frame(self) -> NDArray[Any]:
        """Latest live-view frame."""
        return await self._call(self._driver.fetch_frame)

    async def set_shooting_mode(self, mode: str) -> None:
        """Change the camera's shooting mode."""
        await self._call(self._driver.set_shooting_mode, mode)

    async def capture(self) -> CaptureResult:
        """Trigger the shutter and download the stored still.

        Returns:
            CaptureResult with the decoded image.

        Raises:
            BoothError: Any taxonomy error from the driver. Unexpected
                exceptions are wrapped in CaptureError.
        """
        start = time.monotonic()
        try:
            image = await self._call(self._driver.trigger_capture)
        except BoothError as e:
            self._record(start, success=False, error_type=type(e).__name__)
            logger.warning("Capture failed", error=str(e), error_type=type(e).__name__)
            raise
        except Exception as e:
            self._record(start, success=False, error_type=type(e).__name__)
            logger.error("Capture raised unexpectedly", error=str(e))
            raise CaptureError(str(e) or type(e).__name__) from e

        duration_ms = self._record(start, success=True)
        result = CaptureResult(image=image, duration_ms=duration_ms)
        logger.info(
            "Photo captured",
            width=result.width,
            height=result.height,
            duration_ms=round(duration_ms, 1),
        )
        return result

    def _record(
        self, start: float, success: bool, error_type: str | None = None
    ) -> float:
        duration_ms = (time.monotonic() - start) * 1000
        if self._stats is not None:
            self._stats.record("capture", duration_ms, success, error_type)
        return duration_ms

    async def close(self) -> None:
        """Release driver resources."""
        await self._call(self._driver.close)
