"""Live-view stream loop.

Runs as one cancellable asyncio task per preview. The loop starts live view on
the camera, then fetches frames at no more than 15 per second, keeping only
the newest. Fetch errors are absorbed with a short backoff; only a failure to
start live view ends the loop early.

Example:
    loop = LiveViewLoop(camera, on_unavailable=lambda e: print("no preview", e))
    await loop.start()
    frame = await loop.next_frame(after=0, timeout=1.0)
    await loop.stop()
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from photobooth.observability import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from photobooth.devices.camera import Camera

logger = get_logger(__name__)

__all__ = [
    "DEFAULT_ERROR_BACKOFF_S",
    "DEFAULT_FRAME_INTERVAL_S",
    "DEFAULT_STOP_WAIT_S",
    "LiveFrame",
    "LiveViewLoop",
]

DEFAULT_FRAME_INTERVAL_S = 1 / 15
DEFAULT_ERROR_BACKOFF_S = 0.1
DEFAULT_STOP_WAIT_S = 10.0


@dataclass(frozen=True, slots=True)
class LiveFrame:
    """One preview frame.

    Attributes:
        image: Decoded BGR frame.
        sequence: Strictly increasing across the lifetime of the loop object.
        timestamp: ``time.monotonic()`` at delivery.
    """

    image: NDArray[Any]
    sequence: int
    timestamp: float


class LiveViewLoop:
    """Latest-frame-only live view producer for one camera.

    Attributes:
        frame_interval_s: Minimum spacing between delivered frames.
        error_backoff_s: Pause after a failed fetch.
        stop_wait_s: Longest wait for an earlier remote stop before starting.
        fetch_errors: Fetch failures absorbed since the last start.
        last_error: Message of the last start failure, None while healthy.
    """

    def __init__(
        self,
        camera: Camera,
        *,
        frame_interval_s: float = DEFAULT_FRAME_INTERVAL_S,
        error_backoff_s: float = DEFAULT_ERROR_BACKOFF_S,
        stop_wait_s: float = DEFAULT_STOP_WAIT_S,
        on_unavailable: Callable[[Exception], None] | None = None,
    ) -> None:
        self._camera = camera
        self.frame_interval_s = frame_interval_s
        self.error_backoff_s = error_backoff_s
        self.stop_wait_s = stop_wait_s
        self._on_unavailable = on_unavailable

        self._task: asyncio.Task[None] | None = None
        self._latest: LiveFrame | None = None
        self._sequence = 0
        self._last_delivery: float | None = None
        self._frame_event = asyncio.Event()
        self._stop_tasks: set[asyncio.Task[None]] = set()

        self.fetch_errors = 0
        self.last_error: str | None = None

    @property
    def is_running(self) -> bool:
        """True while the loop task is alive."""
        return self._task is not None and not self._task.done()

    @property
    def latest(self) -> LiveFrame | None:
        """Newest frame, or None before the first frame of this run."""
        return self._latest

    async def start(self) -> None:
        """Start the loop. No-op while already running."""
        if self.is_running:
            logger.debug("Live view already running")
            return
        self._latest = None
        self._last_delivery = None
        self.fetch_errors = 0
        self.last_error = None
        self._task = asyncio.create_task(self._run(), name="live-view")

    async def stop(self) -> None:
        """Cancel the loop and wait for it to exit.

        Returns as soon as the task has unwound. The remote stop request is
        issued in the background and never awaited here.
        """
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        self._latest = None

    async def next_frame(
        self, after: int = 0, timeout: float | None = None
    ) -> LiveFrame | None:
        """Wait for a frame newer than sequence ``after``.

        Returns:
            The newest frame, or None on timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            frame = self._latest
            if frame is not None and frame.sequence > after:
                return frame
            event = self._frame_event
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return None
            try:
                await asyncio.wait_for(event.wait(), remaining)
            except TimeoutError:
                return None

    async def _settle_previous_stop(self) -> None:
        """Wait for remote stops of earlier runs before starting a new one.

        A stop request that lands after the next start would end the new
        stream on the camera. The wait is bounded by ``stop_wait_s``.
        """
        pending = set(self._stop_tasks)
        if not pending:
            return
        _, still_pending = await asyncio.wait(pending, timeout=self.stop_wait_s)
        if still_pending:
            logger.warning(
                "Previous live view stop still pending", pending=len(still_pending)
            )

    async def _run(self) -> None:
        await self._settle_previous_stop()
        try:
            await self._camera.start_live_view()
        except asyncio.CancelledError:
            self._stop_remote()
            raise
        except Exception as e:
            self.last_error = str(e)
            logger.warning("Live view unavailable", error=str(e))
            if self._on_unavailable is not None:
                self._on_unavailable(e)
            return

        logger.info("Live view started")
        try:
            while True:
                await self._pace()
                try:
                    image = await self._camera.fetch_frame()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self.fetch_errors += 1
                    logger.debug(
                        "Frame fetch failed",
                        error=str(e),
                        fetch_errors=self.fetch_errors,
                    )
                    await asyncio.sleep(self.error_backoff_s)
                    continue
                self._publish(image)
        finally:
            self._stop_remote()
            logger.info("Live view stopped", frames=self._sequence)

    async def _pace(self) -> None:
        if self._last_delivery is None:
            return
        # asyncio.sleep may wake a clock tick early; loop until the full
        # interval has elapsed on the monotonic clock.
        while True:
            remaining = self._last_delivery + self.frame_interval_s - time.monotonic()
            if remaining <= 0:
                return
            await asyncio.sleep(remaining)

    def _publish(self, image: NDArray[Any]) -> None:
        self._sequence += 1
        now = time.monotonic()
        self._last_delivery = now
        self._latest = LiveFrame(image=image, sequence=self._sequence, timestamp=now)
        event, self._frame_event = self._frame_event, asyncio.Event()
        event.set()

    def _stop_remote(self) -> None:
        task = asyncio.get_running_loop().create_task(self._camera.stop_live_view())
        self._stop_tasks.add(task)
        task.add_done_callback(self._stop_tasks.discard)
