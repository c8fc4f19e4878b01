"""Connection health monitor.

Probes camera and printer reachability every few seconds and republishes a
fresh ``ConnectionStatus``. Each device has a ``ReconnectCounter``: every
unreachable probe counts one passive reconnect attempt (the next cycle is the
retry) until the cap, and any reachable probe resets it. The monitor only
publishes status; it never touches session state.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from photobooth.observability import get_logger

if TYPE_CHECKING:
    from photobooth.devices.camera import Camera
    from photobooth.drivers.printers import PrinterDriver

logger = get_logger(__name__)

__all__ = [
    "DEFAULT_MAX_RECONNECT_ATTEMPTS",
    "DEFAULT_POLL_INTERVAL_S",
    "ConnectionMonitor",
    "ConnectionStatus",
    "ReconnectCounter",
]

DEFAULT_POLL_INTERVAL_S = 3.0
DEFAULT_MAX_RECONNECT_ATTEMPTS = 5

StatusListener = Callable[["ConnectionStatus"], None]


@dataclass(frozen=True, slots=True)
class ConnectionStatus:
    """Reachability snapshot from one monitor cycle."""

    camera_reachable: bool = False
    printer_reachable: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {
            "camera_reachable": self.camera_reachable,
            "printer_reachable": self.printer_reachable,
        }


class ReconnectCounter:
    """Per-device reconnect attempt counter with a hard cap.

    Example:
        >>> counter = ReconnectCounter(maximum=2)
        >>> counter.record_failure(), counter.record_failure(), counter.record_failure()
        (True, True, False)
        >>> counter.exhausted
        True
    """

    def __init__(self, maximum: int = DEFAULT_MAX_RECONNECT_ATTEMPTS) -> None:
        if maximum < 1:
            raise ValueError(f"maximum must be >= 1, got {maximum}")
        self.maximum = maximum
        self.attempts = 0

    @property
    def exhausted(self) -> bool:
        """True once automatic attempts have stopped."""
        return self.attempts >= self.maximum

    def record_failure(self) -> bool:
        """Count one attempt. Returns False when the cap was already reached."""
        if self.exhausted:
            return False
        self.attempts += 1
        return True

    def reset(self) -> None:
        """Forget earlier attempts after the device answered."""
        self.attempts = 0

    def __repr__(self) -> str:
        return f"ReconnectCounter({self.attempts}/{self.maximum})"


class ConnectionMonitor:
    """Periodic reachability prober for camera and printer.

    Injectable Dependencies:
        - camera: async camera device (``check_reachable``)
        - printer: printer driver (``is_available``), run on the executor

    Example:
        monitor = ConnectionMonitor(camera, printer)
        monitor.add_listener(lambda s: print(s))
        await monitor.start()
        ...
        status = await monitor.force_reconnect()
        await monitor.stop()
    """

    def __init__(
        self,
        camera: Camera,
        printer: PrinterDriver,
        *,
        interval_s: float = DEFAULT_POLL_INTERVAL_S,
        max_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
    ) -> None:
        self._camera = camera
        self._printer = printer
        self.interval_s = interval_s
        self.camera_counter = ReconnectCounter(max_attempts)
        self.printer_counter = ReconnectCounter(max_attempts)

        self._status = ConnectionStatus()
        self._previous: ConnectionStatus | None = None
        self._listeners: list[StatusListener] = []
        self._task: asyncio.Task[None] | None = None
        self._probe_lock = asyncio.Lock()

    @property
    def status(self) -> ConnectionStatus:
        """Most recently published status."""
        return self._status

    @property
    def is_running(self) -> bool:
        """True while the polling task is alive."""
        return self._task is not None and not self._task.done()

    def add_listener(self, listener: StatusListener) -> None:
        """Call ``listener`` with every published status."""
        self._listeners.append(listener)

    def remove_listener(self, listener: StatusListener) -> None:
        self._listeners.remove(listener)

    async def start(self) -> None:
        """Start the polling task. No-op while running."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="connection-monitor")
        logger.info("Connection monitor started", interval_s=self.interval_s)

    async def stop(self) -> None:
        """Cancel the polling task; the last status stays readable."""
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
        logger.info("Connection monitor stopped")

    async def force_reconnect(self) -> ConnectionStatus:
        """Reset both counters and probe immediately.

        Returns:
            The status published by the out-of-cycle probe.
        """
        self.camera_counter.reset()
        self.printer_counter.reset()
        logger.info("Force reconnect requested")
        return await self.probe_once()

    async def probe_once(self) -> ConnectionStatus:
        """Run one probe cycle, publish and return the result."""
        async with self._probe_lock:
            camera_ok, printer_ok = await asyncio.gather(
                self._camera.check_reachable(),
                self._probe_printer(),
            )
            status = ConnectionStatus(
                camera_reachable=camera_ok, printer_reachable=printer_ok
            )
            previous = self._previous
            self._track(
                "camera",
                camera_ok,
                None if previous is None else previous.camera_reachable,
                self.camera_counter,
            )
            self._track(
                "printer",
                printer_ok,
                None if previous is None else previous.printer_reachable,
                self.printer_counter,
            )
            self._previous = status
            self._status = status
            self._notify(status)
            return status

    async def _probe_printer(self) -> bool:
        loop = asyncio.get_running_loop()
        try:
            return bool(await loop.run_in_executor(None, self._printer.is_available))
        except Exception as e:
            logger.warning("Printer probe raised", error=str(e))
            return False

    def _track(
        self,
        device: str,
        reachable: bool,
        was_reachable: bool | None,
        counter: ReconnectCounter,
    ) -> None:
        if reachable:
            if was_reachable is False:
                logger.info(
                    "Device reconnected", device=device, attempts=counter.attempts
                )
            counter.reset()
            return

        if was_reachable is not False:
            logger.warning("Device unreachable", device=device)
        if counter.record_failure():
            logger.info(
                "Reconnect attempt",
                device=device,
                attempt=counter.attempts,
                max_attempts=counter.maximum,
            )
            if counter.exhausted:
                logger.warning(
                    "Reconnect attempts exhausted",
                    device=device,
                    max_attempts=counter.maximum,
                )

    def _notify(self, status: ConnectionStatus) -> None:
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Connection status listener failed")

    async def _run(self) -> None:
        while True:
            try:
                await self.probe_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Connection probe cycle failed")
            await asyncio.sleep(self.interval_s)
