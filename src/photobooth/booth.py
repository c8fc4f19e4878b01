"""Booth composition root.

Builds every long-lived component once and wires them together explicitly:
the camera device, live-view loop, connection monitor, print queue and the
session state machine. Nothing in the package is a module-level singleton;
the web app and the CLI each hold one ``Booth``.

Example:
    async with Booth.from_config(DriverConfig(), SettingsStore()) as booth:
        await booth.machine.start_session()
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from photobooth.devices import Camera, ConnectionMonitor, LiveViewLoop, PrintQueue
from photobooth.devices.monitor import DEFAULT_POLL_INTERVAL_S
from photobooth.drivers.cameras import CameraDriver
from photobooth.drivers.config import DriverConfig, DriverFactory
from photobooth.drivers.printers import PrinterDriver
from photobooth.observability import BoothStats, get_logger
from photobooth.overlay import OverlayLibrary
from photobooth.session import SessionStateMachine
from photobooth.settings import SessionTiming, SettingsStore

logger = get_logger(__name__)

__all__ = ["Booth"]


class Booth:
    """All kiosk components for one camera and one printer.

    Business context: a booth runs unattended for hours at an event. The
    monitor keeps probing both devices in the background so a guest who
    walks up after the camera's WiFi dropped gets an immediate, readable
    error instead of a hung preview, and the operator can force a reconnect
    from the settings screen without restarting the kiosk.

    Args:
        camera_driver: Blocking camera driver (CCAPI or digital twin).
        printer_driver: Blocking printer driver (CUPS or digital twin).
        settings: Operator settings store. Defaults to factory settings.
        overlays: Overlay library used when overlays are enabled.
        timing: Session delays. Tests shrink these.
        monitor_interval_s: Seconds between reachability probes.
        live_view_interval_s: Minimum spacing of preview frames.

    Attributes:
        stats: Capture and print statistics shared by the devices.
        camera: Async camera device.
        live_view: Preview loop driven by the state machine.
        monitor: Connection monitor publishing reachability.
        print_queue: FIFO print queue.
        machine: Session state machine, the single owner of session state.
    """

    def __init__(
        self,
        camera_driver: CameraDriver,
        printer_driver: PrinterDriver,
        *,
        settings: SettingsStore | None = None,
        overlays: OverlayLibrary | None = None,
        timing: SessionTiming | None = None,
        monitor_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        live_view_interval_s: float | None = None,
    ) -> None:
        self.settings = settings or SettingsStore()
        self.overlays = overlays
        self.stats = BoothStats()

        self.camera = Camera(camera_driver, stats=self.stats)
        live_view_kwargs: dict[str, Any] = {}
        if live_view_interval_s is not None:
            live_view_kwargs["frame_interval_s"] = live_view_interval_s
        self.live_view = LiveViewLoop(self.camera, **live_view_kwargs)
        self.monitor = ConnectionMonitor(
            self.camera, printer_driver, interval_s=monitor_interval_s
        )
        self.print_queue = PrintQueue(printer_driver, stats=self.stats)
        self.machine = SessionStateMachine(
            self.camera,
            self.live_view,
            self.print_queue,
            status=lambda: self.monitor.status,
            settings=self.settings,
            overlays=overlays,
            timing=timing,
        )
        self._started = False

    @classmethod
    def from_config(
        cls,
        driver_config: DriverConfig,
        settings: SettingsStore,
        *,
        overlay_dir: Path | str | None = None,
        **kwargs: Any,
    ) -> Booth:
        """Create drivers through ``DriverFactory`` and build the booth.

        Raises:
            ValueError: Hardware mode without a printer queue.
        """
        factory = DriverFactory(driver_config)
        camera_driver = factory.create_camera_driver(settings.get().camera_ip)
        printer_driver = factory.create_printer_driver()
        overlays = OverlayLibrary(overlay_dir) if overlay_dir is not None else None
        return cls(
            camera_driver,
            printer_driver,
            settings=settings,
            overlays=overlays,
            **kwargs,
        )

    @property
    def is_started(self) -> bool:
        """True between a successful ``start`` and ``stop``."""
        return self._started

    async def start(self) -> None:
        """Probe once, then start the monitor and the state machine.

        The initial probe runs before the state machine accepts intents, so
        the first ``start_session`` sees real reachability.
        """
        if self._started:
            return
        status = await self.monitor.probe_once()
        logger.info(
            "Booth starting",
            camera_reachable=status.camera_reachable,
            printer_reachable=status.printer_reachable,
        )
        await self.monitor.start()
        await self.machine.start()
        self._started = True

    async def stop(self) -> None:
        """Stop all tasks and release the camera session."""
        if not self._started:
            return
        self._started = False
        await self.machine.stop()
        await self.monitor.stop()
        await self.print_queue.close()
        await self.camera.close()
        logger.info("Booth stopped")

    async def __aenter__(self) -> Booth:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    def status(self) -> dict[str, Any]:
        """JSON-safe snapshot for the operator screen."""
        live = self.live_view.latest
        return {
            "state": self.machine.state.to_dict(),
            "connection": self.monitor.status.to_dict(),
            "reconnect_attempts": {
                "camera": self.monitor.camera_counter.attempts,
                "printer": self.monitor.printer_counter.attempts,
                "max": self.monitor.camera_counter.maximum,
            },
            "live_view": {
                "running": self.live_view.is_running,
                "sequence": live.sequence if live is not None else None,
                "fetch_errors": self.live_view.fetch_errors,
                "last_error": self.live_view.last_error,
            },
            "print_queue": {
                "processing": self.print_queue.is_processing,
                "pending": self.print_queue.pending,
            },
        }
