"""Pytest configuration and shared fixtures for photobooth tests.

Everything runs against the digital twin drivers with small images and
shortened session timings, so no camera, printer or network is needed.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from photobooth.booth import Booth
from photobooth.drivers.cameras import DigitalTwinCameraConfig, DigitalTwinCameraDriver
from photobooth.drivers.printers import DigitalTwinPrinterDriver
from photobooth.observability import reset_logging
from photobooth.settings import BoothSettings, SessionTiming, SettingsStore


@pytest.fixture(autouse=True)
def _isolated_logging():
    """Reset the photobooth logger around each test.

    Tests that call ``configure_logging(force=True)`` with a private stream
    must not leak their handler into later tests.
    """
    yield
    reset_logging()


@pytest.fixture
def camera_driver() -> DigitalTwinCameraDriver:
    """Twin camera producing small landscape frames and stills."""
    return DigitalTwinCameraDriver(
        DigitalTwinCameraConfig(live_view_size=(64, 48), capture_size=(90, 60))
    )


@pytest.fixture
def printer_driver() -> DigitalTwinPrinterDriver:
    """Twin printer that accepts every job immediately."""
    return DigitalTwinPrinterDriver()


@pytest.fixture
def fast_timing() -> SessionTiming:
    """Session delays shrunk so a full cycle takes well under a second."""
    return SessionTiming(tick_interval_s=0.01, capture_settle_s=0.0, print_settle_s=0.05)


@pytest.fixture
def settings() -> SettingsStore:
    """Factory settings with a three second countdown."""
    return SettingsStore(BoothSettings(countdown_seconds=3))


@pytest.fixture
async def booth(
    camera_driver: DigitalTwinCameraDriver,
    printer_driver: DigitalTwinPrinterDriver,
    settings: SettingsStore,
    fast_timing: SessionTiming,
) -> AsyncIterator[Booth]:
    """Started booth on twin drivers; stopped after the test.

    The monitor interval is long so only explicit probes change status.
    """
    b = Booth(
        camera_driver,
        printer_driver,
        settings=settings,
        timing=fast_timing,
        monitor_interval_s=60.0,
        live_view_interval_s=0.01,
    )
    await b.start()
    yield b
    await b.stop()
