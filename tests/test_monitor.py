"""Tests for the connection monitor and reconnect counters."""

from __future__ import annotations

import io
import logging

import pytest

from photobooth.devices.camera import Camera
from photobooth.devices.monitor import (
    ConnectionMonitor,
    ConnectionStatus,
    ReconnectCounter,
)
from photobooth.observability import configure_logging
from tests.helpers import wait_until


@pytest.fixture
def monitor(camera_driver, printer_driver) -> ConnectionMonitor:
    return ConnectionMonitor(Camera(camera_driver), printer_driver, interval_s=60.0)


class TestReconnectCounter:
    def test_caps_at_maximum(self) -> None:
        """Verify attempts stop counting at the maximum."""
        counter = ReconnectCounter()

        results = [counter.record_failure() for _ in range(7)]

        assert results == [True] * 5 + [False] * 2
        assert counter.attempts == 5
        assert counter.exhausted

    def test_reset(self) -> None:
        """Verify reset sets attempts back to zero."""
        counter = ReconnectCounter(maximum=2)
        counter.record_failure()
        counter.record_failure()
        counter.reset()
        assert counter.attempts == 0
        assert not counter.exhausted

    def test_invalid_maximum(self) -> None:
        """Verify a maximum below one is rejected."""
        with pytest.raises(ValueError, match="maximum"):
            ReconnectCounter(maximum=0)


class TestProbe:
    async def test_initial_status_is_unreachable(self, monitor) -> None:
        """Verify nothing is reachable before the first probe."""
        assert monitor.status == ConnectionStatus(False, False)

    async def test_check_reports_both_devices(self, monitor, printer_driver) -> None:
        """Verify one probe checks camera and printer."""
        printer_driver.set_available(False)

        status = await monitor.probe_once()

        assert status == ConnectionStatus(camera_reachable=True, printer_reachable=False)
        assert monitor.status is status
        assert status.to_dict() == {"camera_reachable": True, "printer_reachable": False}

    async def test_attempts_stop_at_five(self, monitor, camera_driver) -> None:
        """Verifies passive reconnect attempts are capped.

        Arrangement:
        1. Camera unreachable for seven consecutive probes.

        Action:
        Runs seven probe cycles.

        Assertion Strategy:
        - Camera counter stops at 5 and reports exhausted.
        - Printer counter stays at 0 (printer reachable).
        """
        camera_driver.set_reachable(False)

        for _ in range(7):
            await monitor.probe_once()

        assert monitor.camera_counter.attempts == 5
        assert monitor.camera_counter.exhausted
        assert monitor.printer_counter.attempts == 0

    async def test_reachable_check_resets_counter(self, monitor, camera_driver) -> None:
        """Verify a reachable probe clears earlier attempts."""
        camera_driver.set_reachable(False)
        await monitor.probe_once()
        await monitor.probe_once()

        camera_driver.set_reachable(True)
        status = await monitor.probe_once()

        assert status.camera_reachable
        assert monitor.camera_counter.attempts == 0

    async def test_printer_failures_counted(self, monitor, printer_driver) -> None:
        """Verify unreachable printer probes are counted separately."""
        printer_driver.set_available(False)
        for _ in range(3):
            await monitor.probe_once()
        assert monitor.printer_counter.attempts == 3

    async def test_raising_printer_check_is_unreachable(self, camera_driver) -> None:
        """Verify a raising printer probe reads as unreachable."""
        class BrokenPrinter:
            def is_available(self):
                raise RuntimeError("lpstat crashed")

        monitor = ConnectionMonitor(Camera(camera_driver), BrokenPrinter())
        status = await monitor.probe_once()
        assert status.printer_reachable is False


class TestForceReconnect:
    async def test_resets_counters_and_probes(self, monitor, camera_driver) -> None:
        """Verifies force reconnect after the cap was reached.

        Arrangement:
        1. Camera unreachable until the counter is exhausted.
        2. Camera comes back.

        Action:
        Awaits force_reconnect().

        Assertion Strategy:
        - Returned status shows the camera reachable.
        - Counter is back to zero.
        """
        camera_driver.set_reachable(False)
        for _ in range(5):
            await monitor.probe_once()
        assert monitor.camera_counter.exhausted

        camera_driver.set_reachable(True)
        status = await monitor.force_reconnect()

        assert status.camera_reachable
        assert monitor.camera_counter.attempts == 0

    async def test_counts_again_after_reset(self, monitor, camera_driver) -> None:
        """Verify counting resumes after force_reconnect."""
        camera_driver.set_reachable(False)
        for _ in range(5):
            await monitor.probe_once()

        await monitor.force_reconnect()

        assert monitor.camera_counter.attempts == 1


class TestListenersAndLoop:
    async def test_listeners_receive_every_status(self, monitor) -> None:
        """Verify listeners get each published status."""
        seen: list[ConnectionStatus] = []
        monitor.add_listener(seen.append)

        await monitor.probe_once()
        await monitor.probe_once()
        monitor.remove_listener(seen.append)
        await monitor.probe_once()

        assert len(seen) == 2

    async def test_listener_errors_are_contained(self, monitor) -> None:
        """Verify a raising listener does not stop the others."""
        def broken(status):
            raise RuntimeError("listener bug")

        seen: list[ConnectionStatus] = []
        monitor.add_listener(broken)
        monitor.add_listener(seen.append)

        await monitor.probe_once()

        assert len(seen) == 1

    async def test_background_loop_polls(self, camera_driver, printer_driver) -> None:
        """Verify the polling task probes on its interval."""
        monitor = ConnectionMonitor(
            Camera(camera_driver), printer_driver, interval_s=0.01
        )
        seen: list[ConnectionStatus] = []
        monitor.add_listener(seen.append)

        await monitor.start()
        try:
            await wait_until(lambda: len(seen) >= 3)
            assert monitor.is_running
        finally:
            await monitor.stop()

        assert not monitor.is_running
        assert all(s.camera_reachable for s in seen)

    async def test_transitions_are_logged_once(self, monitor, camera_driver) -> None:
        """Only the reachable -> unreachable edge logs "Device unreachable"."""
        stream = io.StringIO()
        configure_logging(level=logging.INFO, stream=stream, force=True)
        await monitor.probe_once()
        camera_driver.set_reachable(False)
        await monitor.probe_once()
        await monitor.probe_once()
        camera_driver.set_reachable(True)
        await monitor.probe_once()

        err = stream.getvalue()
        assert err.count("Device unreachable") == 1
        assert err.count("Device reconnected") == 1
