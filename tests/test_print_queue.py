"""Tests for the FIFO print queue.

Example:
    pdm run pytest tests/test_print_queue.py -v
"""

from __future__ import annotations

import asyncio

import numpy as np
import pytest

from photobooth.devices.print_queue import DEFAULT_JOB_NAME, PrintJob, PrintQueue
from photobooth.drivers.printers import (
    DigitalTwinPrinterDriver,
    Orientation,
    PaperSize,
    PrintOutcome,
    PrintStatus,
)
from photobooth.observability import BoothStats
from tests.helpers import Gate, wait_for_thread_event, wait_until


@pytest.fixture
def landscape() -> np.ndarray:
    return np.zeros((60, 90, 3), dtype=np.uint8)


@pytest.fixture
def portrait() -> np.ndarray:
    return np.zeros((90, 60, 3), dtype=np.uint8)


class TestPrintJob:
    def test_defaults(self, landscape) -> None:
        """Verify a job defaults to one 4x6 copy with the booth job name."""
        job = PrintJob(landscape)
        assert job.copies == 1
        assert job.paper_size is PaperSize.FOUR_BY_SIX
        assert job.job_name == DEFAULT_JOB_NAME == "PhotoBooth Photo"

    def test_orientation_follows_aspect(self, landscape, portrait) -> None:
        """Verify orientation follows the image aspect."""
        assert PrintJob(landscape).orientation is Orientation.LANDSCAPE
        assert PrintJob(portrait).orientation is Orientation.PORTRAIT

    def test_square_is_portrait(self) -> None:
        """Verify a square image prints portrait."""
        square = np.zeros((50, 50, 3), dtype=np.uint8)
        assert PrintJob(square).orientation is Orientation.PORTRAIT

    @pytest.mark.parametrize("copies", [0, -1, 2.5, True])
    def test_rejects_invalid_copies(self, landscape: np.ndarray, copies: object) -> None:
        """Verify copies must be an integer of at least one."""
        with pytest.raises(ValueError, match="copies"):
            PrintJob(landscape, copies=copies)


class TestCopies:
    async def test_three_copies_print_three_times(self, printer_driver, landscape) -> None:
        """Verifies multi-copy jobs expand into single-copy prints.

        Arrangement:
        1. Twin printer that succeeds every job.
        2. One job with copies=3 and a completion callback.

        Action:
        Enqueues the job and waits for the queue to drain.

        Assertion Strategy:
        - Printer saw exactly three jobs, all landscape.
        - Callback fired exactly once, with a success outcome.

        Testing Principle:
        The caller hears about the first copy only; the rest are background.
        """
        outcomes: list[PrintOutcome] = []
        queue = PrintQueue(printer_driver)

        queue.enqueue(PrintJob(landscape, copies=3, on_complete=outcomes.append))
        await wait_until(lambda: outcomes)
        await queue.join()

        assert len(printer_driver.jobs) == 3
        assert {job.orientation for job in printer_driver.jobs} == {Orientation.LANDSCAPE}
        assert [o.status for o in outcomes] == [PrintStatus.SUCCEEDED]

    async def test_callback_fires_after_first_copy(self, landscape) -> None:
        """Remaining copies are queued before the caller is told."""
        gate = Gate()
        printer = DigitalTwinPrinterDriver(print_delay_s=1.0, sleep=gate.sleep)
        queue = PrintQueue(printer)
        seen_pending: list[int] = []

        queue.enqueue(
            PrintJob(landscape, copies=3, on_complete=lambda _: seen_pending.append(queue.pending))
        )
        await wait_for_thread_event(gate.entered)
        assert seen_pending == []
        gate.open()
        await wait_until(lambda: seen_pending)
        await queue.join()

        assert seen_pending == [2]
        assert len(printer.jobs) == 3

    @pytest.mark.parametrize(
        "outcome",
        [PrintOutcome.failed("Paper jam"), PrintOutcome.cancelled()],
        ids=["failed", "cancelled"],
    )
    async def test_no_extra_copies_after_unsuccessful_first(
        self, printer_driver, landscape, outcome
    ) -> None:
        """Verify a failed or cancelled first copy queues nothing more."""
        printer_driver.script(outcome)
        queue = PrintQueue(printer_driver)

        result = await queue.submit(PrintJob(landscape, copies=3))
        await queue.join()

        assert result.status is outcome.status
        assert len(printer_driver.jobs) == 1


class TestOrdering:
    async def test_fifo_one_at_a_time(self, landscape, portrait) -> None:
        """Jobs print in submission order and never overlap."""
        gate = Gate()
        printer = DigitalTwinPrinterDriver(print_delay_s=1.0, sleep=gate.sleep)
        queue = PrintQueue(printer)

        first = queue.submit(PrintJob(landscape, job_name="first"))
        second = queue.submit(PrintJob(portrait, job_name="second"))
        await wait_for_thread_event(gate.entered)

        assert queue.is_processing
        assert queue.pending == 1
        assert len(gate.calls) == 1

        gate.open()
        await asyncio.gather(first, second)
        await queue.join()

        assert [job.job_name for job in printer.jobs] == ["first", "second"]
        assert not queue.is_processing
        assert queue.pending == 0

    async def test_enqueue_after_drain_restarts_worker(self, printer_driver, landscape) -> None:
        """Verify a job queued after the queue drained still prints."""
        queue = PrintQueue(printer_driver)
        await queue.submit(PrintJob(landscape))
        await queue.join()

        outcome = await queue.submit(PrintJob(landscape))

        assert outcome.ok
        assert len(printer_driver.jobs) == 2


class TestFailures:
    async def test_driver_exception_becomes_failed_outcome(self, landscape) -> None:
        """Verify a raising driver yields a FAILED outcome."""
        class ExplodingPrinter:
            def is_available(self):
                return True

            def print_image(self, image, orientation, job_name, paper_size):
                raise OSError("spooler gone")

        queue = PrintQueue(ExplodingPrinter())
        outcome = await queue.submit(PrintJob(landscape))

        assert outcome.status is PrintStatus.FAILED
        assert outcome.message == "spooler gone"

    async def test_crashing_job_fails_without_stopping_worker(
        self, printer_driver: DigitalTwinPrinterDriver, landscape: np.ndarray
    ) -> None:
        """Verifies a job that raises outside the driver still completes.

        Arrangement:
        1. First job carries an object that is not an image, so working out
           its orientation raises.
        2. A valid job queued behind it.

        Assertion Strategy:
        - The first future resolves with a FAILED outcome.
        - The second job prints and the queue drains.
        """
        queue = PrintQueue(printer_driver)
        broken = queue.submit(PrintJob(object()))  # type: ignore[arg-type]
        good = queue.submit(PrintJob(landscape))

        outcome = await asyncio.wait_for(broken, timeout=2.0)
        assert outcome.status is PrintStatus.FAILED
        assert (await asyncio.wait_for(good, timeout=2.0)).ok
        await asyncio.wait_for(queue.join(), timeout=2.0)
        assert len(printer_driver.jobs) == 1
        assert not queue.is_processing

    async def test_callback_exception_does_not_stop_queue(self, printer_driver, landscape) -> None:
        """Verify a raising callback does not stop later jobs."""
        def broken(outcome):
            raise RuntimeError("callback bug")

        queue = PrintQueue(printer_driver)
        first = queue.submit(PrintJob(landscape, on_complete=broken))
        second = queue.submit(PrintJob(landscape))

        assert (await first).ok
        assert (await second).ok
        assert len(printer_driver.jobs) == 2

    async def test_stats_recorded_per_copy(self, printer_driver, landscape) -> None:
        """Verify statistics count every copy."""
        stats = BoothStats()
        printer_driver.script(PrintOutcome.succeeded("a"), PrintOutcome.failed("jam"))
        queue = PrintQueue(printer_driver, stats=stats)

        await queue.submit(PrintJob(landscape, copies=2))
        await queue.join()

        summary = stats.get_summary("print")
        assert summary.total == 2
        assert summary.succeeded == 1
        assert summary.error_counts == {"failed": 1}


class TestClose:
    async def test_close_drops_pending_jobs(self, landscape) -> None:
        """Verify close drops queued jobs without calling them back."""
        gate = Gate()
        printer = DigitalTwinPrinterDriver(print_delay_s=1.0, sleep=gate.sleep)
        queue = PrintQueue(printer)
        called: list[PrintOutcome] = []

        queue.enqueue(PrintJob(landscape, on_complete=called.append))
        queue.enqueue(PrintJob(landscape, on_complete=called.append))
        await wait_for_thread_event(gate.entered)

        await queue.close()
        gate.open()

        assert queue.pending == 0
        assert not queue.is_processing
        await queue.join()
        assert called == []

    async def test_close_idle_queue(self, printer_driver) -> None:
        """Verify closing an idle queue is harmless."""
        queue = PrintQueue(printer_driver)
        await queue.close()
        await queue.join()
