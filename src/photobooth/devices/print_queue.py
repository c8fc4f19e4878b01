"""Print job queue.

Serializes print requests against one ``PrinterDriver``. Jobs run strictly
one at a time in FIFO order on a worker task; the blocking driver call runs
on the default executor. A multi-copy job prints its first copy, queues the
remaining copies as background single-copy jobs, and only then reports
completion to its caller.
"""

from __future__ import annotations

import asyncio
import collections
import functools
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from photobooth.drivers.printers import (
    Orientation,
    PaperSize,
    PrinterDriver,
    PrintOutcome,
    PrintStatus,
)
from photobooth.observability import get_logger
from photobooth.utils.image import is_landscape

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from photobooth.observability import BoothStats

logger = get_logger(__name__)

__all__ = ["DEFAULT_JOB_NAME", "PrintCallback", "PrintJob", "PrintQueue"]

DEFAULT_JOB_NAME = "PhotoBooth Photo"

PrintCallback = Callable[[PrintOutcome], None]


@dataclass(slots=True)
class PrintJob:
    """A request to print ``copies`` copies of one image.

    Attributes:
        image: BGR image to print.
        copies: Total copies, at least 1.
        paper_size: Paper to print on.
        on_complete: Called once with the outcome of the first copy.
        job_name: Spooler job title.

    Raises:
        ValueError: copies is not an integer of at least 1.
    """

    image: NDArray[Any]
    copies: int = 1
    paper_size: PaperSize = PaperSize.FOUR_BY_SIX
    on_complete: PrintCallback | None = None
    job_name: str = DEFAULT_JOB_NAME

    def __post_init__(self) -> None:
        if not isinstance(self.copies, int) or isinstance(self.copies, bool):
            raise ValueError(f"copies must be an integer, got {self.copies!r}")
        if self.copies < 1:
            raise ValueError(f"copies must be >= 1, got {self.copies}")

    @property
    def orientation(self) -> Orientation:
        """Landscape when the image is wider than tall."""
        return Orientation.LANDSCAPE if is_landscape(self.image) else Orientation.PORTRAIT


class PrintQueue:
    """FIFO print queue with one job in flight.

    Injectable Dependencies:
        - printer: printing subsystem driver (required)
        - stats: per-copy print statistics (optional)

    Example:
        queue = PrintQueue(DigitalTwinPrinterDriver())
        outcome = await queue.submit(PrintJob(image, copies=3))
        assert outcome.ok  # first copy printed, two more queued
        await queue.join()
    """

    def __init__(self, printer: PrinterDriver, stats: BoothStats | None = None) -> None:
        self._printer = printer
        self._stats = stats
        self._jobs: collections.deque[PrintJob] = collections.deque()
        self._worker: asyncio.Task[None] | None = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._processing = False

    @property
    def printer(self) -> PrinterDriver:
        return self._printer

    @property
    def is_processing(self) -> bool:
        """True while a job is being printed."""
        return self._processing

    @property
    def pending(self) -> int:
        """Jobs waiting behind the one in flight."""
        return len(self._jobs)

    def enqueue(self, job: PrintJob) -> None:
        """Append ``job``; the worker picks it up when idle.

        Must be called from the event loop thread.
        """
        self._jobs.append(job)
        self._idle.clear()
        logger.debug(
            "Print job queued",
            job_name=job.job_name,
            copies=job.copies,
            pending=len(self._jobs),
        )
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._drain(), name="print-queue")

    def submit(self, job: PrintJob) -> asyncio.Future[PrintOutcome]:
        """Enqueue ``job`` and return a future for its first-copy outcome.

        Any ``on_complete`` already set on the job is still called first.
        """
        future: asyncio.Future[PrintOutcome] = asyncio.get_running_loop().create_future()
        original = job.on_complete

        def complete(outcome: PrintOutcome) -> None:
            try:
                if original is not None:
                    original(outcome)
            finally:
                if not future.done():
                    future.set_result(outcome)

        job.on_complete = complete
        self.enqueue(job)
        return future

    async def join(self) -> None:
        """Wait until the queue is empty and nothing is printing."""
        await self._idle.wait()

    async def close(self) -> None:
        """Stop the worker and drop queued jobs without calling them back."""
        dropped = len(self._jobs)
        self._jobs.clear()
        worker = self._worker
        self._worker = None
        if worker is not None and not worker.done():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
        self._processing = False
        self._idle.set()
        if dropped:
            logger.info("Print queue closed", dropped_jobs=dropped)

    async def _drain(self) -> None:
        try:
            while self._jobs:
                job = self._jobs.popleft()
                self._processing = True
                try:
                    outcome = await self._print_one(job)
                except Exception as e:
                    logger.exception("Print job crashed", job_name=job.job_name)
                    outcome = PrintOutcome.failed(str(e) or type(e).__name__)
                finally:
                    self._processing = False
                self._complete(job, outcome)
        finally:
            if not self._jobs:
                self._idle.set()

    async def _print_one(self, job: PrintJob) -> PrintOutcome:
        orientation = job.orientation
        logger.info(
            "Printing",
            job_name=job.job_name,
            orientation=orientation.value,
            paper_size=job.paper_size.value,
        )
        loop = asyncio.get_running_loop()
        start = time.monotonic()
        try:
            outcome = await loop.run_in_executor(
                None,
                functools.partial(
                    self._printer.print_image,
                    job.image,
                    orientation,
                    job.job_name,
                    job.paper_size,
                ),
            )
        except Exception as e:
            logger.error("Printer driver raised", error=str(e), error_type=type(e).__name__)
            outcome = PrintOutcome.failed(str(e) or type(e).__name__)

        duration_ms = (time.monotonic() - start) * 1000
        if self._stats is not None:
            error_type = None if outcome.ok else outcome.status.value
            self._stats.record("print", duration_ms, outcome.ok, error_type)
        return outcome

    def _complete(self, job: PrintJob, outcome: PrintOutcome) -> None:
        if outcome.status is PrintStatus.SUCCEEDED:
            logger.info("Print succeeded", job_name=job.job_name, job_id=outcome.job_id)
            try:
                self._queue_remaining_copies(job)
            except Exception:
                logger.exception("Could not queue remaining copies", job_name=job.job_name)
        elif outcome.status is PrintStatus.CANCELLED:
            logger.info("Print cancelled", job_name=job.job_name)
        else:
            logger.warning("Print failed", job_name=job.job_name, reason=outcome.message)

        if job.on_complete is None:
            return
        try:
            job.on_complete(outcome)
        except Exception:
            logger.exception("Print completion callback failed", job_name=job.job_name)

    def _queue_remaining_copies(self, job: PrintJob) -> None:
        for _ in range(job.copies - 1):
            self._jobs.append(
                PrintJob(
                    image=job.image,
                    copies=1,
                    paper_size=job.paper_size,
                    job_name=job.job_name,
                )
            )
        if job.copies > 1:
            logger.info("Queued remaining copies", copies=job.copies - 1)
