"""Silent printing through the CUPS command-line tools.

The booth prints to a pre-selected queue without any dialog:

    lp -d <queue> -t <job name> -n 1 \\
       -o media=<pwg media> -o orientation-requested=<3|4> -o fit-to-page <file>

Availability is ``lpstat -p <queue>`` reporting the queue as enabled.
"""

from __future__ import annotations

import re
import subprocess
import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from photobooth.drivers.printers.types import (
    Orientation,
    PaperSize,
    PrintOutcome,
)
from photobooth.observability import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from photobooth.utils.image import ImageCodec

logger = get_logger(__name__)

__all__ = ["LprPrinterDriver", "DEFAULT_PRINT_TIMEOUT_S"]

DEFAULT_PRINT_TIMEOUT_S = 60.0
_JOB_ID_PATTERN = re.compile(r"request id is (\S+)")

Runner = Callable[..., subprocess.CompletedProcess[str]]


class LprPrinterDriver:
    """Print JPEG files to a named CUPS queue."""

    def __init__(
        self,
        queue: str,
        *,
        timeout_s: float = DEFAULT_PRINT_TIMEOUT_S,
        jpeg_quality: int = 95,
        codec: ImageCodec | None = None,
        runner: Runner = subprocess.run,
    ) -> None:
        """Create a driver for ``queue``.

        Args:
            queue: CUPS destination name (``lpstat -p`` lists them).
            timeout_s: Upper bound for each ``lp``/``lpstat`` invocation.
            jpeg_quality: Quality of the temporary spool file.
            codec: JPEG encoder; ``CV2ImageCodec`` if None.
            runner: ``subprocess.run`` compatible callable (injectable).
        """
        if codec is None:
            from photobooth.utils.image import CV2ImageCodec

            codec = CV2ImageCodec()
        self._queue = queue
        self._timeout_s = timeout_s
        self._jpeg_quality = jpeg_quality
        self._codec = codec
        self._run = runner

    def __repr__(self) -> str:
        return f"LprPrinterDriver(queue={self._queue!r})"

    def _invoke(self, args: Sequence[str]) -> subprocess.CompletedProcess[str]:
        return self._run(
            list(args),
            capture_output=True,
            text=True,
            timeout=self._timeout_s,
            check=False,
        )

    def is_available(self) -> bool:
        """True when ``lpstat`` lists the queue and it is not disabled."""
        try:
            result = self._invoke(["lpstat", "-p", self._queue])
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("lpstat failed", queue=self._queue, error=str(e))
            return False
        if result.returncode != 0:
            return False
        return "disabled" not in result.stdout.lower()

    def print_image(
        self,
        image: NDArray[Any],
        orientation: Orientation,
        job_name: str,
        paper_size: PaperSize,
    ) -> PrintOutcome:
        """Spool one copy and report the outcome.

        A non-zero ``lp`` exit status is a failure; a timeout is reported as
        a failure too since the job state is unknown.
        """
        try:
            payload = self._codec.encode_jpeg(image, quality=self._jpeg_quality)
        except ValueError as e:
            return PrintOutcome.failed(f"Could not encode image: {e}")

        with tempfile.TemporaryDirectory(prefix="photobooth-") as tmp:
            path = Path(tmp) / "print.jpg"
            path.write_bytes(payload)
            args = [
                "lp",
                "-d",
                self._queue,
                "-t",
                job_name,
                "-n",
                "1",
                "-o",
                f"media={paper_size.pwg_media}",
                "-o",
                f"orientation-requested={orientation.ipp_value}",
                "-o",
                "fit-to-page",
                str(path),
            ]
            try:
                result = self._invoke(args)
            except subprocess.TimeoutExpired:
                return PrintOutcome.failed("Printer did not respond in time")
            except OSError as e:
                return PrintOutcome.failed(str(e))

        if result.returncode != 0:
            message = (result.stderr or result.stdout or "").strip() or (
                f"lp exited with status {result.returncode}"
            )
            logger.warning(
                "lp rejected job", queue=self._queue, returncode=result.returncode
            )
            return PrintOutcome.failed(message)

        match = _JOB_ID_PATTERN.search(result.stdout or "")
        job_id = match.group(1) if match else None
        logger.info("Print job spooled", queue=self._queue, job_id=job_id)
        return PrintOutcome.succeeded(job_id)
