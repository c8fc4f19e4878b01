"""Tests for the CUPS command-line printer driver.

``subprocess.run`` is replaced by a recording fake, so the tests check the
exact ``lp``/``lpstat`` invocations and how their results map to outcomes.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import numpy as np
import pytest

from photobooth.drivers.printers import (
    LprPrinterDriver,
    Orientation,
    PaperSize,
    PrinterDriver,
    PrintStatus,
)
from tests.helpers import assert_implements_protocol


class FakeRunner:
    """Records invocations and returns scripted results."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls: list[list[str]] = []
        self.spooled: list[bytes] = []

    def __call__(self, args, **kwargs):
        self.calls.append(args)
        if args[0] == "lp":
            self.spooled.append(Path(args[-1]).read_bytes())
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


def _done(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(["x"], returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def image():
    return np.zeros((40, 60, 3), dtype=np.uint8)


class TestAvailability:
    def test_enabled_queue(self) -> None:
        """Verify an enabled queue reported by lpstat is available."""
        runner = FakeRunner(_done(0, "printer PM520 is idle.  enabled since ..."))
        driver = LprPrinterDriver("PM520", runner=runner)

        assert driver.is_available() is True
        assert runner.calls == [["lpstat", "-p", "PM520"]]

    def test_disabled_queue(self) -> None:
        """Verify a disabled queue is unavailable."""
        runner = FakeRunner(_done(0, "printer PM520 disabled since ..."))
        assert LprPrinterDriver("PM520", runner=runner).is_available() is False

    def test_unknown_queue(self) -> None:
        """Verify an unknown queue is unavailable."""
        runner = FakeRunner(_done(1, "", "lpstat: Invalid destination name"))
        assert LprPrinterDriver("nope", runner=runner).is_available() is False

    def test_missing_cups_tools(self) -> None:
        """Verify missing CUPS binaries mean unavailable rather than a crash."""
        runner = FakeRunner(FileNotFoundError("lpstat"))
        assert LprPrinterDriver("PM520", runner=runner).is_available() is False

    def test_implements_protocol(self) -> None:
        """Verify the driver satisfies the PrinterDriver protocol."""
        assert_implements_protocol(LprPrinterDriver("PM520", runner=FakeRunner()), PrinterDriver)


class TestPrintImage:
    def test_lp_arguments(self, image) -> None:
        """Verifies the silent print command line.

        Arrangement:
        1. lp answers with a request id.

        Action:
        Prints a landscape 5x7 job.

        Assertion Strategy:
        - Destination, title, one copy, media and orientation options.
        - The spooled file is a JPEG.
        - The job id is parsed from stdout.
        """
        runner = FakeRunner(_done(0, "request id is PM520-42 (1 file(s))"))
        driver = LprPrinterDriver("PM520", runner=runner)

        outcome = driver.print_image(
            image, Orientation.LANDSCAPE, "PhotoBooth Photo", PaperSize.FIVE_BY_SEVEN
        )

        assert outcome.ok
        assert outcome.job_id == "PM520-42"
        args = runner.calls[0]
        assert args[:7] == ["lp", "-d", "PM520", "-t", "PhotoBooth Photo", "-n", "1"]
        assert "media=na_5x7_5x7in" in args
        assert "orientation-requested=4" in args
        assert "fit-to-page" in args
        assert runner.spooled[0][:2] == b"\xff\xd8"

    def test_portrait_and_4x6(self, image) -> None:
        """Verify lp options for a portrait 4x6 job."""
        runner = FakeRunner(_done(0, ""))
        driver = LprPrinterDriver("PM520", runner=runner)

        outcome = driver.print_image(
            image, Orientation.PORTRAIT, "Photo", PaperSize.FOUR_BY_SIX
        )

        assert outcome.ok
        assert outcome.job_id is None
        assert "orientation-requested=3" in runner.calls[0]
        assert "media=na_index-4x6_4x6in" in runner.calls[0]

    def test_rejected_job(self, image) -> None:
        """Verify a failing lp run becomes a FAILED outcome with its message."""
        runner = FakeRunner(_done(1, "", "lp: The printer or class does not exist."))
        outcome = LprPrinterDriver("PM520", runner=runner).print_image(
            image, Orientation.PORTRAIT, "Photo", PaperSize.FOUR_BY_SIX
        )

        assert outcome.status is PrintStatus.FAILED
        assert outcome.message == "lp: The printer or class does not exist."

    def test_rejected_without_output(self, image) -> None:
        """Verify a silent lp failure still reports a reason."""
        runner = FakeRunner(_done(2))
        outcome = LprPrinterDriver("PM520", runner=runner).print_image(
            image, Orientation.PORTRAIT, "Photo", PaperSize.FOUR_BY_SIX
        )
        assert outcome.message == "lp exited with status 2"

    def test_timeout(self, image) -> None:
        """Verify an lp timeout becomes a FAILED outcome."""
        runner = FakeRunner(subprocess.TimeoutExpired("lp", 60))
        outcome = LprPrinterDriver("PM520", runner=runner).print_image(
            image, Orientation.PORTRAIT, "Photo", PaperSize.FOUR_BY_SIX
        )
        assert outcome.status is PrintStatus.FAILED
        assert "did not respond" in outcome.message
