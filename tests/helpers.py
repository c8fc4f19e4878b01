"""Test helpers for photobooth.

Example:
    from tests.helpers import Gate, assert_implements_protocol, wait_until

    gate = Gate()
    driver = DigitalTwinCameraDriver(config, sleep=gate.sleep)
    ...
    gate.open()
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol


def assert_implements_protocol(instance: object, protocol: type[Protocol]) -> None:
    """Assert ``instance`` satisfies a ``@runtime_checkable`` Protocol.

    Raises:
        AssertionError: Lists the protocol members the instance lacks.
    """
    if isinstance(instance, protocol):
        return
    members = {
        name
        for name in dir(protocol)
        if not name.startswith("_") and name not in dir(object)
    }
    missing = sorted(name for name in members if not hasattr(instance, name))
    raise AssertionError(
        f"{type(instance).__name__} does not implement {protocol.__name__}. "
        f"Missing: {', '.join(missing) or 'unknown'}"
    )


class Gate:
    """A ``sleep`` replacement that blocks executor threads until opened.

    Inject ``gate.sleep`` into a twin driver to hold a capture or print in
    flight for as long as a test needs.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.entered = threading.Event()
        self.calls: list[float] = []

    def sleep(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.entered.set()
        self._event.wait(timeout=5.0)

    def open(self) -> None:
        self._event.set()


async def wait_until(
    condition: Callable[[], Any], timeout: float = 2.0, interval: float = 0.005
) -> None:
    """Poll ``condition`` on the event loop until it is truthy.

    Raises:
        AssertionError: The condition stayed false for ``timeout`` seconds.
    """
    deadline = time.monotonic() + timeout
    while not condition():
        if time.monotonic() > deadline:
            raise AssertionError(f"Condition not met within {timeout}s")
        await asyncio.sleep(interval)


async def wait_for_thread_event(event: threading.Event, timeout: float = 2.0) -> None:
    """Await a ``threading.Event`` without blocking the loop."""
    if not await asyncio.to_thread(event.wait, timeout):
        raise AssertionError(f"Thread event not set within {timeout}s")
