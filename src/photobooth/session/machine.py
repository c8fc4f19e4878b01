"""Session state machine.

The machine is an actor: one asyncio task owns ``SessionState`` and applies
events from a mailbox in arrival order. User intents, countdown ticks and
device completions all enter through the same mailbox, so no two of them can
interleave a transition.

Background work (countdown, capture, print, confirmation settle) runs in
tasks that post completion events tagged with the epoch current when they
were started. ``reset``, ``cancel``, ``retake`` and ``acknowledge`` bump the
epoch, so anything still in flight from before is dropped on arrival.

Example:
    machine = SessionStateMachine(
        camera, live_view, print_queue,
        status=lambda: monitor.status,
        settings=SettingsStore(),
    )
    await machine.start()
    await machine.start_session()        # Preview
    await machine.start_countdown()      # Countdown(3)
    await machine.wait_for(lambda s: isinstance(s, Review), timeout=10)
    await machine.print_photo()          # Printing
    await machine.stop()
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any

from photobooth.devices.print_queue import PrintJob
from photobooth.drivers.printers.types import PrintStatus
from photobooth.observability import LogContext, get_logger
from photobooth.session.states import (
    CAMERA_NOT_CONNECTED,
    PRINTER_NOT_CONNECTED,
    CaptureFinished,
    Capturing,
    Countdown,
    Error,
    Event,
    Idle,
    Intent,
    IntentEvent,
    Preview,
    Printing,
    PrintFinished,
    Review,
    SessionState,
    SettleElapsed,
    Tick,
    WorkFailed,
)
from photobooth.settings import BoothSettings, SessionTiming

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from photobooth.devices.camera import Camera
    from photobooth.devices.live_view import LiveViewLoop
    from photobooth.devices.monitor import ConnectionStatus
    from photobooth.devices.print_queue import PrintQueue
    from photobooth.overlay import OverlayLibrary

logger = get_logger(__name__)

__all__ = ["SessionStateMachine", "StateListener"]

StateListener = Callable[[SessionState, SessionState], None]

_Envelope = tuple[Event, "asyncio.Future[SessionState] | None"]


class SessionStateMachine:
    """Single-owner capture and print lifecycle.

    Injectable Dependencies:
        - camera: async camera device used for the capture
        - live_view: preview loop, running in Preview and Countdown
        - print_queue: destination of print jobs
        - status: provider of the latest ``ConnectionStatus``
        - settings: provider of the current ``BoothSettings`` snapshot
        - overlays: optional overlay library applied before printing
        - timing: tick, capture settle and print confirmation delays
    """

    def __init__(
        self,
        camera: Camera,
        live_view: LiveViewLoop,
        print_queue: PrintQueue,
        *,
        status: Callable[[], ConnectionStatus],
        settings: Callable[[], BoothSettings],
        overlays: OverlayLibrary | None = None,
        timing: SessionTiming | None = None,
    ) -> None:
        self._camera = camera
        self._live_view = live_view
        self._print_queue = print_queue
        self._status = status
        self._settings = settings
        self._overlays = overlays
        self.timing = timing or SessionTiming()

        self._state: SessionState = Idle()
        self._epoch = 0
        self._cycle: BoothSettings | None = None
        self._mailbox: asyncio.Queue[_Envelope] = asyncio.Queue()
        self._owner: asyncio.Task[None] | None = None
        self._work: dict[str, asyncio.Task[None]] = {}
        self._listeners: list[StateListener] = []

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        """Current state. Read-only outside the owner task."""
        return self._state

    @property
    def epoch(self) -> int:
        """Generation counter; bumped whenever in-flight work is abandoned."""
        return self._epoch

    @property
    def is_running(self) -> bool:
        """True while the owner task is draining the mailbox."""
        return self._owner is not None and not self._owner.done()

    def add_listener(self, listener: StateListener) -> None:
        """Call ``listener(old, new)`` from the owner task after each transition."""
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        """Detach a listener added with ``add_listener``."""
        self._listeners.remove(listener)

    async def wait_for(
        self,
        predicate: Callable[[SessionState], bool],
        timeout: float | None = None,
    ) -> SessionState:
        """Wait until the state satisfies ``predicate``.

        Raises:
            TimeoutError: The state did not match in time.
        """
        if predicate(self._state):
            return self._state
        future: asyncio.Future[SessionState] = asyncio.get_running_loop().create_future()

        def listener(_old: SessionState, new: SessionState) -> None:
            if not future.done() and predicate(new):
                future.set_result(new)

        self.add_listener(listener)
        try:
            return await asyncio.wait_for(future, timeout)
        finally:
            self.remove_listener(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the owner task. No-op while running."""
        if self.is_running:
            return
        self._owner = asyncio.create_task(self._run(), name="session-owner")
        logger.info("Session state machine started")

    async def stop(self) -> None:
        """Abort all work, stop the owner task and fail pending intents."""
        owner = self._owner
        self._owner = None
        await self._abort_work()
        if owner is not None and not owner.done():
            owner.cancel()
            try:
                await owner
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
        while not self._mailbox.empty():
            _, future = self._mailbox.get_nowait()
            if future is not None and not future.done():
                future.cancel()
        logger.info("Session state machine stopped")

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    async def dispatch(self, intent: Intent) -> SessionState:
        """Submit ``intent`` and wait for the state it produced.

        An intent that is not valid in the current state leaves the state
        unchanged and resolves with it.

        Raises:
            RuntimeError: The owner task is not running.
        """
        if not self.is_running:
            raise RuntimeError("Session state machine is not running")
        future: asyncio.Future[SessionState] = asyncio.get_running_loop().create_future()
        await self._mailbox.put((IntentEvent(intent), future))
        return await future

    async def start_session(self) -> SessionState:
        """Idle to Preview, or Error when the camera is unreachable."""
        return await self.dispatch(Intent.START_SESSION)

    async def start_countdown(self) -> SessionState:
        """Preview to Countdown using the current countdown length."""
        return await self.dispatch(Intent.START_COUNTDOWN)

    async def cancel(self) -> SessionState:
        """Leave Preview for Idle."""
        return await self.dispatch(Intent.CANCEL)

    async def retake(self) -> SessionState:
        """Discard the reviewed photo and return to Preview."""
        return await self.dispatch(Intent.RETAKE)

    async def print_photo(self) -> SessionState:
        """Print the reviewed photo, or Error when the printer is unreachable."""
        return await self.dispatch(Intent.PRINT)

    async def acknowledge(self) -> SessionState:
        """Dismiss an Error and return to Idle."""
        return await self.dispatch(Intent.ACKNOWLEDGE)

    async def reset(self) -> SessionState:
        """Abandon all work and return to Idle from any state."""
        return await self.dispatch(Intent.RESET)

    # ------------------------------------------------------------------
    # Owner task
    # ------------------------------------------------------------------

    def _post(self, event: Event) -> None:
        self._mailbox.put_nowait((event, None))

    async def _run(self) -> None:
        while True:
            event, future = await self._mailbox.get()
            try:
                with LogContext(epoch=self._epoch, state=self._state.name):
                    await self._handle(event)
            except asyncio.CancelledError:
                if future is not None and not future.done():
                    future.cancel()
                raise
            except Exception as e:
                logger.exception("Session event handling failed", event=repr(event))
                if future is not None and not future.done():
                    future.set_exception(e)
                continue
            if future is not None and not future.done():
                future.set_result(self._state)

    async def _handle(self, event: Event) -> None:
        match event:
            case IntentEvent(intent=intent):
                await self._handle_intent(intent)
            case Tick(epoch=epoch) if self._current(epoch):
                await self._on_tick()
            case CaptureFinished(epoch=epoch) if self._current(epoch):
                await self._on_capture_finished(event)
            case PrintFinished(epoch=epoch) if self._current(epoch):
                await self._on_print_finished(event)
            case SettleElapsed(epoch=epoch) if self._current(epoch):
                if isinstance(self._state, Printing) and self._state.confirmed:
                    await self._transition(Idle())
            case WorkFailed(epoch=epoch) if self._current(epoch):
                await self._on_work_failed(event)
            case _:
                logger.debug("Dropped stale event", event=type(event).__name__)

    def _current(self, epoch: int) -> bool:
        return epoch == self._epoch

    async def _handle_intent(self, intent: Intent) -> None:
        state = self._state

        if intent is Intent.RESET:
            await self._reset()
            return

        match (state, intent):
            case (Idle(), Intent.START_SESSION):
                if self._status().camera_reachable:
                    await self._transition(Preview())
                else:
                    await self._transition(Error(CAMERA_NOT_CONNECTED))
            case (Preview(), Intent.START_COUNTDOWN):
                self._cycle = self._settings()
                seconds = self._cycle.countdown_seconds
                await self._transition(Countdown(seconds))
                self._spawn("countdown", self._countdown(self._epoch, seconds))
            case (Preview(), Intent.CANCEL):
                self._bump_epoch()
                await self._transition(Idle())
            case (Review(), Intent.RETAKE):
                self._bump_epoch()
                await self._transition(Preview())
            case (Review(image=image), Intent.PRINT):
                if self._status().printer_reachable:
                    await self._transition(Printing(image))
                    self._spawn("print", self._print(self._epoch, image, self._settings()))
                else:
                    await self._transition(Error(PRINTER_NOT_CONNECTED, image=image))
            case (Error(), Intent.ACKNOWLEDGE):
                self._bump_epoch()
                await self._transition(Idle())
            case _:
                logger.info(
                    "Ignored intent", intent=intent.value, state=state.name
                )

    async def _on_tick(self) -> None:
        state = self._state
        if not isinstance(state, Countdown):
            return
        if state.remaining > 1:
            await self._transition(Countdown(state.remaining - 1))
        else:
            await self._transition(Capturing())
            self._spawn("capture", self._capture(self._epoch))

    async def _on_capture_finished(self, event: CaptureFinished) -> None:
        if not isinstance(self._state, Capturing):
            return
        if event.image is None:
            await self._transition(Error(f"Failed to capture photo: {event.reason}"))
            return
        await self._transition(Review(event.image))
        cycle = self._cycle or self._settings()
        if cycle.auto_print:
            logger.info("Auto print")
            self._post(IntentEvent(Intent.PRINT))

    async def _on_print_finished(self, event: PrintFinished) -> None:
        state = self._state
        if not isinstance(state, Printing) or state.confirmed:
            return
        if event.status is PrintStatus.SUCCEEDED:
            await self._transition(Printing(state.image, confirmed=True))
            self._spawn("settle", self._settle(self._epoch))
        elif event.status is PrintStatus.CANCELLED:
            await self._transition(Idle())
        else:
            await self._transition(Error(f"Print failed: {event.reason}"))

    async def _on_work_failed(self, event: WorkFailed) -> None:
        if isinstance(self._state, Idle | Error):
            return
        if event.task == "capture":
            message = f"Failed to capture photo: {event.reason}"
        elif event.task == "print":
            message = f"Print failed: {event.reason}"
        else:
            message = f"Session failed: {event.reason}"
        self._bump_epoch()
        await self._abort_work()
        await self._transition(Error(message))

    async def _reset(self) -> None:
        self._bump_epoch()
        await self._abort_work()
        self._cycle = None
        await self._transition(Idle())

    def _bump_epoch(self) -> None:
        self._epoch += 1

    async def _transition(self, new: SessionState) -> None:
        old = self._state
        self._state = new
        logger.info("State changed", old=old.name, new=new.name, epoch=self._epoch)

        live_before = isinstance(old, Preview | Countdown)
        live_after = isinstance(new, Preview | Countdown)
        if live_before and not live_after:
            await self._live_view.stop()
        elif live_after and not live_before:
            await self._live_view.start()

        for listener in list(self._listeners):
            try:
                listener(old, new)
            except Exception:
                logger.exception("State listener failed")

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    def _spawn(self, name: str, coro: Coroutine[Any, Any, None]) -> None:
        previous = self._work.pop(name, None)
        if previous is not None and not previous.done():
            previous.cancel()
        epoch = self._epoch
        task = asyncio.create_task(coro, name=f"session-{name}")
        self._work[name] = task
        task.add_done_callback(lambda t, n=name: self._forget(n, epoch, t))

    def _forget(self, name: str, epoch: int, task: asyncio.Task[None]) -> None:
        if self._work.get(name) is task:
            del self._work[name]
        if task.cancelled() or task.exception() is None:
            return
        error = task.exception()
        logger.error("Session task crashed", task=name, error=str(error))
        self._post(WorkFailed(epoch, name, str(error) or type(error).__name__))

    async def _abort_work(self) -> None:
        tasks = list(self._work.values())
        self._work.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._live_view.stop()

    async def _countdown(self, epoch: int, seconds: int) -> None:
        for _ in range(seconds):
            await asyncio.sleep(self.timing.tick_interval_s)
            self._post(Tick(epoch))

    async def _capture(self, epoch: int) -> None:
        await asyncio.sleep(self.timing.capture_settle_s)
        try:
            result = await self._camera.capture()
        except Exception as e:
            self._post(CaptureFinished(epoch, reason=str(e)))
            return
        self._post(CaptureFinished(epoch, image=result.image))

    async def _print(
        self, epoch: int, image: NDArray[Any], settings: BoothSettings
    ) -> None:
        image = await self._apply_overlay(image, settings)
        job = PrintJob(image=image, copies=settings.copies, paper_size=settings.paper_size)
        outcome = await self._print_queue.submit(job)
        self._post(PrintFinished(epoch, outcome.status, outcome.message))

    async def _apply_overlay(
        self, image: NDArray[Any], settings: BoothSettings
    ) -> NDArray[Any]:
        if not settings.overlay_enabled or not settings.overlay_name:
            return image
        if self._overlays is None:
            logger.warning("Overlay enabled but no overlay library configured")
            return image
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None, self._overlays.apply, image, settings.overlay_name
            )
        except Exception as e:
            logger.warning(
                "Overlay failed, printing original",
                overlay=settings.overlay_name,
                error=str(e),
            )
            return image

    async def _settle(self, epoch: int) -> None:
        await asyncio.sleep(self.timing.print_settle_s)
        self._post(SettleElapsed(epoch))
