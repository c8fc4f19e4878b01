"""FastAPI kiosk application.

Serves the kiosk page, one endpoint per session intent, read-only status
endpoints and an MJPEG live preview. The app owns a ``Booth`` for its
lifetime: the lifespan handler starts it and stops it on shutdown.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response, StreamingResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from photobooth import __version__
from photobooth.booth import Booth
from photobooth.devices.live_view import LiveViewLoop
from photobooth.observability import get_logger
from photobooth.overlay import NO_OVERLAY
from photobooth.session import Intent
from photobooth.utils.image import CV2ImageCodec, ImageCodec

logger = get_logger(__name__)

WEB_DIR = Path(__file__).parent
TEMPLATES_DIR = WEB_DIR / "templates"
STATIC_DIR = WEB_DIR / "static"

MJPEG_BOUNDARY = "frame"
DEFAULT_JPEG_QUALITY = 85
PAGE_REFRESH_MS = 250

# Intents offered as buttons on the kiosk page, in screen order.
KIOSK_INTENTS = (
    Intent.START_SESSION,
    Intent.START_COUNTDOWN,
    Intent.CANCEL,
    Intent.RETAKE,
    Intent.PRINT,
    Intent.ACKNOWLEDGE,
    Intent.RESET,
)


def _mjpeg_part(jpeg: bytes) -> bytes:
    return (
        f"--{MJPEG_BOUNDARY}\r\nContent-Type: image/jpeg\r\n\r\n".encode()
        + jpeg
        + b"\r\n"
    )


async def _generate_preview_stream(
    live_view: LiveViewLoop,
    codec: ImageCodec,
    *,
    quality: int = DEFAULT_JPEG_QUALITY,
    idle_timeout_s: float = 1.0,
    max_frames: int | None = None,
) -> AsyncGenerator[bytes, None]:
    """Yield multipart JPEG parts for each new live-view frame.

    Waits on the loop's latest-frame slot, so a slow client skips frames
    instead of queueing them. Outside Preview and Countdown no frames
    arrive and the generator simply keeps waiting.

    Args:
        live_view: Frame source.
        codec: JPEG encoder.
        quality: JPEG quality 1-100.
        idle_timeout_s: Wake-up interval while no frames arrive.
        max_frames: Stop after this many frames (None streams forever).

    Yields:
        ``multipart/x-mixed-replace`` parts.
    """
    sequence = 0
    sent = 0
    while max_frames is None or sent < max_frames:
        frame = await live_view.next_frame(after=sequence, timeout=idle_timeout_s)
        if frame is None:
            continue
        sequence = frame.sequence
        try:
            jpeg = await asyncio.to_thread(codec.encode_jpeg, frame.image, quality)
        except ValueError as e:
            logger.warning("Preview frame encode failed", error=str(e))
            continue
        sent += 1
        yield _mjpeg_part(jpeg)


def create_app(booth: Booth, *, codec: ImageCodec | None = None) -> FastAPI:
    """Create the kiosk application around ``booth``.

    Args:
        booth: Composed booth, started and stopped by the app lifespan.
        codec: JPEG encoder for previews and photos. Defaults to OpenCV.

    Returns:
        Configured FastAPI application, ready for ``uvicorn.run``.

    Example:
        >>> booth = Booth.from_config(DriverConfig(), SettingsStore())
        >>> uvicorn.run(create_app(booth), host="0.0.0.0", port=8000)
    """
    image_codec = codec or CV2ImageCodec()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Start the booth with the server and stop it on shutdown."""
        logger.info("Starting photo booth services")
        await booth.start()
        yield
        logger.info("Shutting down photo booth services")
        await booth.stop()

    app = FastAPI(
        title="Photo Booth",
        description="Unattended photo-booth kiosk",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.booth = booth

    if STATIC_DIR.exists():
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")
    templates = Jinja2Templates(directory=TEMPLATES_DIR)

    @app.get("/", response_class=HTMLResponse)
    async def kiosk(request: Request) -> HTMLResponse:
        """Render the kiosk page with one button per session intent."""
        return templates.TemplateResponse(
            request,
            "kiosk.html",
            {
                "title": "Photo Booth",
                "intents": KIOSK_INTENTS,
                "refresh_ms": PAGE_REFRESH_MS,
            },
        )

    @app.get("/stream")
    async def preview_stream() -> StreamingResponse:
        """MJPEG live preview; idles between sessions instead of closing."""
        return StreamingResponse(
            _generate_preview_stream(booth.live_view, image_codec),
            media_type=f"multipart/x-mixed-replace; boundary={MJPEG_BOUNDARY}",
        )

    @app.post("/api/session/{intent}")
    async def api_session_intent(intent: Intent) -> dict[str, Any]:
        """Apply a session intent and return the resulting state.

        Intents that do not apply to the current state are ignored and the
        unchanged state is returned. Unknown intent names are rejected by
        validation with 422.
        """
        try:
            state = await booth.machine.dispatch(intent)
        except RuntimeError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        return state.to_dict()

    @app.get("/api/state")
    async def api_state() -> dict[str, Any]:
        """Current session state."""
        return booth.machine.state.to_dict()

    @app.get("/api/status")
    async def api_status() -> dict[str, Any]:
        """Session state, device reachability, reconnect counters and queue."""
        return booth.status()

    @app.post("/api/reconnect")
    async def api_reconnect() -> dict[str, Any]:
        """Reset reconnect counters and probe both devices now."""
        status = await booth.monitor.force_reconnect()
        return status.to_dict()

    @app.get("/api/stats")
    async def api_stats() -> dict[str, Any]:
        """Capture and print statistics."""
        return booth.stats.to_dict()

    @app.get("/api/settings")
    async def api_settings() -> dict[str, Any]:
        """Current operator settings."""
        return booth.settings.get().to_dict()

    @app.put("/api/settings")
    async def api_update_settings(
        changes: dict[str, Any] = Body(...),
    ) -> JSONResponse:
        """Change operator settings; the next countdown or print uses them.

        Returns 400 and leaves settings untouched when a value is invalid or
        the request tries to change ``camera_ip``, which is only read at
        startup.
        """
        current = booth.settings.get()
        if changes.get("camera_ip", current.camera_ip) != current.camera_ip:
            return JSONResponse(
                status_code=400,
                content={"error": "camera_ip is fixed while running; restart with --camera-ip"},
            )
        try:
            settings = booth.settings.update(**changes)
        except (TypeError, ValueError) as e:
            return JSONResponse(status_code=400, content={"error": str(e)})
        logger.info("Settings updated", fields=sorted(changes))
        return JSONResponse(content=settings.to_dict())

    @app.get("/api/overlays")
    async def api_overlays() -> dict[str, Any]:
        """Selectable overlays, with the no-overlay choice first."""
        names = booth.overlays.names() if booth.overlays is not None else []
        return {"overlays": [NO_OVERLAY, *names]}

    @app.get("/api/photo.jpg")
    async def api_photo() -> Response:
        """JPEG of the photo held by the current state, 404 if none."""
        image = getattr(booth.machine.state, "image", None)
        if image is None:
            raise HTTPException(status_code=404, detail="No photo")
        jpeg = await asyncio.to_thread(
            image_codec.encode_jpeg, image, DEFAULT_JPEG_QUALITY
        )
        return Response(content=jpeg, media_type="image/jpeg")

    return app
