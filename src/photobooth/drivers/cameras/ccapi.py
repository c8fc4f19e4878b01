"""Canon Camera Control API (CCAPI) driver.

Speaks the camera's REST-like protocol over HTTP with ``requests``. Base URL
is ``http://<host>:8080/ccapi/ver100``.

| Method | Path                              | Purpose                    |
|--------|-----------------------------------|----------------------------|
| GET    | /deviceinformation                | reachability and identity  |
| POST   | /shooting/liveview                | start live view            |
| DELETE | /shooting/liveview                | stop live view             |
| GET    | /shooting/liveview/flip           | latest live-view frame     |
| POST   | /shooting/control/shutterbutton   | fire the shutter           |
| GET    | /contents/sd/<folder>             | list stored files          |
| GET    | /contents/sd/<folder>/<file>      | download a stored file     |
| PUT    | /shooting/settings/shootingmode   | set shooting mode          |

Every request carries a ``(connect, read)`` timeout so a hung camera cannot
block an executor thread forever. Image bodies are streamed and must arrive
within the read timeout as a whole, so a camera that trickles bytes cannot
stretch a download past it either.

Example:
    driver = CCAPICameraDriver("192.168.1.2")
    if driver.check_reachable():
        driver.start_live_view()
        frame = driver.fetch_frame()
        driver.stop_live_view()
        photo = driver.trigger_capture()
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import requests

from photobooth.drivers.cameras.types import DeviceInfo
from photobooth.errors import (
    BoothError,
    CaptureError,
    ConnectivityError,
    DecodeError,
    NoImageError,
    ProtocolError,
)
from photobooth.observability import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from photobooth.utils.image import ImageCodec

logger = get_logger(__name__)

__all__ = [
    "CCAPICameraDriver",
    "DEFAULT_API_ROOT",
    "DEFAULT_CAPTURE_SETTLE_S",
    "DEFAULT_CONNECT_TIMEOUT_S",
    "DEFAULT_PORT",
    "DEFAULT_READ_TIMEOUT_S",
    "DEFAULT_STORAGE_FOLDER",
]

DEFAULT_PORT = 8080
DEFAULT_API_ROOT = "ccapi/ver100"
DEFAULT_STORAGE_FOLDER = "100CANON"
DEFAULT_CONNECT_TIMEOUT_S = 10.0
DEFAULT_READ_TIMEOUT_S = 30.0

#: Time the camera needs to commit a shot to the card before it is listed.
DEFAULT_CAPTURE_SETTLE_S = 1.5

LIVE_VIEW_SIZE = "medium"

_BODY_CHUNK_SIZE = 64 * 1024


class CCAPICameraDriver:
    """Blocking CCAPI client for a single camera.

    Thread Safety:
        The underlying ``requests.Session`` pools connections per host and
        may be shared by the live-view thread and the monitor's probe. No
        lock is held across a request.
    """

    def __init__(
        self,
        host: str,
        *,
        port: int = DEFAULT_PORT,
        api_root: str = DEFAULT_API_ROOT,
        storage_folder: str = DEFAULT_STORAGE_FOLDER,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT_S,
        read_timeout: float = DEFAULT_READ_TIMEOUT_S,
        capture_settle_s: float = DEFAULT_CAPTURE_SETTLE_S,
        session: requests.Session | None = None,
        codec: ImageCodec | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Create a driver for the camera at ``host``.

        Args:
            host: Camera IP address or host name.
            port: CCAPI port, 8080 on Canon bodies.
            api_root: API prefix including version.
            storage_folder: DCIM folder on the SD card holding new shots.
            connect_timeout: Seconds allowed to establish the TCP connection.
            read_timeout: Seconds allowed between bytes of the response, and
                for the whole of an image download.
            capture_settle_s: Pause between the shutter command and listing
                storage.
            session: HTTP session to use; a private one is created if None.
            codec: Image decoder; ``CV2ImageCodec`` if None.
            sleep: Blocking sleep used for the capture settle delay.
            clock: Monotonic clock for the download deadline.
        """
        if codec is None:
            from photobooth.utils.image import CV2ImageCodec

            codec = CV2ImageCodec()

        self._host = host
        self._port = port
        self._api_root = api_root.strip("/")
        self._storage_folder = storage_folder.strip("/")
        self._timeout = (connect_timeout, read_timeout)
        self._read_timeout = read_timeout
        self._capture_settle_s = capture_settle_s
        self._session = session or requests.Session()
        self._codec = codec
        self._sleep = sleep
        self._clock = clock
        self._live_view_active = False

    @property
    def base_url(self) -> str:
        """Root URL of the API, without trailing slash."""
        return f"http://{self._host}:{self._port}/{self._api_root}"

    @property
    def is_live_view_active(self) -> bool:
        """Whether the last start/stop left live view running."""
        return self._live_view_active

    def __repr__(self) -> str:
        return f"CCAPICameraDriver(host={self._host!r}, port={self._port})"

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _url(self, path: str) -> str:
        # Storage listings return absolute paths on the camera host.
        if path.startswith("/"):
            return f"http://{self._host}:{self._port}{path}"
        return f"{self.base_url}/{path}"

    def _request(
        self,
        method: str,
        path: str,
        json_body: dict[str, Any] | None = None,
        *,
        stream: bool = False,
    ) -> requests.Response:
        """Send one request, mapping transport failures to ConnectivityError.

        Raises:
            ConnectivityError: Connection refused, DNS failure, timeout.
        """
        url = self._url(path)
        kwargs: dict[str, Any] = {"json": json_body, "timeout": self._timeout}
        if stream:
            kwargs["stream"] = True
        try:
            return self._session.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise ConnectivityError(
                "Failed to connect to camera",
                details={"method": method, "url": url, "error": str(e)},
            ) from e

    def _get_image_body(self, path: str) -> tuple[int, bytes]:
        """GET ``path`` and read the whole body before the read deadline.

        Returns:
            Status code and body; the body is empty for non-200 answers.

        Raises:
            ConnectivityError: Transport failure, or the body took longer
                than the read timeout to arrive.
        """
        started = self._clock()
        response = self._request("GET", path, stream=True)
        try:
            if response.status_code != 200:
                return response.status_code, b""
            deadline = started + self._read_timeout
            chunks: list[bytes] = []
            try:
                for chunk in response.iter_content(chunk_size=_BODY_CHUNK_SIZE):
                    chunks.append(chunk)
                    if self._clock() > deadline:
                        raise ConnectivityError(
                            "Camera response exceeded read timeout",
                            details={"path": path, "timeout_s": self._read_timeout},
                        )
            except requests.RequestException as e:
                raise ConnectivityError(
                    "Failed to connect to camera",
                    details={"path": path, "error": str(e)},
                ) from e
            return response.status_code, b"".join(chunks)
        finally:
            response.close()

    @staticmethod
    def _json(response: requests.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(
                "Invalid JSON received from camera",
                status_code=response.status_code,
                details={"url": response.url},
            ) from e
        if not isinstance(payload, dict):
            raise DecodeError(
                "Unexpected JSON received from camera",
                status_code=response.status_code,
                details={"url": response.url},
            )
        return payload

    # -------------------------------------------------------------------------
    # Device information
    # -------------------------------------------------------------------------

    def check_reachable(self) -> bool:
        """GET ``/deviceinformation``; True only for HTTP 200. Never raises."""
        try:
            response = self._request("GET", "deviceinformation")
        except BoothError as e:
            logger.debug("Camera probe failed", host=self._host, error=str(e))
            return False
        return response.status_code == 200

    def get_device_info(self) -> DeviceInfo:
        """Read the camera's identity.

        Raises:
            ConnectivityError: Camera unreachable.
            ProtocolError: Non-200 status.
            DecodeError: Body is not a JSON object.
        """
        response = self._request("GET", "deviceinformation")
        if response.status_code != 200:
            raise ProtocolError(
                "Failed to read device information", status_code=response.status_code
            )
        return DeviceInfo.from_payload(self._json(response))

    # -------------------------------------------------------------------------
    # Live view
    # -------------------------------------------------------------------------

    def start_live_view(self) -> None:
        """POST ``/shooting/liveview`` with ``{"liveviewsize": "medium"}``.

        Raises:
            ConnectivityError: Camera unreachable.
            ProtocolError: Non-200 status.
        """
        response = self._request(
            "POST", "shooting/liveview", {"liveviewsize": LIVE_VIEW_SIZE}
        )
        if response.status_code != 200:
            raise ProtocolError("Live view failed", status_code=response.status_code)
        self._live_view_active = True
        logger.debug("Live view started", host=self._host)

    def stop_live_view(self) -> None:
        """DELETE ``/shooting/liveview``. Best effort, never raises."""
        self._live_view_active = False
        try:
            response = self._request("DELETE", "shooting/liveview")
        except BoothError as e:
            logger.debug("Live view stop failed", host=self._host, error=str(e))
            return
        logger.debug(
            "Live view stopped", host=self._host, status_code=response.status_code
        )

    def fetch_frame(self) -> NDArray[Any]:
        """GET ``/shooting/liveview/flip`` and decode the frame.

        Raises:
            ConnectivityError: Camera unreachable.
            ProtocolError: Non-200 status.
            DecodeError: Payload is not an image.
        """
        status_code, body = self._get_image_body("shooting/liveview/flip")
        if status_code != 200:
            raise ProtocolError("Live view failed", status_code=status_code)
        return self._codec.decode(body)

    # -------------------------------------------------------------------------
    # Capture
    # -------------------------------------------------------------------------

    def trigger_capture(self) -> NDArray[Any]:
        """Fire the shutter, wait for the card write, download the newest file.

        The newest file is the lexicographically last entry of the storage
        listing (Canon numbers files sequentially).

        Raises:
            ConnectivityError: Camera unreachable at any step.
            CaptureError: Shutter command rejected.
            ProtocolError: Listing or download returned non-200.
            DecodeError: Listing is not JSON or download is not an image.
            NoImageError: Listing is empty or absent.
        """
        response = self._request(
            "POST", "shooting/control/shutterbutton", {"af": True}
        )
        if response.status_code != 200:
            raise CaptureError(
                "Failed to capture photo",
                details={"status_code": response.status_code},
            )

        self._sleep(self._capture_settle_s)

        latest = self._latest_stored_path()
        logger.info("Downloading captured image", path=latest)
        return self._download(latest)

    def _latest_stored_path(self) -> str:
        folder_path = f"contents/sd/{self._storage_folder}"
        response = self._request("GET", folder_path)
        if response.status_code != 200:
            raise ProtocolError(
                "Failed to list camera storage", status_code=response.status_code
            )

        paths = self._json(response).get("path") or []
        if not paths:
            raise NoImageError("No image found on camera")

        latest = max(str(p) for p in paths)
        if latest.startswith("/"):
            return latest
        return f"{folder_path}/{latest}"

    def _download(self, path: str) -> NDArray[Any]:
        status_code, body = self._get_image_body(path)
        if status_code != 200:
            raise ProtocolError(
                "Failed to download image",
                status_code=status_code,
                details={"path": path},
            )
        return self._codec.decode(body)

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def set_shooting_mode(self, mode: str) -> None:
        """PUT ``/shooting/settings/shootingmode`` with ``{"value": mode}``.

        Raises:
            ConnectivityError: Camera unreachable.
            ProtocolError: Non-200 status (e.g. mode dial not in a settable
                position).
        """
        response = self._request(
            "PUT", "shooting/settings/shootingmode", {"value": mode}
        )
        if response.status_code != 200:
            raise ProtocolError(
                "Failed to set shooting mode",
                status_code=response.status_code,
                details={"mode": mode},
            )
        logger.info("Shooting mode set", mode=mode)

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()
