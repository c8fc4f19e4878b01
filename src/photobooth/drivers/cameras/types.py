"""Camera driver protocol and shared types.

A camera driver speaks to exactly one camera. All methods are synchronous
and blocking; the async ``photobooth.devices.camera.Camera`` runs them on an
executor so the event loop never waits on the network.

Implementations:
    CCAPICameraDriver: Canon Camera Control API over HTTP
    DigitalTwinCameraDriver: simulated camera for development and tests
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from numpy.typing import NDArray


@dataclass(frozen=True, slots=True)
class DeviceInfo:
    """Camera identity as reported by ``/deviceinformation``.

    Any field may be None when the camera omits it.
    """

    manufacturer: str | None = None
    product_name: str | None = None
    serial_number: str | None = None
    firmware_version: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> DeviceInfo:
        """Build from the camera's JSON body (lower-case CCAPI keys)."""
        return cls(
            manufacturer=payload.get("manufacturer"),
            product_name=payload.get("productname"),
            serial_number=payload.get("serialnumber"),
            firmware_version=payload.get("firmwareversion"),
        )

    def to_dict(self) -> dict[str, str | None]:
        """JSON-safe representation."""
        return {
            "manufacturer": self.manufacturer,
            "product_name": self.product_name,
            "serial_number": self.serial_number,
            "firmware_version": self.firmware_version,
        }


@runtime_checkable
class CameraDriver(Protocol):  # pragma: no cover
    """Blocking operations against one camera.

    Error contract: ``check_reachable`` never raises; ``stop_live_view`` is
    best effort; every other method raises a ``photobooth.errors`` exception
    (``ConnectivityError`` for network failures, ``ProtocolError`` for
    non-success status, ``DecodeError`` for undecodable payloads,
    ``CaptureError``/``NoImageError`` on the capture path).
    """

    def check_reachable(self) -> bool:
        """Return True if the camera answers the device-info endpoint."""
        ...

    def get_device_info(self) -> DeviceInfo:
        """Fetch manufacturer, model, serial and firmware."""
        ...

    def start_live_view(self) -> None:
        """Ask the camera to begin producing live-view frames."""
        ...

    def stop_live_view(self) -> None:
        """Ask the camera to stop live view; failures are swallowed."""
        ...

    def fetch_frame(self) -> NDArray[Any]:
        """Return the most recent live-view frame."""
        ...

    def trigger_capture(self) -> NDArray[Any]:
        """Fire the shutter and return the stored full-resolution image."""
        ...

    def set_shooting_mode(self, mode: str) -> None:
        """Switch the camera's shooting mode (e.g. ``"p"``, ``"av"``)."""
        ...

    def close(self) -> None:
        """Release any held resources (HTTP sessions)."""
        ...
