"""Image codec abstraction.

Images travel through the booth as OpenCV BGR ``uint8`` numpy arrays. This
module hides the OpenCV calls behind an ``ImageCodec`` protocol so drivers and
the MJPEG stream can be tested with a fake codec.

The cv2 import is deferred to ``CV2ImageCodec.__init__`` so that modules
which only need the protocol do not load OpenCV at import time.

Usage:
    codec = CV2ImageCodec()
    image = codec.decode(jpeg_bytes)        # raises DecodeError on garbage
    jpeg = codec.encode_jpeg(image, quality=85)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from photobooth.errors import DecodeError

if TYPE_CHECKING:
    from numpy.typing import NDArray

__all__ = ["CV2ImageCodec", "ImageCodec", "image_size", "is_landscape"]


@runtime_checkable
class ImageCodec(Protocol):
    """Protocol for decoding device payloads and encoding preview frames."""

    def decode(self, data: bytes) -> NDArray[Any]:
        """Decode JPEG/PNG bytes into a BGR array.

        Raises:
            DecodeError: If the bytes are not a decodable image.
        """
        ...  # pragma: no cover

    def encode_jpeg(self, img: NDArray[Any], quality: int = 85) -> bytes:
        """Encode an array as JPEG bytes.

        Raises:
            ValueError: If quality is outside 1-100 or encoding fails.
        """
        ...  # pragma: no cover


class CV2ImageCodec(ImageCodec):
    """OpenCV implementation of ``ImageCodec``.

    Thread-safe for concurrent decode/encode calls, which matters because
    drivers decode on executor threads while the web stream encodes on
    worker threads of its own.
    """

    def __init__(self) -> None:
        """Import cv2 on first instantiation."""
        import cv2
        import numpy as np

        self._cv2 = cv2
        self._np = np

    def decode(self, data: bytes) -> NDArray[Any]:
        """Decode image bytes with ``cv2.imdecode``.

        Args:
            data: Raw bytes as returned by the device.

        Returns:
            BGR uint8 array of shape (height, width, 3).

        Raises:
            DecodeError: Empty payload or bytes OpenCV cannot decode.

        Example:
            >>> codec = CV2ImageCodec()
            >>> codec.decode(b"not an image")
            Traceback (most recent call last):
            ...
            photobooth.errors.DecodeError: Invalid image data received
        """
        if not data:
            raise DecodeError("Invalid image data received", details={"size": 0})
        buffer = self._np.frombuffer(data, dtype=self._np.uint8)
        try:
            img = self._cv2.imdecode(buffer, self._cv2.IMREAD_COLOR)
        except self._cv2.error as e:
            raise DecodeError(
                "Invalid image data received", details={"size": len(data)}
            ) from e
        if img is None:
            raise DecodeError("Invalid image data received", details={"size": len(data)})
        return img

    def encode_jpeg(self, img: NDArray[Any], quality: int = 85) -> bytes:
        """Encode with ``cv2.imencode``.

        Args:
            img: Grayscale or BGR uint8 array.
            quality: JPEG quality 1-100.

        Returns:
            JPEG bytes starting with ``\\xff\\xd8``.

        Raises:
            ValueError: Quality out of range or encoder failure.
        """
        if not 1 <= quality <= 100:
            raise ValueError(f"quality must be 1-100, got {quality}")
        success, data = self._cv2.imencode(
            ".jpg", img, [self._cv2.IMWRITE_JPEG_QUALITY, quality]
        )
        if not success:
            raise ValueError(
                f"JPEG encoding failed for image shape={img.shape}, dtype={img.dtype}"
            )
        return data.tobytes()


def image_size(img: NDArray[Any]) -> tuple[int, int]:
    """Return ``(width, height)`` of an image array."""
    height, width = img.shape[:2]
    return int(width), int(height)


def is_landscape(img: NDArray[Any]) -> bool:
    """True when the image is wider than it is tall. Square counts as portrait."""
    width, height = image_size(img)
    return width > height
