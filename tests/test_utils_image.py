"""Unit tests for photobooth.utils.image.

Tests the ImageCodec Protocol, the OpenCV implementation and the
orientation helpers used by the print queue.
"""

from unittest.mock import patch

import cv2
import numpy as np
import pytest

from photobooth.errors import DecodeError
from photobooth.utils.image import CV2ImageCodec, ImageCodec, image_size, is_landscape


class TestImageCodecProtocol:
    """Tests for ImageCodec Protocol runtime checking."""

    def test_protocol_is_runtime_checkable(self) -> None:
        """A class with decode and encode_jpeg satisfies isinstance()."""

        class FakeCodec:
            def decode(self, data: bytes) -> np.ndarray:
                return np.zeros((1, 1, 3), dtype=np.uint8)

            def encode_jpeg(self, img: np.ndarray, quality: int = 85) -> bytes:
                return b"\xff\xd8fake"

        assert isinstance(FakeCodec(), ImageCodec)

    def test_protocol_rejects_incomplete_implementation(self) -> None:
        """Verify a class without decode fails the isinstance check."""
        class EncodeOnly:
            def encode_jpeg(self, img: np.ndarray, quality: int = 85) -> bytes:
                return b""

        assert not isinstance(EncodeOnly(), ImageCodec)

    def test_cv2_codec_implements_protocol(self) -> None:
        """Verify CV2ImageCodec satisfies ImageCodec."""
        assert isinstance(CV2ImageCodec(), ImageCodec)


class TestDecode:
    """Tests for CV2ImageCodec.decode."""

    def test_decodes_jpeg(self) -> None:
        """Decoding real JPEG bytes yields a BGR array of the same size."""
        ok, buffer = cv2.imencode(".jpg", np.full((30, 40, 3), 128, dtype=np.uint8))
        assert ok

        img = CV2ImageCodec().decode(buffer.tobytes())

        assert img.shape == (30, 40, 3)
        assert img.dtype == np.uint8

    def test_decodes_png(self) -> None:
        """Verify PNG payloads decode too."""
        ok, buffer = cv2.imencode(".png", np.zeros((8, 6, 3), dtype=np.uint8))
        assert ok
        assert CV2ImageCodec().decode(buffer.tobytes()).shape == (8, 6, 3)

    def test_empty_payload(self) -> None:
        """Verify an empty payload raises DecodeError with its size."""
        with pytest.raises(DecodeError, match="Invalid image data received") as exc_info:
            CV2ImageCodec().decode(b"")
        assert exc_info.value.details == {"size": 0}

    def test_garbage_payload(self) -> None:
        """Verify non-image bytes raise DecodeError with their size."""
        with pytest.raises(DecodeError) as exc_info:
            CV2ImageCodec().decode(b"definitely not a jpeg")
        assert exc_info.value.details["size"] == 21

    def test_opencv_error_is_wrapped(self) -> None:
        """Verify cv2.error is chained into DecodeError."""
        codec = CV2ImageCodec()
        with patch.object(cv2, "imdecode", side_effect=cv2.error("boom")):
            with pytest.raises(DecodeError) as exc_info:
                codec.decode(b"\xff\xd8\xff")
        assert isinstance(exc_info.value.__cause__, cv2.error)


class TestEncodeJpeg:
    """Tests for CV2ImageCodec.encode_jpeg."""

    def test_returns_jpeg_bytes(self) -> None:
        """Verify output starts with the JPEG marker."""
        jpeg = CV2ImageCodec().encode_jpeg(np.zeros((20, 20, 3), dtype=np.uint8))
        assert isinstance(jpeg, bytes)
        assert jpeg[:2] == b"\xff\xd8"

    def test_grayscale(self) -> None:
        """Verify single-channel images encode."""
        jpeg = CV2ImageCodec().encode_jpeg(np.zeros((20, 20), dtype=np.uint8))
        assert jpeg[:2] == b"\xff\xd8"

    def test_lower_quality_is_smaller(self) -> None:
        """Verify quality controls output size."""
        rng = np.random.default_rng(0)
        img = rng.integers(0, 256, (64, 64, 3), dtype=np.uint8)
        codec = CV2ImageCodec()

        assert len(codec.encode_jpeg(img, quality=10)) < len(codec.encode_jpeg(img, quality=95))

    @pytest.mark.parametrize("quality", [1, 100])
    def test_quality_boundaries(self, quality: int) -> None:
        """Verify quality 1 and 100 are accepted."""
        assert CV2ImageCodec().encode_jpeg(np.zeros((4, 4, 3), dtype=np.uint8), quality)

    @pytest.mark.parametrize("quality", [0, 101, -5])
    def test_quality_out_of_range(self, quality: int) -> None:
        """Verify quality outside 1-100 raises ValueError."""
        with pytest.raises(ValueError, match="quality must be 1-100"):
            CV2ImageCodec().encode_jpeg(np.zeros((4, 4, 3), dtype=np.uint8), quality)

    def test_encoder_failure(self) -> None:
        """Verify a failed cv2.imencode raises ValueError."""
        codec = CV2ImageCodec()
        with patch.object(cv2, "imencode", return_value=(False, None)):
            with pytest.raises(ValueError, match="JPEG encoding failed"):
                codec.encode_jpeg(np.zeros((4, 4, 3), dtype=np.uint8))


class TestOrientationHelpers:
    """Tests for image_size and is_landscape."""

    def test_image_size_is_width_height(self) -> None:
        """Verify image_size returns (width, height)."""
        assert image_size(np.zeros((30, 40, 3), dtype=np.uint8)) == (40, 30)

    @pytest.mark.parametrize(
        ("shape", "expected"),
        [((30, 40, 3), True), ((40, 30, 3), False), ((30, 30, 3), False), ((30, 40), True)],
        ids=["landscape", "portrait", "square", "grayscale"],
    )
    def test_is_landscape(self, shape: tuple[int, ...], expected: bool) -> None:
        """Verify only images wider than tall are landscape."""
        assert is_landscape(np.zeros(shape, dtype=np.uint8)) is expected
