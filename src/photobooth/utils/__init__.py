"""Utility modules for the photo-booth kiosk.

Exports are resolved lazily so importing the package does not load OpenCV.

Available exports:
    ImageCodec: Protocol for image decode/encode
    CV2ImageCodec: OpenCV implementation
    image_size: (width, height) of an image array
    is_landscape: width > height check used for print orientation
"""

from typing import Any

__all__ = ["CV2ImageCodec", "ImageCodec", "image_size", "is_landscape"]


def __getattr__(name: str) -> Any:
    """Import ``photobooth.utils.image`` on first attribute access.

    Raises:
        AttributeError: If ``name`` is not a public export.
    """
    if name in __all__:
        from photobooth.utils import image

        value = getattr(image, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
