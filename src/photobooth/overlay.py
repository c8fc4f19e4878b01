"""Frame overlays.

Overlays are PNG files, usually with an alpha channel, stored in one
directory. ``compose`` stretches an overlay to the photo's size and alpha
blends it on top.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import cv2
import numpy as np
from numpy.typing import NDArray

from photobooth.observability import get_logger
from photobooth.settings import is_plain_name

logger = get_logger(__name__)

__all__ = ["NO_OVERLAY", "OverlayLibrary", "compose"]

# Name shown to the operator for "print without a frame".
NO_OVERLAY = "None"


def compose(base: NDArray[Any], overlay: NDArray[Any]) -> NDArray[Any]:
    """Draw ``overlay`` over ``base``, scaled to the base image size.

    Args:
        base: BGR photo.
        overlay: BGRA or BGR overlay. A BGR overlay is treated as opaque.

    Returns:
        New BGR image with the same shape as ``base``.
    """
    height, width = base.shape[:2]
    if overlay.shape[:2] != (height, width):
        overlay = cv2.resize(overlay, (width, height), interpolation=cv2.INTER_AREA)

    if overlay.ndim == 2:
        overlay = cv2.cvtColor(overlay, cv2.COLOR_GRAY2BGR)
    if overlay.shape[2] == 3:
        return overlay.copy()

    alpha = overlay[:, :, 3:4].astype(np.float32) / 255.0
    blended = overlay[:, :, :3].astype(np.float32) * alpha + base.astype(
        np.float32
    ) * (1.0 - alpha)
    return np.clip(blended, 0, 255).astype(np.uint8)


class OverlayLibrary:
    """PNG overlays found in ``directory``, loaded lazily and cached."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)
        self._cache: dict[str, NDArray[Any]] = {}
        self._lock = threading.Lock()

    def names(self) -> list[str]:
        """Overlay names (file stems), sorted, without ``NO_OVERLAY``."""
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob("*.png"))

    def load(self, name: str) -> NDArray[Any]:
        """Read one overlay with its alpha channel.

        Raises:
            FileNotFoundError: No such overlay or unreadable file.
        """
        with self._lock:
            cached = self._cache.get(name)
        if cached is not None:
            return cached

        if not is_plain_name(name):
            raise FileNotFoundError(f"Overlay not found: {name}")
        path = self.directory / f"{name}.png"
        if not path.is_file():
            raise FileNotFoundError(f"Overlay not found: {name}")
        image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if image is None:
            raise FileNotFoundError(f"Overlay unreadable: {path}")

        with self._lock:
            self._cache[name] = image
        logger.debug("Overlay loaded", overlay=name, shape=list(image.shape))
        return image

    def apply(self, image: NDArray[Any], name: str | None) -> NDArray[Any]:
        """Return ``image`` with overlay ``name`` composed on top.

        ``None`` or ``NO_OVERLAY`` returns the image unchanged.
        """
        if not name or name == NO_OVERLAY:
            return image
        return compose(image, self.load(name))

    def clear_cache(self) -> None:
        """Drop cached overlays so edited files are read again."""
        with self._lock:
            self._cache.clear()
