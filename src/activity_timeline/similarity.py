"""Near-duplicate detection between consecutive screen samples."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from PIL import Image, UnidentifiedImageError

from .models import GateDecision

logger = logging.getLogger(__name__)

# Largest possible YIQ distance between two colours.
MAX_YIQ_DELTA = 35215.0


def decode_rgba(data: bytes) -> np.ndarray:
    """Decode an encoded image into an ``(H, W, 4)`` float array."""
    with Image.open(io.BytesIO(data)) as image:
        return np.asarray(image.convert("RGBA"), dtype=np.float32)


def _blend_on_white(pixels: np.ndarray) -> np.ndarray:
    alpha = pixels[..., 3:4] / 255.0
    return 255.0 + (pixels[..., :3] - 255.0) * alpha


def _yiq(rgb: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    y = r * 0.29889531 + g * 0.58662247 + b * 0.11448223
    i = r * 0.59597799 - g * 0.27417610 - b * 0.32180189
    q = r * 0.21147017 - g * 0.52261711 + b * 0.31114694
    return y, i, q


def count_mismatched_pixels(
    previous: np.ndarray, current: np.ndarray, pixel_threshold: float
) -> int:
    """Count pixels whose perceptual colour distance exceeds the tolerance.

    ``pixel_threshold`` is a fraction of full scale in ``[0, 1]``; pixels are
    compared in YIQ space after compositing any transparency onto white.
    """
    y1, i1, q1 = _yiq(_blend_on_white(previous))
    y2, i2, q2 = _yiq(_blend_on_white(current))
    delta = 0.5053 * (y1 - y2) ** 2 + 0.299 * (i1 - i2) ** 2 + 0.1957 * (q1 - q2) ** 2
    max_delta = MAX_YIQ_DELTA * pixel_threshold * pixel_threshold
    return int(np.count_nonzero(delta > max_delta))


@dataclass(slots=True)
class SimilarityGate:
    """Decides whether a freshly sampled frame differs enough to keep."""

    similarity_threshold: float = 0.98
    pixel_threshold: float = 0.3

    def similarity(self, previous: bytes, current: bytes) -> Optional[float]:
        """Return ``1 - mismatched / total``, or ``None`` when not comparable."""
        try:
            before = decode_rgba(previous)
            after = decode_rgba(current)
        except (UnidentifiedImageError, OSError, ValueError):
            logger.warning("Could not decode frame for comparison; keeping it.")
            return None
        if before.shape != after.shape:
            logger.warning("Image dimensions mismatch. Saving image just in case.")
            return None
        height, width = before.shape[:2]
        total = width * height
        if total == 0:
            return None
        mismatched = count_mismatched_pixels(before, after, self.pixel_threshold)
        return 1.0 - mismatched / total

    def decide(
        self,
        previous: Optional[bytes],
        current: bytes,
        is_first: bool = False,
        is_last: bool = False,
    ) -> GateDecision:
        if previous is None or is_first or is_last:
            return GateDecision.KEEP
        score = self.similarity(previous, current)
        if score is None:
            return GateDecision.KEEP
        logger.debug("Similarity: %.4f", score)
        if score > self.similarity_threshold:
            return GateDecision.DROP
        return GateDecision.KEEP
