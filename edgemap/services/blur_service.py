from __future__ import annotations
import logging

import numpy as np

from ..models.pixel_buffer import PixelBuffer
from .kernel_service import KernelService

logger = logging.getLogger(__name__)


class BlurService:
    """
    Separable Gaussian blur with edge-replicated borders.

    *   Horizontal pass first, vertical pass on its output.
    *   All four channels are blurred, alpha included.
    *   Each pass lands in an 8-bit buffer (rounded, clamped).
    """

    def __init__(self, kernel_service: KernelService | None = None):
        self.kernel_service = kernel_service or KernelService()

    @staticmethod
    def _separable_pass(pixels: np.ndarray, weights: np.ndarray, axis: int) -> np.ndarray:
        radius = weights.size // 2
        length = pixels.shape[axis]

        pad = [(0, 0)] * pixels.ndim
        pad[axis] = (radius, radius)
        padded = np.pad(pixels, pad, mode="edge").astype(np.float64)

        acc = np.zeros(pixels.shape, dtype=np.float64)
        for offset, weight in enumerate(weights):
            window = [slice(None)] * pixels.ndim
            window[axis] = slice(offset, offset + length)
            acc += weight * padded[tuple(window)]

        return np.clip(np.rint(acc), 0, 255).astype(np.uint8)

    def blur(self, buffer: PixelBuffer, sigma: float) -> PixelBuffer:
        """
        Args:
            buffer: RGBA buffer (usually already grayscale).
            sigma: Gaussian standard deviation, must be > 0.

        Returns:
            A new PixelBuffer of the same size.
        """
        # kernel first: an invalid sigma is rejected before any pixel work
        weights = self.kernel_service.gaussian(sigma)
        buffer.validate()

        horizontal = self._separable_pass(buffer.pixels, weights, axis=1)
        vertical = self._separable_pass(horizontal, weights, axis=0)
        logger.debug(f"Blurred {buffer.width}x{buffer.height} with sigma={sigma} "
                     f"({weights.size} taps)")
        return PixelBuffer(pixels=vertical, path=buffer.path)
