from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from typing import Callable
import logging
import os

import numpy as np
from dotenv import load_dotenv

from ..models.errors import InvalidThreshold
from ..models.pixel_buffer import PixelBuffer
from .kernel_service import KernelService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

BandFn = Callable[[int, int], np.ndarray]


class ConvolutionService:
    """
    Sobel / Laplacian responses over a grayscale RGBA buffer.

    The R channel is the scalar sample (R == G == B after grayscale).
    Borders are edge-replicated, output is an opaque edge mask.
    With workers > 1 the output rows are split into bands computed on a
    thread pool; every band reads the shared padded plane and writes only
    its own rows, so the result does not depend on the worker count.
    """

    def __init__(self, kernel_service: KernelService | None = None, workers: int | None = None):
        self.kernel_service = kernel_service or KernelService()
        self.workers = max(1, int(workers if workers is not None
                                  else os.getenv("CONVOLUTION_WORKERS", "1")))

    # ─── Internal helpers ──────────────────────────────────────────
    @staticmethod
    def _check_threshold(threshold) -> None:
        if isinstance(threshold, bool) or not isinstance(threshold, (int, np.integer)) \
                or not 0 <= threshold <= 255:
            raise InvalidThreshold(f"threshold must be an integer in [0, 255], got {threshold!r}")

    @staticmethod
    def _padded_plane(buffer: PixelBuffer, half: int) -> np.ndarray:
        plane = buffer.pixels[..., 0].astype(np.float64)
        return np.pad(plane, half, mode="edge")

    @staticmethod
    def _correlate(padded: np.ndarray, kernel: np.ndarray, row_start: int, row_stop: int,
                   width: int) -> np.ndarray:
        """sum(kernel[ky, kx] * src[y + ky - half, x + kx - half]) for rows [row_start, row_stop)."""
        acc = np.zeros((row_stop - row_start, width), dtype=np.float64)
        size = kernel.shape[0]
        for ky in range(size):
            rows = padded[row_start + ky: row_stop + ky]
            for kx in range(size):
                weight = kernel[ky, kx]
                if weight == 0:
                    continue
                acc += weight * rows[:, kx: kx + width]
        return acc

    def _run_bands(self, height: int, width: int, band_fn: BandFn) -> np.ndarray:
        magnitude = np.empty((height, width), dtype=np.float64)
        n_bands = min(self.workers, height)
        bounds = np.linspace(0, height, n_bands + 1).astype(int)
        bands = [(int(a), int(b)) for a, b in zip(bounds[:-1], bounds[1:]) if b > a]

        if len(bands) == 1:
            magnitude[:] = band_fn(0, height)
            return magnitude

        def work(band):
            start, stop = band
            magnitude[start:stop] = band_fn(start, stop)

        with ThreadPoolExecutor(max_workers=len(bands)) as pool:
            # list() re-raises the first band failure
            list(pool.map(work, bands))
        return magnitude

    @staticmethod
    def _to_edge_mask(magnitude: np.ndarray, threshold: int, path=None) -> PixelBuffer:
        """Hard cutoff below *threshold*, clamp to 255, opaque gray output."""
        magnitude = np.where(magnitude < threshold, 0.0, np.minimum(magnitude, 255.0))
        values = np.rint(magnitude).astype(np.uint8)

        out = np.empty(magnitude.shape + (4,), dtype=np.uint8)
        out[..., 0] = values
        out[..., 1] = values
        out[..., 2] = values
        out[..., 3] = 255
        return PixelBuffer(pixels=out, path=path)

    # ─── Public API ────────────────────────────────────────────────
    def apply_sobel(self, buffer: PixelBuffer, kernel_size: int, threshold: int) -> PixelBuffer:
        """
        Gradient magnitude sqrt(Gx² + Gy²) from the Sobel X/Y kernel pair.
        """
        kernels = self.kernel_service.sobel(kernel_size)
        self._check_threshold(threshold)
        buffer.validate()

        half = kernel_size // 2
        padded = self._padded_plane(buffer, half)
        width = buffer.width

        def band(start: int, stop: int) -> np.ndarray:
            gx = self._correlate(padded, kernels.kernel_x, start, stop, width)
            gy = self._correlate(padded, kernels.kernel_y, start, stop, width)
            return np.sqrt(gx * gx + gy * gy)

        magnitude = self._run_bands(buffer.height, width, band)
        return self._to_edge_mask(magnitude, threshold, buffer.path)

    def apply_laplacian(self, buffer: PixelBuffer, kernel_size: int, threshold: int) -> PixelBuffer:
        """
        Absolute Laplacian response |sum|, same threshold and write-out as Sobel.
        """
        kernel = self.kernel_service.laplacian(kernel_size)
        self._check_threshold(threshold)
        buffer.validate()

        half = kernel_size // 2
        padded = self._padded_plane(buffer, half)
        width = buffer.width

        def band(start: int, stop: int) -> np.ndarray:
            return np.abs(self._correlate(padded, kernel, start, stop, width))

        magnitude = self._run_bands(buffer.height, width, band)
        return self._to_edge_mask(magnitude, threshold, buffer.path)
