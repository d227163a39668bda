# repositories/kernel_repository.py
import math
from typing import Callable, Dict, Tuple, Union

import numpy as np

from ..models.errors import InvalidKernelSize, InvalidSigma
from ..models.kernel import MAX_SIGMA, KernelFamily, SobelKernels, VALID_KERNEL_SIZES

Kernel = np.ndarray

_SOBEL_3_X = np.array([
    [-1, 0, 1],
    [-2, 0, 2],
    [-1, 0, 1],
], dtype=np.float64)

_SOBEL_5_X = np.array([
    [-1, -2, 0, 2, 1],
    [-4, -8, 0, 8, 4],
    [-6, -12, 0, 12, 6],
    [-4, -8, 0, 8, 4],
    [-1, -2, 0, 2, 1],
], dtype=np.float64)

_LAPLACIAN_3 = np.array([
    [0, 1, 0],
    [1, -4, 1],
    [0, 1, 0],
], dtype=np.float64)

_LAPLACIAN_5 = np.array([
    [0, 0, 1, 0, 0],
    [0, 1, 2, 1, 0],
    [1, 2, -16, 2, 1],
    [0, 1, 2, 1, 0],
    [0, 0, 1, 0, 0],
], dtype=np.float64)


class KernelRepository:
    """
    Builds convolution kernels.

    • Fixed tables for Sobel / Laplacian 3x3 and 5x5.
    • Generated kernels for 7, 9 and 11.
    • 1-D Gaussian weights for the separable blur.
    No caching here, see KernelService.
    """

    # ---------- private helpers ----------
    @staticmethod
    def _check_size(size) -> int:
        if isinstance(size, bool) or not isinstance(size, (int, np.integer)) \
                or int(size) not in VALID_KERNEL_SIZES:
            raise InvalidKernelSize(
                f"kernel size must be one of {VALID_KERNEL_SIZES}, got {size!r}"
            )
        return int(size)

    @staticmethod
    def _generated_sobel(size: int) -> SobelKernels:
        """
        Radial extension of the 3x3/5x5 operators: weight_x = (dx / dist) * |dx|
        inside the disc dist <= size // 2, zero outside and on the dx == 0 column.
        """
        half = size // 2
        offsets = np.arange(-half, half + 1, dtype=np.float64)
        dx, dy = np.meshgrid(offsets, offsets)  # dx varies along columns
        dist = np.sqrt(dx * dx + dy * dy)
        inside = dist <= half
        safe = np.where(dist == 0, 1.0, dist)

        kernel_x = np.where(inside & (dx != 0), dx / safe * np.abs(dx), 0.0)
        kernel_y = np.where(inside & (dy != 0), dy / safe * np.abs(dy), 0.0)
        return SobelKernels(kernel_x, kernel_y)

    @staticmethod
    def _generated_laplacian(size: int) -> Kernel:
        kernel = np.ones((size, size), dtype=np.float64)
        center = size // 2
        kernel[center, center] = -(size * size - 1)
        return kernel

    # ---------- public API ----------
    def sobel(self, size: int) -> SobelKernels:
        size = self._check_size(size)
        if size == 3:
            return SobelKernels(_SOBEL_3_X.copy(), _SOBEL_3_X.T.copy())
        if size == 5:
            return SobelKernels(_SOBEL_5_X.copy(), _SOBEL_5_X.T.copy())
        return self._generated_sobel(size)

    def laplacian(self, size: int) -> Kernel:
        size = self._check_size(size)
        if size == 3:
            return _LAPLACIAN_3.copy()
        if size == 5:
            return _LAPLACIAN_5.copy()
        return self._generated_laplacian(size)

    def build_kernel(self, family: KernelFamily, size: int) -> Union[Kernel, SobelKernels]:
        """(family, size) -> kernel, or the (X, Y) pair for Sobel."""
        builders: Dict[KernelFamily, Callable[[int], Union[Kernel, SobelKernels]]] = {
            KernelFamily.SOBEL: self.sobel,
            KernelFamily.LAPLACIAN: self.laplacian,
        }
        return builders[KernelFamily(family)](size)

    @staticmethod
    def gaussian_radius(sigma: float) -> int:
        return int(math.ceil(6 * sigma / 2))

    def build_gaussian_kernel_1d(self, sigma: float) -> Kernel:
        """
        Returns float64 weights of length 2 * ceil(6 * sigma / 2) + 1,
        renormalized so they sum to 1.
        """
        if isinstance(sigma, bool) or not isinstance(sigma, (int, float, np.floating)) \
                or not math.isfinite(sigma) or not 0 < sigma <= MAX_SIGMA:
            raise InvalidSigma(f"sigma must be a number in (0, {MAX_SIGMA}], got {sigma!r}")

        radius = self.gaussian_radius(sigma)
        x = np.arange(-radius, radius + 1, dtype=np.float64)
        weights = np.exp(-(x * x) / (2 * sigma * sigma)) / (sigma * math.sqrt(2 * math.pi))
        return weights / weights.sum()


def kernel_key(family: KernelFamily, size: int) -> Tuple[str, int]:
    return KernelFamily(family).value, int(size)
