# services/kernel_service.py
import logging
import threading
from typing import Dict, Tuple, Union

import numpy as np

from ..models.kernel import KernelFamily, SobelKernels
from ..repositories.kernel_repository import KernelRepository, kernel_key

logger = logging.getLogger(__name__)

# Distinct sigmas kept before the oldest Gaussian kernel is dropped
GAUSSIAN_CACHE_LIMIT = 64


def _freeze(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


class KernelService:
    """
    Caches kernels at the business-logic layer.
    Kernels are a pure function of (family, size) or sigma, so cached arrays
    are handed out read-only and shared between passes.
    """

    def __init__(self) -> None:
        self.repo = KernelRepository()
        self._kernel_cache: Dict[Tuple[str, int], Union[np.ndarray, SobelKernels]] = {}
        self._gaussian_cache: Dict[float, np.ndarray] = {}
        self._lock = threading.Lock()

    def kernel(self, family: KernelFamily, size: int) -> Union[np.ndarray, SobelKernels]:
        key = kernel_key(family, size)
        with self._lock:
            if key not in self._kernel_cache:
                built = self.repo.build_kernel(family, size)
                if isinstance(built, SobelKernels):
                    built = SobelKernels(_freeze(built.kernel_x), _freeze(built.kernel_y))
                else:
                    built = _freeze(built)
                self._kernel_cache[key] = built
                logger.debug(f"Built {key[0]} kernel of size {key[1]}")
            return self._kernel_cache[key]

    def sobel(self, size: int) -> SobelKernels:
        return self.kernel(KernelFamily.SOBEL, size)

    def laplacian(self, size: int) -> np.ndarray:
        return self.kernel(KernelFamily.LAPLACIAN, size)

    def gaussian(self, sigma: float) -> np.ndarray:
        with self._lock:
            if sigma not in self._gaussian_cache:
                weights = _freeze(self.repo.build_gaussian_kernel_1d(sigma))
                if len(self._gaussian_cache) >= GAUSSIAN_CACHE_LIMIT:
                    self._gaussian_cache.pop(next(iter(self._gaussian_cache)))
                self._gaussian_cache[sigma] = weights
                logger.debug(f"Built gaussian kernel for sigma={sigma} "
                             f"(length {self._gaussian_cache[sigma].size})")
            return self._gaussian_cache[sigma]

    def clear(self) -> None:
        with self._lock:
            self._kernel_cache.clear()
            self._gaussian_cache.clear()
