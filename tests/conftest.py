"""Shared fixtures: small synthetic RGBA frames."""

import numpy as np
import pytest

from edgemap.models.filter_settings import Algorithm, FilterSettings
from edgemap.models.pixel_buffer import PixelBuffer


def make_buffer(gray: np.ndarray, alpha: int = 255) -> PixelBuffer:
    """RGBA buffer whose R, G and B channels all equal *gray*."""
    gray = np.asarray(gray, dtype=np.uint8)
    pixels = np.empty(gray.shape + (4,), dtype=np.uint8)
    pixels[..., :3] = gray[..., np.newaxis]
    pixels[..., 3] = alpha
    return PixelBuffer(pixels=pixels)


@pytest.fixture
def black_3x3() -> PixelBuffer:
    return PixelBuffer.blank(3, 3)


@pytest.fixture
def step_edge() -> PixelBuffer:
    """8x8 frame, columns 0-3 black, columns 4-7 white."""
    gray = np.zeros((8, 8), dtype=np.uint8)
    gray[:, 4:] = 255
    return make_buffer(gray)


@pytest.fixture
def noisy_frame() -> PixelBuffer:
    """Horizontal ramp plus noise, with random colours and alpha."""
    rng = np.random.default_rng(7)
    pixels = rng.integers(0, 256, size=(12, 16, 4), dtype=np.uint8)
    ramp = np.linspace(0, 200, 16, dtype=np.float64)
    pixels[..., 0] = np.clip(pixels[..., 0] * 0.2 + ramp, 0, 255).astype(np.uint8)
    return PixelBuffer(pixels=pixels)


@pytest.fixture
def sobel_settings() -> FilterSettings:
    return FilterSettings(algorithm=Algorithm.SOBEL, kernel_size=3, threshold=0, sigma=1.4, quality=16)


@pytest.fixture
def laplacian_settings() -> FilterSettings:
    return FilterSettings(algorithm=Algorithm.LAPLACIAN, kernel_size=3, threshold=0, sigma=1.0, quality=16)
