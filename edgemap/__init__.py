"""Sobel / Laplacian-of-Gaussian edge maps for still images and video frames."""

from .models import (
    Algorithm,
    DimensionMismatch,
    EdgeDetectionError,
    EmptyBuffer,
    FilterSettings,
    InvalidAlgorithm,
    InvalidKernelSize,
    InvalidQuality,
    InvalidSigma,
    InvalidThreshold,
    PixelBuffer,
)
from .pipeline import SKIPPED, FrameStream, default_settings, process_frame, process_image

__version__ = "1.0.0"
