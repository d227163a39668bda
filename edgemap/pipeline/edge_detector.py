"""
Edge detection pipeline.
grayscale → (Gaussian blur, Laplacian only) → Sobel / Laplacian response.
Every call re-runs all stages from the caller's source buffer.
"""
from __future__ import annotations
import logging
import os
import time

from dotenv import load_dotenv

from ..models.filter_settings import Algorithm, FilterSettings, MAX_PROCESSING_WIDTH
from ..models.pixel_buffer import PixelBuffer
from ..services.blur_service import BlurService
from ..services.convolution_service import ConvolutionService
from ..services.image_service import ImageService
from ..services.kernel_service import KernelService

# env‑vars
load_dotenv()
MAX_WIDTH = int(os.getenv("MAX_PROCESSING_WIDTH", str(MAX_PROCESSING_WIDTH)))

logger = logging.getLogger(__name__)

# one kernel cache shared by the default blur and convolution services
_kernel_service = KernelService()


def default_settings() -> FilterSettings:
    """Settings from DEFAULT_* environment variables, falling back to the built-in defaults."""
    return FilterSettings.from_mapping(
        {
            "algorithm": os.getenv("DEFAULT_ALGORITHM"),
            "kernel_size": os.getenv("DEFAULT_KERNEL_SIZE"),
            "threshold": os.getenv("DEFAULT_THRESHOLD"),
            "sigma": os.getenv("DEFAULT_SIGMA"),
            "quality": os.getenv("DEFAULT_QUALITY"),
        },
        defaults=FilterSettings(max_width=MAX_WIDTH),
    )


def process_frame(
    source: PixelBuffer,
    settings: FilterSettings,
    *,
    image_service: ImageService = ImageService(),
    blur_service: BlurService = BlurService(_kernel_service),
    convolution_service: ConvolutionService = ConvolutionService(_kernel_service),
) -> PixelBuffer:
    """
    Run the full pipeline on one frame.

    Settings and buffer are validated before any pixel work, so an invalid
    call never produces partial output. The caller's *source* is not
    modified: the pipeline works on its own copy.

    Returns:
        PixelBuffer: edge mask of the same size, alpha 255 everywhere.
    """
    settings.validate()
    source.validate()

    started = time.perf_counter()
    working = image_service.to_grayscale(source.copy())

    if settings.algorithm is Algorithm.LAPLACIAN:
        working = blur_service.blur(working, settings.sigma)
        output = convolution_service.apply_laplacian(working, settings.kernel_size, settings.threshold)
    else:
        output = convolution_service.apply_sobel(working, settings.kernel_size, settings.threshold)

    logger.debug(
        f"{settings.algorithm.value} k={settings.kernel_size} t={settings.threshold} "
        f"on {source.width}x{source.height} took {(time.perf_counter() - started) * 1000:.1f} ms"
    )
    return output


def process_image(
    source: PixelBuffer,
    settings: FilterSettings | None = None,
    **services,
) -> PixelBuffer:
    """
    Synchronous one-shot processing of a static image.
    *settings* defaults to default_settings().
    """
    settings = settings or default_settings()
    output = process_frame(source, settings, **services)
    logger.info(
        f"Processed {source.path.name if source.path else 'image'} "
        f"({source.width}x{source.height}) with {settings.algorithm.value}, "
        f"kernel {settings.kernel_size}, threshold {settings.threshold}"
    )
    return output
