from .errors import (
    DimensionMismatch,
    EdgeDetectionError,
    EmptyBuffer,
    InvalidAlgorithm,
    InvalidKernelSize,
    InvalidPixelValue,
    InvalidQuality,
    InvalidSigma,
    InvalidThreshold,
)
from .filter_settings import Algorithm, FilterSettings, MAX_PROCESSING_WIDTH
from .kernel import MAX_SIGMA, KernelFamily, SobelKernels, VALID_KERNEL_SIZES
from .pixel_buffer import PixelBuffer
