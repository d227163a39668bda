class EdgeDetectionError(ValueError):
    """Base class for every rejected edge-detection call."""


class InvalidKernelSize(EdgeDetectionError):
    """Kernel size is not one of 3, 5, 7, 9, 11."""


class InvalidSigma(EdgeDetectionError):
    """Gaussian sigma is not a number in (0, MAX_SIGMA]."""


class InvalidThreshold(EdgeDetectionError):
    """Threshold is not an integer in [0, 255]."""


class InvalidQuality(EdgeDetectionError):
    """Processing width is not a positive integer within the allowed maximum."""


class InvalidAlgorithm(EdgeDetectionError):
    """Algorithm name is neither sobel nor laplacian."""


class DimensionMismatch(EdgeDetectionError):
    """Buffer length or shape does not match width x height x 4."""


class EmptyBuffer(EdgeDetectionError):
    """Buffer has zero width or zero height."""


class InvalidPixelValue(EdgeDetectionError):
    """Flat pixel data holds a value that is not an integer in [0, 255]."""
