from __future__ import annotations
from enum import Enum
from typing import NamedTuple
import os

import numpy as np
from dotenv import load_dotenv

load_dotenv()

VALID_KERNEL_SIZES = (3, 5, 7, 9, 11)

# Upper bound on the Gaussian sigma; the 1-D kernel grows as ~6 * sigma taps
MAX_SIGMA = float(os.getenv("MAX_SIGMA", "5.0"))


class KernelFamily(str, Enum):
    SOBEL = "sobel"
    LAPLACIAN = "laplacian"


class SobelKernels(NamedTuple):
    """X-gradient and Y-gradient kernels of one size."""
    kernel_x: np.ndarray
    kernel_y: np.ndarray
