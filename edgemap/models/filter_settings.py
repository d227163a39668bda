from __future__ import annotations
from dataclasses import dataclass, replace as dc_replace
from enum import Enum
from typing import Any, Mapping
import math

from .errors import (
    InvalidAlgorithm,
    InvalidKernelSize,
    InvalidQuality,
    InvalidSigma,
    InvalidThreshold,
)
from .kernel import MAX_SIGMA, VALID_KERNEL_SIZES

MAX_PROCESSING_WIDTH = 1280


class Algorithm(str, Enum):
    SOBEL = "sobel"
    LAPLACIAN = "laplacian"

    @classmethod
    def parse(cls, value: Any) -> "Algorithm":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidAlgorithm(
                f"unknown algorithm {value!r}, expected one of "
                f"{', '.join(a.value for a in cls)}"
            ) from None


def _is_int(value: Any) -> bool:
    # bool is an int subclass, but True is not a kernel size
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class FilterSettings:
    """
    Value-object holding one processing call's parameters.
    A changed setting means a new FilterSettings and a full pipeline re-run.
    """
    algorithm: Algorithm = Algorithm.SOBEL
    kernel_size: int = 3           # 3, 5, 7, 9 or 11
    threshold: int = 30            # [0, 255]
    sigma: float = 1.4             # (0, MAX_SIGMA], only used by the Laplacian path
    quality: int = 640             # target processing width in pixels
    max_width: int = MAX_PROCESSING_WIDTH

    def validate(self) -> "FilterSettings":
        """Raise the matching EdgeDetectionError for the first invalid field."""
        if not isinstance(self.algorithm, Algorithm):
            raise InvalidAlgorithm(f"unknown algorithm {self.algorithm!r}")

        if not _is_int(self.kernel_size) or self.kernel_size not in VALID_KERNEL_SIZES:
            raise InvalidKernelSize(
                f"kernel size must be one of {VALID_KERNEL_SIZES}, got {self.kernel_size!r}"
            )

        if not _is_int(self.threshold) or not 0 <= self.threshold <= 255:
            raise InvalidThreshold(f"threshold must be an integer in [0, 255], got {self.threshold!r}")

        if (
            isinstance(self.sigma, bool)
            or not isinstance(self.sigma, (int, float))
            or not math.isfinite(self.sigma)
            or not 0 < self.sigma <= MAX_SIGMA
        ):
            raise InvalidSigma(f"sigma must be a number in (0, {MAX_SIGMA}], got {self.sigma!r}")

        if not _is_int(self.quality) or not 1 <= self.quality <= self.max_width:
            raise InvalidQuality(
                f"quality must be an integer in [1, {self.max_width}], got {self.quality!r}"
            )
        return self

    def replace(self, **changes) -> "FilterSettings":
        return dc_replace(self, **changes).validate()

    def as_dict(self) -> dict:
        return {
            "algorithm": self.algorithm.value,
            "kernel_size": self.kernel_size,
            "threshold": self.threshold,
            "sigma": self.sigma,
            "quality": self.quality,
        }

    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, Any],
        defaults: "FilterSettings | None" = None,
    ) -> "FilterSettings":
        """
        Build settings from loosely typed input (form fields, CLI strings).
        Missing keys fall back to *defaults*.
        """
        base = defaults or cls()

        def pick(key, convert, error):
            raw = values.get(key)
            if raw is None or raw == "":
                return getattr(base, key)
            try:
                return convert(raw)
            except (TypeError, ValueError):
                raise error(f"{key} has an invalid value: {raw!r}") from None

        return cls(
            algorithm=Algorithm.parse(values.get("algorithm") or base.algorithm),
            kernel_size=pick("kernel_size", int, InvalidKernelSize),
            threshold=pick("threshold", int, InvalidThreshold),
            sigma=pick("sigma", float, InvalidSigma),
            quality=pick("quality", int, InvalidQuality),
            max_width=base.max_width,
        ).validate()
