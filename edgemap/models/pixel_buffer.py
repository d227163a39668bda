from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Union
import numpy as np

from .errors import DimensionMismatch, EmptyBuffer, InvalidPixelValue


@dataclass
class PixelBuffer:
    """
    Simple data object: RGBA pixels (+ optional source path for bookkeeping).
    Whoever holds the buffer owns it; stages hand it on, they never share it.
    """
    pixels: np.ndarray  # Shape (H, W, 4), dtype uint8, RGBA order.
    path: Path | None = None  # Source of the frame, if it came from disk.

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def validate(self) -> None:
        """Raise if the pixel array is not a non-empty (H, W, 4) uint8 grid."""
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise DimensionMismatch(
                f"expected an (H, W, 4) RGBA array, got shape {self.pixels.shape}"
            )
        if self.pixels.dtype != np.uint8:
            raise DimensionMismatch(f"expected uint8 pixels, got {self.pixels.dtype}")
        if self.width == 0 or self.height == 0:
            raise EmptyBuffer(f"buffer is {self.width}x{self.height}")

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(pixels=self.pixels.copy(), path=self.path)

    def to_flat(self) -> np.ndarray:
        """Row-major RGBA bytes, stride width*4."""
        return np.ascontiguousarray(self.pixels).reshape(-1)

    @classmethod
    def from_flat(
        cls,
        data: Union[bytes, bytearray, Sequence[int], np.ndarray],
        width: int,
        height: int,
        path: Union[str, Path, None] = None,
    ) -> "PixelBuffer":
        """
        Wrap a flat RGBA byte sequence (e.g. a canvas ImageData payload).

        Raises:
            EmptyBuffer: width or height is zero.
            DimensionMismatch: len(data) != width * height * 4.
            InvalidPixelValue: a value is not an integer in [0, 255].
        """
        if width <= 0 or height <= 0:
            raise EmptyBuffer(f"buffer is {width}x{height}")

        if isinstance(data, (bytes, bytearray)):
            flat = np.frombuffer(data, dtype=np.uint8)
        else:
            arr = np.asarray(data)
            if arr.dtype != np.uint8 and arr.size:
                if arr.dtype.kind not in "iu" or arr.min() < 0 or arr.max() > 255:
                    raise InvalidPixelValue(
                        f"pixel values must be integers in [0, 255], got {arr.dtype} data"
                    )
            flat = arr.astype(np.uint8).reshape(-1)

        expected = width * height * 4
        if flat.size != expected:
            raise DimensionMismatch(
                f"buffer holds {flat.size} values, {width}x{height} RGBA needs {expected}"
            )
        return cls(pixels=flat.reshape(height, width, 4).copy(),
                   path=Path(path) if path is not None else None)

    @classmethod
    def blank(cls, width: int, height: int, value: int = 0, alpha: int = 255) -> "PixelBuffer":
        if width <= 0 or height <= 0:
            raise EmptyBuffer(f"buffer is {width}x{height}")
        pixels = np.full((height, width, 4), value, dtype=np.uint8)
        pixels[..., 3] = alpha
        return cls(pixels=pixels)
