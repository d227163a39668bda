from __future__ import annotations
from pathlib import Path
from typing import Iterable, Union, Iterator
import base64
import logging

import numpy as np

from ..models.errors import InvalidQuality
from ..models.pixel_buffer import PixelBuffer
from ..repositories.image_repository import ImageRepository

logger = logging.getLogger(__name__)


class ImageService:
    """Buffer preparation, grayscale reduction and I/O helpers.  No convolution here."""
    def __init__(self):
        self.image_repository = ImageRepository()

    def load(self, path: str | Path) -> PixelBuffer:
        """Load a single image from disk into an RGBA PixelBuffer."""
        return self.image_repository.load(path)

    def decode(self, data: bytes) -> PixelBuffer:
        return self.image_repository.decode(data)

    def stream_gallery(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[PixelBuffer]:
        """
        Yield images lazily instead of returning a gigantic list.
        """
        return self.image_repository.iter_dir(folder, recursive=recursive, exts=exts)

    def save(self, buffer: PixelBuffer, path: Union[str, Path, None] = None) -> Path:
        return self.image_repository.save(buffer, path)

    def to_data_url(self, buffer: PixelBuffer) -> str:
        """PNG-encode a buffer for a JSON response."""
        png = self.image_repository.encode_png(buffer)
        return f"data:image/png;base64,{base64.b64encode(png).decode('utf-8')}"

    def encode_png(self, buffer: PixelBuffer) -> bytes:
        return self.image_repository.encode_png(buffer)

    # ─── Processing-side helpers ─────────────────────────────────────
    @staticmethod
    def target_dimensions(width: int, height: int, quality: int) -> tuple[int, int]:
        """Width becomes *quality*, height follows the aspect ratio."""
        return quality, max(1, int(height / width * quality))

    def prepare_buffer(self, buffer: PixelBuffer, quality: int) -> PixelBuffer:
        """
        Resample a decoded frame to the processing width.
        Returns the buffer untouched when it already has the right size.
        """
        buffer.validate()
        if isinstance(quality, bool) or not isinstance(quality, int) or quality <= 0:
            raise InvalidQuality(f"quality must be a positive integer, got {quality!r}")

        width, height = self.target_dimensions(buffer.width, buffer.height, quality)
        if (width, height) == (buffer.width, buffer.height):
            return buffer
        logger.debug(f"Resampling {buffer.width}x{buffer.height} -> {width}x{height}")
        return self.image_repository.resize(buffer, width, height)

    @staticmethod
    def to_grayscale(buffer: PixelBuffer) -> PixelBuffer:
        """
        R = G = B = round((R + G + B) / 3), alpha untouched.
        Mutates *buffer* in place and returns it.
        """
        rgb = buffer.pixels[..., :3]
        total = rgb.sum(axis=2, dtype=np.uint16)
        gray = np.rint(total / 3.0).astype(np.uint8)
        rgb[...] = gray[..., np.newaxis]
        return buffer
