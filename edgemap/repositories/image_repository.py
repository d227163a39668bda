from __future__ import annotations
from pathlib import Path
from typing import Union, Iterable, Iterator
from io import BytesIO
import logging
import os

import numpy as np
import cv2
from PIL import Image as PILImage
from dotenv import load_dotenv

from ..models.pixel_buffer import PixelBuffer

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ImageRepository:
    """
    Handles file I/O and pixel conversion for PixelBuffer entities.
    Everything comes out as RGBA, whatever the file stored.
    """
    def __init__(self):
        exts = os.getenv("VALID_IMAGE_EXTENSIONS", ".png,.jpg,.jpeg,.bmp,.webp")
        self.VALID_EXTS = {ext.strip().lower() for ext in exts.split(",") if ext.strip()}

    @staticmethod
    def _to_rgba(arr: np.ndarray) -> np.ndarray:
        """Gray / BGR / BGRA as returned by OpenCV → RGBA uint8."""
        if arr.dtype != np.uint8:
            # 16-bit PNG/TIFF: keep the high byte
            arr = (arr >> 8).astype(np.uint8) if arr.dtype == np.uint16 else arr.astype(np.uint8)

        if arr.ndim == 2:
            return cv2.cvtColor(arr, cv2.COLOR_GRAY2RGBA)
        if arr.shape[2] == 3:
            return cv2.cvtColor(arr, cv2.COLOR_BGR2RGBA)
        if arr.shape[2] == 4:
            return cv2.cvtColor(arr, cv2.COLOR_BGRA2RGBA)
        raise ValueError(f"Unsupported channel count: {arr.shape[2]}")

    def load(self, path: Union[str, Path]) -> PixelBuffer:
        path = Path(path)
        arr = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if arr is None:
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        return PixelBuffer(pixels=self._to_rgba(arr), path=path)

    def decode(self, data: bytes) -> PixelBuffer:
        """Decode an in-memory encoded image (upload body)."""
        arr = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        if arr is None:
            raise ValueError("Uploaded data is not a decodable image")
        return PixelBuffer(pixels=self._to_rgba(arr))

    @staticmethod
    def from_bgr_frame(frame: np.ndarray) -> PixelBuffer:
        """Wrap a cv2.VideoCapture frame."""
        return PixelBuffer(pixels=cv2.cvtColor(frame, cv2.COLOR_BGR2RGBA))

    @staticmethod
    def to_bgr_frame(buffer: PixelBuffer) -> np.ndarray:
        return cv2.cvtColor(buffer.pixels, cv2.COLOR_RGBA2BGR)

    @staticmethod
    def save(buffer: PixelBuffer, path: Union[str, Path, None] = None) -> Path:
        path = Path(path or buffer.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        pil_img = PILImage.fromarray(np.ascontiguousarray(buffer.pixels))
        if path.suffix.lower() in {".jpg", ".jpeg", ".bmp"}:
            # no alpha channel in these formats
            pil_img = pil_img.convert("RGB")
        pil_img.save(path)
        return path

    @staticmethod
    def encode_png(buffer: PixelBuffer) -> bytes:
        out = BytesIO()
        PILImage.fromarray(np.ascontiguousarray(buffer.pixels)).save(out, format="PNG")
        return out.getvalue()

    @staticmethod
    def resize(buffer: PixelBuffer, width: int, height: int) -> PixelBuffer:
        interpolation = cv2.INTER_AREA if width < buffer.width else cv2.INTER_LINEAR
        pixels = cv2.resize(buffer.pixels, (width, height), interpolation=interpolation)
        return PixelBuffer(pixels=pixels, path=buffer.path)

    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[PixelBuffer]:
        """
        Yield PixelBuffer objects one at a time.  Nothing accumulates in memory.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if p.suffix.lower() not in allowed or not p.is_file():
                logger.debug(f"Skipping {p}")
                continue
            try:
                yield self.load(p)
            except FileNotFoundError as err:
                logger.warning(f"Skipping {p.name}: {err}")
