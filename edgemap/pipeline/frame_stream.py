"""Single-flight processing of successive frames from one video stream."""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable

from ..models.filter_settings import FilterSettings
from ..models.pixel_buffer import PixelBuffer
from .edge_detector import process_frame

logger = logging.getLogger(__name__)

Processor = Callable[[PixelBuffer, FilterSettings], PixelBuffer]
ResultCallback = Callable[[PixelBuffer], None]


class _Skipped:
    """Returned instead of a buffer when a pass is already in flight."""

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "SKIPPED"


SKIPPED = _Skipped()


@dataclass
class StreamStats:
    processed: int = 0
    skipped: int = 0
    failed: int = 0


class StreamClosed(RuntimeError):
    """Frame handed to a stream after close()."""


class FrameStream:
    """At most one processing pass in flight per stream.

    A frame that arrives while a pass is running is dropped, never queued,
    so the next pass always starts from the newest frame the caller has.
    """

    def __init__(self, stream_id: str | None = None, processor: Processor = process_frame):
        self.stream_id = stream_id or uuid.uuid4().hex
        self._processor = processor
        self._busy = threading.Lock()
        self._state_lock = threading.Lock()
        self._stats = StreamStats()
        self._latest: PixelBuffer | None = None
        self._last_error: Exception | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_processing(self) -> bool:
        return self._busy.locked()

    @property
    def latest_output(self) -> PixelBuffer | None:
        with self._state_lock:
            return self._latest

    @property
    def last_error(self) -> Exception | None:
        with self._state_lock:
            return self._last_error

    @property
    def stats(self) -> StreamStats:
        with self._state_lock:
            return StreamStats(**vars(self._stats))

    def _record_skip(self) -> None:
        with self._state_lock:
            self._stats.skipped += 1
        logger.debug(f"[{self.stream_id}] pass in flight, frame dropped")

    def _run(self, buffer: PixelBuffer, settings: FilterSettings) -> PixelBuffer:
        try:
            output = self._processor(buffer, settings)
        except Exception as err:
            with self._state_lock:
                self._stats.failed += 1
                self._last_error = err
            raise
        with self._state_lock:
            self._stats.processed += 1
            self._latest = output
        return output

    def process_stream_frame(
        self, buffer: PixelBuffer, settings: FilterSettings
    ) -> PixelBuffer | _Skipped:
        """Process *buffer* now, or return SKIPPED if this stream is busy."""
        if self._closed:
            raise StreamClosed(f"stream {self.stream_id} is closed")
        if not self._busy.acquire(blocking=False):
            self._record_skip()
            return SKIPPED
        try:
            return self._run(buffer, settings)
        finally:
            self._busy.release()

    def submit(
        self,
        buffer: PixelBuffer,
        settings: FilterSettings,
        on_result: ResultCallback | None = None,
    ) -> bool:
        """Start a background pass on *buffer* if the stream is idle.

        Invalid settings or buffers raise here, before anything is scheduled.
        Returns False when the frame was dropped because a pass is running.
        """
        if self._closed:
            raise StreamClosed(f"stream {self.stream_id} is closed")
        if not self._busy.acquire(blocking=False):
            self._record_skip()
            return False
        try:
            settings.validate()
            buffer.validate()
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix=f"edgemap-{self.stream_id[:8]}"
                )
            self._executor.submit(self._run_in_background, buffer, settings, on_result)
        except BaseException:
            self._busy.release()
            raise
        return True

    def _run_in_background(
        self,
        buffer: PixelBuffer,
        settings: FilterSettings,
        on_result: ResultCallback | None,
    ) -> None:
        try:
            output = self._run(buffer, settings)
            if on_result is not None:
                on_result(output)
        except Exception as err:
            logger.error(f"[{self.stream_id}] frame processing failed: {err}")
        finally:
            self._busy.release()

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        """Block until no pass is in flight. Returns False on timeout."""
        acquired = self._busy.acquire(timeout=-1 if timeout is None else timeout)
        if acquired:
            self._busy.release()
        return acquired

    def close(self) -> None:
        self._closed = True
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        logger.info(f"[{self.stream_id}] closed: {self.stats}")

    def __enter__(self) -> "FrameStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
