"""
Live edge maps for a video file or camera.

Every captured frame is offered to a FrameStream; frames arriving while a
pass is running are dropped. Each captured frame writes the newest edge map
available to the output video, so the output keeps the capture frame rate.
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import cv2
from dotenv import load_dotenv

from ..models.errors import EdgeDetectionError
from ..pipeline.frame_stream import FrameStream
from ..repositories.image_repository import ImageRepository
from ..services.image_service import ImageService
from .batch_process import add_settings_arguments, configure_logging, settings_from_args

load_dotenv()

logger = logging.getLogger(__name__)


def _open_capture(source: str) -> cv2.VideoCapture:
    # a bare integer selects a camera device
    cap = cv2.VideoCapture(int(source)) if source.isdigit() else cv2.VideoCapture(source)
    if not cap.isOpened():
        raise FileNotFoundError(f"Cannot open video source: {source}")
    return cap


def run_stream(
    source: str,
    output: Path,
    settings,
    *,
    max_frames: Optional[int] = None,
    fourcc: str = "mp4v",
) -> dict:
    image_service = ImageService()
    cap = _open_capture(source)
    fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
    writer = None
    captured = 0

    try:
        with FrameStream(stream_id=Path(source).name or source) as stream:
            while max_frames is None or captured < max_frames:
                ok, frame = cap.read()
                if not ok:
                    break
                captured += 1

                buffer = image_service.prepare_buffer(
                    ImageRepository.from_bgr_frame(frame), settings.quality
                )
                stream.submit(buffer, settings)

                if writer is None:
                    output.parent.mkdir(parents=True, exist_ok=True)
                    writer = cv2.VideoWriter(
                        str(output), cv2.VideoWriter_fourcc(*fourcc), fps,
                        (buffer.width, buffer.height),
                    )

                latest = stream.latest_output
                if latest is not None:
                    writer.write(ImageRepository.to_bgr_frame(latest))

            stream.wait_until_idle()
            stats = stream.stats
    finally:
        cap.release()
        if writer is not None:
            writer.release()

    summary = {"captured": captured, "processed": stats.processed,
               "skipped": stats.skipped, "failed": stats.failed}
    logger.info(f"Stream finished: {summary}")
    return summary


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Edge-detect a video file or camera feed.")
    parser.add_argument("source", help="video file path or camera index")
    parser.add_argument("-o", "--output", type=Path, default=Path("data/edge_stream.mp4"))
    parser.add_argument("--max-frames", type=int)
    parser.add_argument("-v", "--verbose", action="store_true")
    add_settings_arguments(parser)
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    try:
        settings = settings_from_args(args)
    except EdgeDetectionError as err:
        logger.error(f"Invalid settings: {err}")
        return 2

    try:
        summary = run_stream(args.source, args.output, settings, max_frames=args.max_frames)
    except FileNotFoundError as err:
        logger.error(str(err))
        return 1
    return 0 if summary["processed"] else 1


if __name__ == "__main__":
    sys.exit(main())
