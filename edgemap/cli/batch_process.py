import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from dotenv import load_dotenv
from tqdm import tqdm

from ..models.errors import EdgeDetectionError
from ..models.filter_settings import FilterSettings
from ..models.pixel_buffer import PixelBuffer
from ..pipeline.edge_detector import default_settings, process_image
from ..services.image_service import ImageService

# Load environment variables first
load_dotenv()
OUTPUT_DIR = os.getenv("OUTPUT_DIR_PATH", "data/edge_maps")
OUTPUT_EXT = os.getenv("OUTPUT_IMG_EXT", ".png")

logger = logging.getLogger(__name__)


def add_settings_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--algorithm", choices=["sobel", "laplacian"])
    parser.add_argument("--kernel-size", type=int, choices=[3, 5, 7, 9, 11])
    parser.add_argument("--threshold", type=int, help="0-255, responses below it are zeroed")
    parser.add_argument("--sigma", type=float, help="Gaussian sigma for the Laplacian path")
    parser.add_argument("--quality", type=int, help="processing width in pixels")


def settings_from_args(args: argparse.Namespace) -> FilterSettings:
    return FilterSettings.from_mapping(
        {
            "algorithm": args.algorithm,
            "kernel_size": args.kernel_size,
            "threshold": args.threshold,
            "sigma": args.sigma,
            "quality": args.quality,
        },
        defaults=default_settings(),
    )


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )


def _collect(image_service: ImageService, source: Path, recursive: bool) -> Iterable[PixelBuffer]:
    if source.is_dir():
        return image_service.stream_gallery(source, recursive=recursive)
    return [image_service.load(source)]


def run_batch(
    source: Path,
    output_dir: Path,
    settings: FilterSettings,
    *,
    recursive: bool = False,
    ext: str = OUTPUT_EXT,
    image_service: Optional[ImageService] = None,
) -> List[Path]:
    """
    For every image under *source*:
        • resample to the processing width
        • compute the edge map
        • save it as <stem>_edges<ext> in *output_dir*
    Returns the written paths. Unreadable or failing images are logged and skipped.
    """
    image_service = image_service or ImageService()
    output_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []

    for buffer in tqdm(_collect(image_service, source, recursive), desc="edges", ncols=70, unit="img"):
        stem = buffer.path.stem if buffer.path else f"image_{len(written):04d}"
        try:
            prepared = image_service.prepare_buffer(buffer, settings.quality)
            edges = process_image(prepared, settings)
        except EdgeDetectionError as err:
            logger.error(f"Skipping {stem}: {err}")
            continue
        written.append(image_service.save(edges, output_dir / f"{stem}_edges{ext}"))

    return written


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Write Sobel / Laplacian edge maps for images.")
    parser.add_argument("input", type=Path, help="image file or directory")
    parser.add_argument("-o", "--output-dir", type=Path, default=Path(OUTPUT_DIR))
    parser.add_argument("--recursive", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    add_settings_arguments(parser)
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    try:
        settings = settings_from_args(args)
    except EdgeDetectionError as err:
        logger.error(f"Invalid settings: {err}")
        return 2

    if not args.input.exists():
        logger.error(f"Input not found: {args.input}")
        return 1

    logger.info(f"Settings: {settings.as_dict()}")
    try:
        written = run_batch(args.input, args.output_dir, settings, recursive=args.recursive)
    except FileNotFoundError as err:
        logger.error(str(err))
        return 1
    logger.info(f"Wrote {len(written)} edge maps to {args.output_dir}")
    return 0 if written else 1


if __name__ == "__main__":
    sys.exit(main())
