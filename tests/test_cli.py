import cv2
import numpy as np
import pytest

from edgemap.cli import batch_process, stream_video
from edgemap.models.filter_settings import FilterSettings
from edgemap.models.pixel_buffer import PixelBuffer
from edgemap.repositories.image_repository import ImageRepository

from conftest import make_buffer


@pytest.fixture
def image_dir(tmp_path):
    folder = tmp_path / "images"
    gray = np.zeros((20, 40), dtype=np.uint8)
    gray[:, 20:] = 255
    ImageRepository.save(make_buffer(gray), folder / "step.png")
    ImageRepository.save(PixelBuffer.blank(40, 20), folder / "black.png")
    (folder / "readme.txt").write_text("not an image")
    return folder


def test_batch_writes_one_edge_map_per_image(image_dir, tmp_path):
    out_dir = tmp_path / "edges"
    code = batch_process.main([str(image_dir), "-o", str(out_dir), "--quality", "20", "--threshold", "0"])

    assert code == 0
    written = sorted(p.name for p in out_dir.iterdir())
    assert written == ["black_edges.png", "step_edges.png"]

    step = ImageRepository().load(out_dir / "step_edges.png")
    assert (step.width, step.height) == (20, 10)
    assert (step.pixels[..., 3] == 255).all()
    assert step.pixels[..., 0].max() == 255


def test_batch_single_file(image_dir, tmp_path):
    out_dir = tmp_path / "single"
    code = batch_process.main([str(image_dir / "step.png"), "-o", str(out_dir),
                               "--algorithm", "laplacian", "--kernel-size", "5", "--quality", "40"])
    assert code == 0
    assert (out_dir / "step_edges.png").exists()


def test_batch_rejects_invalid_settings(image_dir, tmp_path):
    assert batch_process.main([str(image_dir), "-o", str(tmp_path / "x"), "--threshold", "300"]) == 2
    assert batch_process.main([str(image_dir), "-o", str(tmp_path / "x"), "--sigma", "0"]) == 2


def test_batch_missing_input(tmp_path):
    assert batch_process.main([str(tmp_path / "missing"), "-o", str(tmp_path / "x")]) == 1


def _write_clip(path, frames=6, size=(32, 24)):
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, size)
    if not writer.isOpened():
        pytest.skip("no MJPG encoder available")
    for i in range(frames):
        frame = np.zeros((size[1], size[0], 3), dtype=np.uint8)
        frame[:, 8 + i:] = 255
        writer.write(frame)
    writer.release()
    cap = cv2.VideoCapture(str(path))
    readable = cap.read()[0]
    cap.release()
    if not readable:
        pytest.skip("no MJPG decoder available")


def test_stream_video_processes_frames(tmp_path):
    clip = tmp_path / "clip.avi"
    _write_clip(clip)
    settings = FilterSettings(kernel_size=3, threshold=0, quality=16)

    summary = stream_video.run_stream(str(clip), tmp_path / "edges.avi", settings,
                                      max_frames=4, fourcc="MJPG")

    assert summary["captured"] == 4
    assert summary["processed"] >= 1
    assert summary["processed"] + summary["skipped"] == 4
    assert summary["failed"] == 0


def test_stream_video_missing_source(tmp_path):
    assert stream_video.main([str(tmp_path / "missing.mp4"), "-o", str(tmp_path / "o.mp4")]) == 1
