import dataclasses

import numpy as np
import pytest

from edgemap.models.errors import (
    DimensionMismatch,
    EmptyBuffer,
    InvalidKernelSize,
    InvalidSigma,
)
from edgemap.models.filter_settings import Algorithm, FilterSettings
from edgemap.models.kernel import MAX_SIGMA, VALID_KERNEL_SIZES
from edgemap.models.pixel_buffer import PixelBuffer
from edgemap.pipeline import edge_detector
from edgemap.pipeline.edge_detector import process_frame, process_image
from edgemap.services.blur_service import BlurService
from edgemap.services.convolution_service import ConvolutionService
from edgemap.services.image_service import ImageService


@pytest.mark.parametrize("algorithm", list(Algorithm))
@pytest.mark.parametrize("size", VALID_KERNEL_SIZES)
def test_output_keeps_dimensions_and_is_opaque(noisy_frame, algorithm, size):
    settings = FilterSettings(algorithm=algorithm, kernel_size=size, threshold=20, sigma=1.2, quality=16)
    out = process_image(noisy_frame, settings)
    assert (out.width, out.height) == (noisy_frame.width, noisy_frame.height)
    assert (out.pixels[..., 3] == 255).all()


@pytest.mark.parametrize("algorithm", list(Algorithm))
@pytest.mark.parametrize("size", VALID_KERNEL_SIZES)
@pytest.mark.parametrize("threshold", [0, 128, 255])
def test_black_image_gives_black_output(black_3x3, algorithm, size, threshold):
    settings = FilterSettings(algorithm=algorithm, kernel_size=size, threshold=threshold, quality=3)
    out = process_image(black_3x3, settings)
    assert out.pixels.reshape(-1, 4).tolist() == [[0, 0, 0, 255]] * 9


def test_source_buffer_is_not_modified(noisy_frame, laplacian_settings):
    before = noisy_frame.pixels.copy()
    process_frame(noisy_frame, laplacian_settings)
    assert np.array_equal(noisy_frame.pixels, before)


def test_sobel_skips_blur(noisy_frame, sobel_settings):
    expected = ConvolutionService().apply_sobel(
        ImageService.to_grayscale(noisy_frame.copy()), 3, 0
    )
    assert np.array_equal(process_frame(noisy_frame, sobel_settings).pixels, expected.pixels)


def test_laplacian_blurs_first(noisy_frame, laplacian_settings):
    gray = ImageService.to_grayscale(noisy_frame.copy())
    blurred = BlurService().blur(gray, laplacian_settings.sigma)
    expected = ConvolutionService().apply_laplacian(blurred, 3, 0)
    assert np.array_equal(process_frame(noisy_frame, laplacian_settings).pixels, expected.pixels)


@pytest.mark.parametrize("algorithm", list(Algorithm))
def test_threshold_monotonicity(noisy_frame, algorithm):
    counts = []
    for threshold in [0, 5, 20, 60, 120, 200, 255]:
        settings = FilterSettings(algorithm=algorithm, kernel_size=5, threshold=threshold, quality=16)
        counts.append(int(np.count_nonzero(process_frame(noisy_frame, settings).pixels[..., 0])))
    assert counts == sorted(counts, reverse=True)
    assert counts[0] > 0


def test_changed_settings_rerun_from_source(noisy_frame, sobel_settings):
    first = process_frame(noisy_frame, sobel_settings)
    changed = sobel_settings.replace(algorithm=Algorithm.LAPLACIAN, kernel_size=5, threshold=3)
    second = process_frame(noisy_frame, changed)
    fresh = process_frame(noisy_frame.copy(), changed)
    again = process_frame(noisy_frame, sobel_settings)

    assert np.array_equal(second.pixels, fresh.pixels)
    assert np.array_equal(first.pixels, again.pixels)


def test_invalid_settings_rejected_before_processing(noisy_frame, sobel_settings):
    class ExplodingImageService(ImageService):
        @staticmethod
        def to_grayscale(buffer):
            raise AssertionError("pixel work started")

    with pytest.raises(InvalidKernelSize):
        process_frame(noisy_frame, FilterSettings(kernel_size=4), image_service=ExplodingImageService())
    # sigma is validated even when Sobel never uses it
    with pytest.raises(InvalidSigma):
        process_frame(noisy_frame, FilterSettings(sigma=0), image_service=ExplodingImageService())


@pytest.mark.parametrize("sigma", [MAX_SIGMA + 0.01, 1e4, 1e12])
def test_oversized_sigma_rejected_before_kernel_is_built(noisy_frame, laplacian_settings, sigma):
    class ExplodingBlurService(BlurService):
        def blur(self, buffer, sigma):
            raise AssertionError("blur started")

    settings = dataclasses.replace(laplacian_settings, sigma=sigma)
    with pytest.raises(InvalidSigma):
        process_frame(noisy_frame, settings, blur_service=ExplodingBlurService())
    with pytest.raises(InvalidSigma):
        process_frame(PixelBuffer.blank(4, 4), settings)


def test_invalid_buffers_rejected(sobel_settings):
    with pytest.raises(EmptyBuffer):
        process_frame(PixelBuffer(pixels=np.zeros((0, 3, 4), dtype=np.uint8)), sobel_settings)
    with pytest.raises(DimensionMismatch):
        process_frame(PixelBuffer(pixels=np.zeros((3, 3, 3), dtype=np.uint8)), sobel_settings)


def test_flat_buffer_round_trip_through_pipeline(step_edge, sobel_settings):
    flat = bytes(step_edge.to_flat())
    out = process_image(PixelBuffer.from_flat(flat, 8, 8), sobel_settings)
    assert out.to_flat().size == 8 * 8 * 4
    assert (out.pixels[:, 3:5, 0] == 255).all()


def test_default_settings_read_environment(monkeypatch):
    monkeypatch.setenv("DEFAULT_ALGORITHM", "laplacian")
    monkeypatch.setenv("DEFAULT_KERNEL_SIZE", "7")
    monkeypatch.setenv("DEFAULT_THRESHOLD", "12")
    monkeypatch.delenv("DEFAULT_SIGMA", raising=False)
    monkeypatch.delenv("DEFAULT_QUALITY", raising=False)

    settings = edge_detector.default_settings()

    assert settings.algorithm is Algorithm.LAPLACIAN
    assert settings.kernel_size == 7
    assert settings.threshold == 12
    assert settings.sigma == 1.4
    assert settings.quality == 640


def test_process_image_uses_default_settings(monkeypatch, step_edge):
    for key in ["DEFAULT_ALGORITHM", "DEFAULT_KERNEL_SIZE", "DEFAULT_THRESHOLD",
                "DEFAULT_SIGMA", "DEFAULT_QUALITY"]:
        monkeypatch.delenv(key, raising=False)
    out = process_image(step_edge)
    assert (out.pixels[:, 3:5, 0] == 255).all()
