import numpy as np
import pytest

from edgemap.models.errors import InvalidKernelSize, InvalidThreshold, EmptyBuffer
from edgemap.models.kernel import VALID_KERNEL_SIZES
from edgemap.models.pixel_buffer import PixelBuffer
from edgemap.services.convolution_service import ConvolutionService
from edgemap.services.image_service import ImageService

from conftest import make_buffer


@pytest.fixture
def convolution() -> ConvolutionService:
    return ConvolutionService(workers=1)


def _apply(service, name, buffer, size, threshold):
    return getattr(service, f"apply_{name}")(buffer, size, threshold)


@pytest.mark.parametrize("name", ["sobel", "laplacian"])
@pytest.mark.parametrize("size", VALID_KERNEL_SIZES)
def test_black_image_stays_black(convolution, black_3x3, name, size):
    out = _apply(convolution, name, black_3x3, size, 0)
    assert out.pixels.shape == (3, 3, 4)
    assert (out.pixels[..., :3] == 0).all()
    assert (out.pixels[..., 3] == 255).all()


def test_sobel_step_edge_responds_on_step_columns_only(convolution, step_edge):
    out = convolution.apply_sobel(step_edge, 3, 0).pixels[..., 0]
    assert (out[:, 3:5] == 255).all()
    assert (out[:, :3] == 0).all()
    assert (out[:, 5:] == 0).all()


def test_laplacian_step_edge(convolution, step_edge):
    out = convolution.apply_laplacian(step_edge, 3, 0).pixels[..., 0]
    assert (out[:, 3:5] == 255).all()
    assert (out[:, :3] == 0).all()
    assert (out[:, 5:] == 0).all()


def test_output_is_gray_and_opaque(convolution, noisy_frame):
    gray = ImageService.to_grayscale(noisy_frame.copy())
    gray.pixels[..., 3] = 0
    out = convolution.apply_sobel(gray, 5, 10).pixels
    assert (out[..., 3] == 255).all()
    assert np.array_equal(out[..., 0], out[..., 1])
    assert np.array_equal(out[..., 0], out[..., 2])


def test_threshold_is_strictly_less_than():
    gray = np.zeros((5, 5), dtype=np.uint8)
    gray[2, 2] = 10
    buffer = make_buffer(gray)
    service = ConvolutionService()

    # centre responds |-4 * 10| = 40, the four direct neighbours respond 10
    kept = service.apply_laplacian(buffer, 3, 10).pixels[..., 0]
    assert kept[2, 2] == 40
    assert kept[1, 2] == kept[2, 1] == kept[3, 2] == kept[2, 3] == 10

    cut = service.apply_laplacian(buffer, 3, 11).pixels[..., 0]
    assert cut[2, 2] == 40
    assert cut[1, 2] == 0


def test_magnitude_is_clamped_to_255(convolution):
    gray = np.zeros((5, 5), dtype=np.uint8)
    gray[2, 2] = 255
    out = convolution.apply_laplacian(make_buffer(gray), 3, 0).pixels[..., 0]
    assert out[2, 2] == 255


def test_corner_dot_stays_in_corner(convolution):
    gray = np.zeros((7, 7), dtype=np.uint8)
    gray[0, 0] = 255
    out = convolution.apply_sobel(make_buffer(gray), 3, 0).pixels[..., 0]

    assert (out[:2, :2] > 0).all()
    assert (out[2:, :] == 0).all()
    assert (out[:, 2:] == 0).all()
    assert np.array_equal(out, out.T)


@pytest.mark.parametrize("size", [7, 9, 11])
def test_generated_sizes_detect_the_step(convolution, step_edge, size):
    sobel = convolution.apply_sobel(step_edge, size, 0).pixels[..., 0]
    laplacian = convolution.apply_laplacian(step_edge, size, 0).pixels[..., 0]
    assert (sobel[:, 3:5] == 255).all()
    assert (laplacian[:, 3:5] > 0).all()


@pytest.mark.parametrize("name", ["sobel", "laplacian"])
def test_row_bands_match_single_pass(noisy_frame, name):
    gray = ImageService.to_grayscale(noisy_frame.copy())
    single = _apply(ConvolutionService(workers=1), name, gray, 7, 5)
    banded = _apply(ConvolutionService(workers=4), name, gray, 7, 5)
    many = _apply(ConvolutionService(workers=64), name, gray, 7, 5)
    assert np.array_equal(single.pixels, banded.pixels)
    assert np.array_equal(single.pixels, many.pixels)


@pytest.mark.parametrize("size", [2, 4, 13])
def test_invalid_size_is_rejected(convolution, black_3x3, size):
    with pytest.raises(InvalidKernelSize):
        convolution.apply_sobel(black_3x3, size, 0)


@pytest.mark.parametrize("threshold", [-1, 256, 3.5, None])
def test_invalid_threshold_is_rejected(convolution, black_3x3, threshold):
    with pytest.raises(InvalidThreshold):
        convolution.apply_laplacian(black_3x3, 3, threshold)


def test_empty_buffer_is_rejected(convolution):
    with pytest.raises(EmptyBuffer):
        convolution.apply_sobel(PixelBuffer(pixels=np.zeros((0, 4, 4), dtype=np.uint8)), 3, 0)
