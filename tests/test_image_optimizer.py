"""Tests for re-encoding images before they are sent to the model."""

import io

import pytest
from PIL import Image, UnidentifiedImageError

from image_optimizer import needs_optimization, prepare_image


def _decode(data):
    return Image.open(io.BytesIO(data))


def test_oversized_image_is_downscaled(tmp_path, make_image):
    path = make_image(tmp_path / "wide.png", size=(2400, 1600))

    prepared = prepare_image(str(path))

    decoded = _decode(prepared.data)
    assert prepared.resized is True
    assert decoded.format == "JPEG"
    assert decoded.size == (1080, 720)
    assert prepared.original_bytes == path.stat().st_size


def test_small_image_keeps_its_size(tmp_path, make_image):
    path = make_image(tmp_path / "small.png", size=(640, 480))

    prepared = prepare_image(str(path))

    assert prepared.resized is False
    assert _decode(prepared.data).size == (640, 480)
    assert _decode(prepared.data).format == "JPEG"


def test_transparency_flattened_to_rgb(tmp_path, make_image):
    path = make_image(tmp_path / "logo.png", mode="RGBA")

    assert _decode(prepare_image(str(path)).data).mode == "RGB"


def test_not_an_image(tmp_path):
    path = tmp_path / "fake.jpg"
    path.write_bytes(b"not really a jpeg")

    with pytest.raises(UnidentifiedImageError):
        prepare_image(str(path))


@pytest.mark.parametrize("file_size, width, height, expected", [
    (100_000, 1920, 1080, False),
    (100_000, 1921, 1080, True),
    (100_000, 1000, 1081, True),
    (3 * 1024 * 1024, 800, 600, True),
])
def test_needs_optimization(file_size, width, height, expected):
    assert needs_optimization(file_size, width, height) is expected
