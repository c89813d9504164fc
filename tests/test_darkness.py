"""Tests for luminance conversion and the darkness field."""

import numpy as np
import pytest

from stringart.darkness import (
    DarknessField,
    darkening_amount,
    load_grayscale,
    luminance,
)
from stringart.geometry import line_pixels


def test_luminance_weights():
    rgb = np.array([[[255, 0, 0], [0, 255, 0], [0, 0, 255]]], dtype=np.uint8)
    assert luminance(rgb)[0] == pytest.approx([76.245, 149.685, 29.07])


def test_luminance_drops_alpha():
    rgba = np.zeros((2, 2, 4), dtype=np.uint8)
    rgba[..., :3] = 200
    rgba[..., 3] = 0
    assert np.allclose(luminance(rgba), 200)


def test_field_from_bitmap_darker_is_higher():
    field = DarknessField.from_bitmap(np.array([[0, 128, 255]], dtype=np.uint8))
    assert field.values.tolist() == [[255, 127, 0]]


def test_field_from_bitmap_inverted():
    field = DarknessField.from_bitmap(np.array([[0, 128, 255]], dtype=np.uint8), invert=True)
    assert field.values.tolist() == [[0, 128, 255]]


def test_field_from_rgb_bitmap():
    rgb = np.full((3, 3, 3), 255, dtype=np.uint8)
    assert DarknessField.from_bitmap(rgb).total() == 0


def test_sum_along_zero_field_is_zero():
    field = DarknessField(np.zeros((50, 50)))
    assert field.sum_along(line_pixels(0, 0, 49, 30)) == 0
    assert field.sum_along(line_pixels(-10, 5, 80, 70)) == 0


def test_sum_along_skips_out_of_bounds_pixels():
    field = DarknessField(np.full((4, 4), 10))
    pixels = np.array([[0, 0], [3, 3], [4, 0], [-1, 2], [2, 9]])
    assert field.sum_along(pixels) == 20


def test_value_at_out_of_bounds_is_zero():
    field = DarknessField(np.full((4, 4), 10))
    assert field.value_at(1, 1) == 10
    assert field.value_at(4, 1) == 0
    assert field.value_at(-1, 0) == 0


def test_subtract_along_clamps_at_zero():
    field = DarknessField(np.full((10, 10), 100))
    pixels = line_pixels(0, 0, 9, 9)
    for _ in range(5):
        field.subtract_along(pixels, 76)
    assert field.values.min() == 0
    assert np.all(np.diag(field.values) == 0)
    # untouched pixels keep their value
    assert field.value_at(0, 9) == 100


def test_subtract_along_repeated_pixel_never_negative():
    field = DarknessField(np.full((3, 3), 50))
    field.subtract_along(np.array([[1, 1], [1, 1], [1, 1]]), 20)
    assert field.value_at(1, 1) == 0


def test_subtract_along_ignores_out_of_bounds():
    field = DarknessField(np.full((3, 3), 50))
    field.subtract_along(np.array([[5, 5], [-1, 0], [0, 0]]), 20)
    assert field.value_at(0, 0) == 30
    assert field.total() == 50 * 9 - 20


@pytest.mark.parametrize("opacity,amount", [(0.3, 76), (0.25, 63), (1.0, 255), (0.001, 0)])
def test_darkening_amount(opacity, amount):
    assert darkening_amount(opacity) == amount


def test_to_image_inverts_back():
    field = DarknessField.from_bitmap(np.array([[0, 100, 255]], dtype=np.uint8))
    assert field.to_image().tolist() == [[0, 100, 255]]


def test_load_grayscale_crops_and_resizes():
    img = np.zeros((60, 80, 3), dtype=np.uint8)
    img[:, :10] = 255  # cropped away
    gray = load_grayscale(img, 30)
    assert gray.shape == (30, 30)
    assert gray.dtype == np.uint8
    assert gray.max() == 0


def test_load_grayscale_invert():
    img = np.full((20, 20, 3), 255, dtype=np.uint8)
    assert load_grayscale(img, 20).min() == 255
    assert load_grayscale(img, 20, invert=True).max() == 0


def test_load_grayscale_from_file(tmp_path):
    import imageio.v2 as imageio

    path = tmp_path / "square.png"
    imageio.imwrite(path, np.full((40, 40, 3), 128, dtype=np.uint8))
    gray = load_grayscale(str(path), 20)
    assert gray.shape == (20, 20)
    assert abs(int(gray[10, 10]) - 128) <= 1


def test_load_grayscale_scales_16_bit_images():
    img = np.full((20, 20), 128 * 257, dtype=np.uint16)
    gray = load_grayscale(img, 20)
    assert gray.dtype == np.uint8
    assert abs(int(gray[10, 10]) - 128) <= 1


def test_load_grayscale_scales_unit_float_images():
    img = np.full((20, 20, 3), 0.5)
    gray = load_grayscale(img, 20)
    assert abs(int(gray[10, 10]) - 128) <= 1
