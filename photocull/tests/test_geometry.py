import math
import threading

import numpy as np
import pytest

from photocull.errors import CancelledOperation, InvalidParameters
from photocull.imaging.geometry import aspect_crop_size, rotate_and_crop, rotated_canvas_size


def solid(w, h, color=(0, 0, 200)):
    img = np.zeros((h, w, 3), dtype=np.uint8)
    img[:] = color
    return img


def test_zero_angle_returns_identical_copy():
    rng = np.random.default_rng(0)
    img = rng.integers(0, 256, size=(30, 40, 3)).astype(np.uint8)

    for preserve in (True, False):
        res = rotate_and_crop(img, 0, preserve)
        assert res is not img
        assert np.array_equal(res, img)


def test_quarter_turn_without_crop_swaps_dimensions():
    rng = np.random.default_rng(1)
    # Keep content away from white so any exposed border would show up
    img = rng.integers(0, 240, size=(20, 40, 3)).astype(np.uint8)

    res = rotate_and_crop(img, 90, preserve_aspect_ratio=False)

    assert res.shape == (40, 20, 3)
    assert not (res == 255).all(axis=2).any()
    # Positive angles turn clockwise on screen
    expected = np.rot90(img, k=-1)
    assert np.abs(res.astype(int) - expected.astype(int)).max() <= 1


def test_half_turn_without_crop_keeps_dimensions():
    img = solid(30, 10, (10, 20, 30))
    img[0, 0] = (200, 100, 50)

    res = rotate_and_crop(img, 180, preserve_aspect_ratio=False)

    assert res.shape == img.shape
    assert tuple(res[-1, -1]) == (200, 100, 50)


@pytest.mark.parametrize("w,h,angle", [
    (100, 50, 30),
    (64, 64, 45),
    (120, 80, -15),
])
def test_canvas_size_matches_rotated_bounds(w, h, angle):
    rad = math.radians(angle)
    expected_w = round(w * abs(math.cos(rad)) + h * abs(math.sin(rad)))
    expected_h = round(w * abs(math.sin(rad)) + h * abs(math.cos(rad)))

    assert rotated_canvas_size(w, h, angle) == (expected_w, expected_h)

    res = rotate_and_crop(solid(w, h), angle, preserve_aspect_ratio=False)
    assert res.shape[:2] == (expected_h, expected_w)


def test_uncropped_canvas_fills_exposed_area_with_white():
    res = rotate_and_crop(solid(100, 50), 30, preserve_aspect_ratio=False)

    assert tuple(res[0, 0]) == (255, 255, 255)
    assert tuple(res[-1, -1]) == (255, 255, 255)
    assert tuple(res[res.shape[0] // 2, res.shape[1] // 2]) == (0, 0, 200)


def test_aspect_crop_size_closed_form():
    cw, ch = aspect_crop_size(100, 100, 45)
    assert cw == pytest.approx(100 / math.sqrt(2))
    assert ch == pytest.approx(100 / math.sqrt(2))

    # A quarter turn of a 1:2 portrait fits at half scale
    cw, ch = aspect_crop_size(100, 200, 90)
    assert cw == pytest.approx(50)
    assert ch == pytest.approx(100)

    assert aspect_crop_size(0, 100, 10) == (0.0, 0.0)


def test_aspect_crop_removes_white_wedges():
    color = (0, 0, 200)
    res = rotate_and_crop(solid(100, 100, color), 45, preserve_aspect_ratio=True)

    assert 69 <= res.shape[0] <= 71
    assert 69 <= res.shape[1] <= 71
    # The crop touches the rotated edges exactly; stay clear of interpolated corners
    inner = res[2:-2, 2:-2]
    assert (inner == color).all()


def test_aspect_crop_preserves_source_ratio():
    res = rotate_and_crop(solid(200, 100), 10, preserve_aspect_ratio=True)

    h, w = res.shape[:2]
    assert w / h == pytest.approx(2.0, rel=0.02)
    assert w < 200 and h < 100


def test_rotation_observes_cancellation():
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(CancelledOperation):
        rotate_and_crop(solid(10, 10), 12, cancel=cancel)


@pytest.mark.parametrize("angle", [float("nan"), float("inf"), float("-inf")])
def test_rotation_rejects_non_finite_angle(angle):
    with pytest.raises(InvalidParameters):
        rotate_and_crop(solid(10, 10), angle)
