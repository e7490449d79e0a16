import numpy as np
import pytest

from pausrecon.exceptions import ConfigError
from pausrecon.visualizations import make_overlay, make_radial, make_rectangular, radial_depth_mm


@pytest.fixture
def rect_img():
    rng = np.random.default_rng(0)
    return rng.integers(0, 256, size=(1200, 512), dtype=np.uint8)


def test_make_radial_natural_size(rect_img):
    radial = make_radial(rect_img)
    assert radial.shape == (512, 512)
    assert radial.dtype == np.uint8


def test_make_radial_final_size(rect_img):
    assert make_radial(rect_img, final_size=300).shape == (300, 300)


def test_make_radial_corners_are_empty():
    img = np.full((400, 200), 255, dtype=np.uint8)
    radial = make_radial(img)
    assert radial[0, 0] == 0
    assert radial[100, 100] == 255


def test_make_rectangular(rect_img):
    rect = make_rectangular(rect_img)
    assert rect.shape == (1000, 640)
    assert rect.dtype == np.uint8

    rect = make_rectangular(np.ones((1200, 512), dtype=np.float32))
    assert rect.dtype == np.uint8
    assert rect.max() == 255


def test_overlay_without_pa_is_grey_us():
    us = np.arange(64 * 64, dtype=np.uint32).reshape(64, 64).astype(np.uint8)
    pa = np.zeros_like(us)
    overlay = make_overlay(us, pa)
    assert overlay.shape == (64, 64, 3)
    assert overlay.dtype == np.uint8
    for c in range(3):
        np.testing.assert_array_equal(overlay[..., c], us)


def test_overlay_threshold():
    us = np.full((8, 8), 100, dtype=np.uint8)
    pa = np.zeros_like(us)
    pa[0, 0] = 5
    pa[1, 1] = 255
    overlay = make_overlay(us, pa, pa_threshold=10)
    np.testing.assert_array_equal(overlay[0, 0], [100, 100, 100])
    # Full PA replaces US with the top of the hot colormap
    np.testing.assert_array_equal(overlay[1, 1], [255, 255, 255])


def test_overlay_shape_mismatch():
    with pytest.raises(ConfigError):
        make_overlay(np.zeros((10, 10), np.uint8), np.zeros((12, 12), np.uint8))


def test_radial_depth_mm():
    assert radial_depth_mm((50, 50), 100, 1e-4) == pytest.approx(0.0)
    assert radial_depth_mm((60, 50), 100, 1e-4) == pytest.approx(1.0)
    assert radial_depth_mm((50, 30), 100, 1e-4) == pytest.approx(2.0)
