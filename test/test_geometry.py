import numpy as np
import pytest

from shellquant.geometry import Region

from conftest import circle_region, rect_region


def _pixel_set(region):
    xs, ys = region.pixel_coordinates()
    return set(zip(xs.tolist(), ys.tolist()))


def test_rectangle_area_and_bounds(rectangle):
    assert rectangle.area == 61 * 41
    x, y, w, h = rectangle.bounds
    assert (x, y, w, h) == (9.5, 9.5, 61.0, 41.0)


def test_contains_point(rectangle):
    assert rectangle.contains_point(10, 10)
    assert rectangle.contains_point(70, 50)
    assert not rectangle.contains_point(9, 10)
    assert not rectangle.contains_point(71, 30)


def test_contains_pixels_outside_raster_is_false(rectangle):
    out = rectangle.contains_pixels(np.array([-5, 10, 1000]), np.array([-5, 10, 1000]))
    assert out.tolist() == [False, True, False]


def test_from_mask_reproduces_pixels_with_hole():
    mask = np.ones((20, 20), dtype=bool)
    mask[8:12, 8:12] = False
    region = Region.from_mask(mask, 5, 7)
    expected = {(c + 5, r + 7) for r, c in zip(*np.nonzero(mask))}
    assert _pixel_set(region) == expected
    # a copy has no cached raster and must rebuild the same pixels from the rings
    assert _pixel_set(region.copy()) == expected
    assert not region.contains_point(15, 17)


def test_from_mask_empty():
    region = Region.from_mask(np.zeros((5, 5), dtype=bool))
    assert region.is_empty
    assert region.area == 0


def test_translate_shifts_pixels(rectangle):
    moved = rectangle.translate(13, 7)
    assert moved.area == rectangle.area
    assert _pixel_set(moved) == {(x + 13, y + 7) for x, y in _pixel_set(rectangle)}


def test_circle_shape():
    region = circle_region(50.0, 50.0, 30.0)
    assert region.area == pytest.approx(np.pi * 30 ** 2, rel=0.02)
    cx, cy = region.centroid
    assert cx == pytest.approx(50.0, abs=0.1)
    assert cy == pytest.approx(50.0, abs=0.1)
    assert region.circularity > 0.8


def test_elongated_region_is_less_circular():
    thin = rect_region(0, 0, 200, 2)
    assert thin.circularity < circle_region(50.0, 50.0, 30.0).circularity


def test_bad_ring_shape():
    with pytest.raises(ValueError):
        Region([np.zeros((4, 3))])
