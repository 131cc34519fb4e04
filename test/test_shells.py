import numpy as np
import pytest

from shellquant.geometry import Region
from shellquant.models import ShellAnalysisException, ShrinkType
from shellquant.shells import (
    RegionShrinker,
    ShellDecomposer,
    correct_nested_values,
    is_suitable_for_shells,
)

from conftest import circle_region, rect_region


@pytest.mark.parametrize("shrink_type", [ShrinkType.RADIUS, ShrinkType.AREA])
def test_shells_are_nested(big_circle, shrink_type):
    d = ShellDecomposer(big_circle, 5, shrink_type)
    assert len(d.shells) == 5
    for outer, inner in zip(d.shells, d.shells[1:]):
        xs, ys = inner.pixel_coordinates()
        assert outer.contains_pixels(xs, ys).all()


def test_radius_areas_decrease(big_circle):
    areas = ShellDecomposer(big_circle, 5, ShrinkType.RADIUS).shell_areas()
    assert all(a > b for a, b in zip(areas, areas[1:]))


def test_radius_shells_have_equal_width(big_circle):
    d = ShellDecomposer(big_circle, 5, ShrinkType.RADIUS)
    radii = np.sqrt(d.shell_areas() / np.pi)
    # innermost equivalent radius is about a fifth of the outer one
    assert radii[4] == pytest.approx(0.2 * radii[0], rel=0.15)
    assert radii[2] == pytest.approx(0.6 * radii[0], rel=0.05)


def test_radius_innermost_area_fraction(big_circle):
    ratios = ShellDecomposer(big_circle, 5, ShrinkType.RADIUS).shell_ratios()
    # equal-width rings leave the innermost disk with about (1/5)^2 of the area
    assert ratios[4] == pytest.approx(0.04, abs=0.01)
    assert not (0.17 <= ratios[4] <= 0.23)


def test_radius_shell_zero_is_unchanged(rectangle):
    shrinker = RegionShrinker(rectangle, 5)
    assert shrinker.shrink_by_radius(0) is rectangle


@pytest.mark.parametrize("shell", [1, 2, 3, 4])
def test_area_shrink_meets_target(big_circle, shell):
    shrinker = RegionShrinker(big_circle, 5)
    region = shrinker.shrink_by_area(shell)
    desired = shrinker.full_area * (5 - shell) / 5
    t = shrinker.last_threshold
    assert region.area == shrinker.survivor_area(t)
    assert region.area <= desired
    if t > 1:
        assert shrinker.survivor_area(t - 1) > desired


def test_area_fractions(big_circle):
    ratios = ShellDecomposer(big_circle, 5, ShrinkType.AREA).shell_ratios()
    assert ratios == pytest.approx([1.0, 0.8, 0.6, 0.4, 0.2], abs=0.03)


def test_correct_nested_values_round_trip():
    bands = np.array([5, 3, 0, 2])
    cumulative = np.cumsum(bands[::-1])[::-1]
    assert cumulative.tolist() == [10, 5, 2, 2]
    assert correct_nested_values(cumulative).tolist() == bands.tolist()


def test_correct_nested_values_empty():
    with pytest.raises(ValueError):
        correct_nested_values([])


def test_decomposer_rejects_wrong_length(rectangle):
    d = ShellDecomposer(rectangle, 3)
    with pytest.raises(ValueError):
        d.correct_nested_values([1, 2])


def test_pixel_counts_sum_to_area(big_circle):
    d = ShellDecomposer(big_circle, 5)
    counts = d.find_pixel_counts()
    assert (counts >= 0).all()
    assert counts.sum() == big_circle.area
    assert counts[4] == d.shells[4].area


def test_find_pixel_intensities_uniform_image(rectangle):
    d = ShellDecomposer(rectangle, 4, ShrinkType.AREA)
    image = np.full((80, 100), 3.0)
    vals = d.find_pixel_intensities(rectangle, image)
    assert vals.tolist() == (3 * d.find_pixel_counts()).tolist()
    assert vals.sum() == 3 * rectangle.area


def test_find_pixel_intensities_ignores_pixels_off_image(rectangle):
    d = ShellDecomposer(rectangle, 3)
    # image covers only x < 40
    image = np.ones((80, 40))
    vals = d.find_pixel_intensities(rectangle, image)
    assert vals.sum() == 30 * 41


def test_find_shell_centre_and_outside(big_circle):
    d = ShellDecomposer(big_circle, 5)
    cx, cy = big_circle.centroid
    assert d.find_shell((cx, cy)) == 4
    assert d.find_shell((1.0, 1.0)) == -1
    assert d.find_shell((51.0, 150.0)) == 0


def test_find_shell_near_left_and_top_edges(rectangle):
    d = ShellDecomposer(rectangle, 3)
    # inside the boundary but left of and above the first pixel centre
    assert rectangle.contains_point(9.6, 9.6)
    assert d.find_shell((9.6, 30.0)) == 0
    assert d.find_shell((40.0, 9.6)) == 0
    assert d.find_shell((9.4, 30.0)) == -1


def test_find_shells_vectorised(big_circle):
    d = ShellDecomposer(big_circle, 5)
    pts = np.array([[150.0, 150.0], [1.0, 1.0], [51.0, 150.0]])
    assert d.find_shells(pts).tolist() == [4, -1, 0]


def test_empty_region_fails():
    with pytest.raises(ShellAnalysisException):
        ShellDecomposer(Region([]), 5)


def test_bad_shell_count_fails(rectangle):
    with pytest.raises(ShellAnalysisException):
        ShellDecomposer(rectangle, 0)


def test_single_shell_is_whole_region(rectangle):
    d = ShellDecomposer(rectangle, 1)
    assert d.find_pixel_counts().tolist() == [rectangle.area]


def test_suitability():
    assert is_suitable_for_shells(circle_region(50.0, 50.0, 25.0), 5)
    # 25 pixels cannot give 5 shells of 50 pixels
    assert not is_suitable_for_shells(rect_region(0, 0, 4, 4), 5)
    assert not is_suitable_for_shells(Region([]), 5)
