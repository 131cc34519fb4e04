import numpy as np
import pytest

from shellquant.models import ShrinkType
from shellquant.random_distribution import RandomDistribution
from shellquant.shells import ShellDecomposer


def test_counts_shape_and_total(rectangle):
    d = ShellDecomposer(rectangle, 5)
    rd = RandomDistribution(rectangle, d, 1000)
    counts = rd.get_counts()
    assert counts.shape == (5,)
    assert counts.dtype == np.int64
    assert rd.unmapped == 0
    assert counts.sum() == 1000


def test_points_inside_template(rectangle):
    d = ShellDecomposer(rectangle, 3)
    rd = RandomDistribution(rectangle, d, 500)
    assert rd.points.shape == (500, 2)
    assert rectangle.contains_points(rd.points).all()


def test_repeatable(rectangle):
    d = ShellDecomposer(rectangle, 5)
    a = RandomDistribution(rectangle, d, 2000).get_counts()
    b = RandomDistribution(rectangle, d, 2000).get_counts()
    assert a.tolist() == b.tolist()


def test_same_counts_for_translated_region(rectangle):
    moved = rectangle.translate(13, 7)
    a = RandomDistribution(rectangle, ShellDecomposer(rectangle, 5), 2000).get_counts()
    b = RandomDistribution(moved, ShellDecomposer(moved, 5), 2000).get_counts()
    assert a.tolist() == b.tolist()


def test_counts_follow_shell_areas(big_circle):
    d = ShellDecomposer(big_circle, 5, ShrinkType.AREA)
    counts = RandomDistribution(big_circle, d, 10000).get_counts()
    expected = d.find_pixel_counts() / big_circle.area
    assert counts / counts.sum() == pytest.approx(expected, abs=0.03)


@pytest.mark.parametrize("iterations", [0, -5])
def test_iterations_must_be_positive(rectangle, iterations):
    d = ShellDecomposer(rectangle, 3)
    with pytest.raises(ValueError):
        RandomDistribution(rectangle, d, iterations)


@pytest.mark.parametrize("shrink_type", [ShrinkType.RADIUS, ShrinkType.AREA])
def test_every_accepted_point_has_a_shell(big_circle, shrink_type):
    d = ShellDecomposer(big_circle, 5, shrink_type)
    rd = RandomDistribution(big_circle, d, 10000)
    assert big_circle.contains_points(rd.points).all()
    assert rd.unmapped == 0
    assert (d.find_shells(rd.points) >= 0).all()
    assert rd.get_counts().sum() == 10000
