import uuid

import numpy as np
import pytest

from shellquant.core import ImageSource
from shellquant.dataset import Cell, CellCollection, Nucleus, Signal
from shellquant.geometry import Region
from shellquant.models import ShellOptions


def circle_region(cx, cy, r, n=720):
    t = np.linspace(0, 2 * np.pi, n, endpoint=False)
    return Region.from_polygon(cx + r * np.cos(t), cy + r * np.sin(t))


def rect_region(x0, y0, x1, y1):
    """Rectangle covering pixels x0..x1, y0..y1 inclusive."""
    xs = [x0 - 0.5, x1 + 0.5, x1 + 0.5, x0 - 0.5]
    ys = [y0 - 0.5, y0 - 0.5, y1 + 0.5, y1 + 0.5]
    return Region.from_polygon(xs, ys)


@pytest.fixture
def big_circle():
    return circle_region(150.0, 150.0, 100.0)


@pytest.fixture
def rectangle():
    return rect_region(10, 10, 70, 50)


@pytest.fixture
def options():
    return ShellOptions(shell_count=5, random_iterations=500)


IMAGE_SHAPE = (140, 140)


def make_nucleus(cx, cy, r, group_ids, signal_value=10.0):
    counterstain = ImageSource(image=np.ones(IMAGE_SHAPE, dtype=np.float32))
    nucleus = Nucleus(circle_region(cx, cy, r), counterstain=counterstain, name=f"nucleus_{cx}_{cy}")
    cx_i, cy_i = int(round(cx)), int(round(cy))
    for gid in group_ids:
        src = ImageSource(image=np.full(IMAGE_SHAPE, signal_value, dtype=np.float32))
        # one focus at the centre and one near the edge
        nucleus.add_signal(gid, Signal(rect_region(cx_i - 2, cy_i - 2, cx_i + 2, cy_i + 2)), src)
        nucleus.add_signal(gid, Signal(rect_region(cx_i + r - 2, cy_i - 1, cx_i + r - 1, cy_i + 1)), src)
    return nucleus


@pytest.fixture
def make_collection():
    """Factory for a small collection of round nuclei with in-memory images."""

    def _make(n_groups=1, centres=((40, 40, 25), (95, 95, 22), (40, 100, 20))):
        group_ids = [uuid.uuid4() for _ in range(n_groups)]
        cells = [Cell([make_nucleus(cx, cy, r, group_ids)]) for cx, cy, r in centres]
        return CellCollection("test", cells), group_ids

    return _make
