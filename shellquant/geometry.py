"""
Region geometry for ShellQuant.

A Region is one or more closed boundary rings in original image coordinates.
Membership follows the even-odd rule across all rings, so a region may have
holes or several disjoint parts (as erosion of a non-convex nucleus can
produce). Pixel (x, y) is inside a region when the point (x, y) is inside.

Every membership question (rasterising a region, finding the shell of a point,
rejecting random points) goes through Region.contains_points.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
from matplotlib.path import Path
from skimage import measure

logger = logging.getLogger(__name__)


def _as_ring(coords) -> np.ndarray:
    ring = np.asarray(coords, dtype=np.float64)
    if ring.ndim != 2 or ring.shape[1] != 2:
        raise ValueError(f"Boundary ring must be an (N, 2) array of x, y points, got shape {ring.shape}")
    return ring


class Region:
    """A boundary in original image coordinates with pixel membership queries."""

    def __init__(self, rings: Sequence[np.ndarray]):
        if isinstance(rings, np.ndarray) and rings.ndim == 2:
            rings = [rings]
        self._rings: List[np.ndarray] = [_as_ring(r) for r in rings if len(r) >= 3]
        self._paths = [Path(r) for r in self._rings]
        self._mask: Optional[Tuple[np.ndarray, int, int]] = None

    # -----------------------
    # Construction
    # -----------------------
    @classmethod
    def from_polygon(cls, xs, ys) -> "Region":
        return cls([np.column_stack([np.asarray(xs, dtype=float), np.asarray(ys, dtype=float)])])

    @classmethod
    def from_mask(cls, mask: np.ndarray, x0: int = 0, y0: int = 0) -> "Region":
        """Trace the boundary of every component of a boolean mask.

        ``mask[r, c]`` is pixel (x0 + c, y0 + r). Contours at level 0.5 pass
        between pixel centres, so the traced region holds exactly the mask pixels.
        """
        mask = np.asarray(mask, dtype=bool)
        if not np.any(mask):
            return cls([])
        padded = np.pad(mask, 1).astype(np.float64)
        rings = []
        for contour in measure.find_contours(padded, 0.5):
            # find_contours returns (row, col); shift back through the padding
            xs = contour[:, 1] - 1.0 + x0
            ys = contour[:, 0] - 1.0 + y0
            rings.append(np.column_stack([xs, ys]))
        region = cls(rings)
        region._mask = (mask.copy(), int(x0), int(y0))
        return region

    def copy(self) -> "Region":
        return Region([r.copy() for r in self._rings])

    def translate(self, dx: float, dy: float) -> "Region":
        return Region([r + np.array([dx, dy], dtype=np.float64) for r in self._rings])

    # -----------------------
    # Properties
    # -----------------------
    @property
    def rings(self) -> List[np.ndarray]:
        return self._rings

    @property
    def is_empty(self) -> bool:
        return len(self._rings) == 0

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(x, y, width, height) of the boundary vertices."""
        if self.is_empty:
            return (0.0, 0.0, 0.0, 0.0)
        pts = np.vstack(self._rings)
        xmin, ymin = pts.min(axis=0)
        xmax, ymax = pts.max(axis=0)
        return float(xmin), float(ymin), float(xmax - xmin), float(ymax - ymin)

    @property
    def area(self) -> int:
        """Number of pixels inside the region."""
        mask, _, _ = self.mask()
        return int(np.count_nonzero(mask))

    @property
    def perimeter(self) -> float:
        mask, _, _ = self.mask()
        if mask.size == 0:
            return 0.0
        return float(measure.perimeter(np.pad(mask, 1)))

    @property
    def circularity(self) -> float:
        p = self.perimeter
        if p <= 0:
            return 0.0
        return float(4.0 * np.pi * self.area / (p * p))

    @property
    def centroid(self) -> Tuple[float, float]:
        xs, ys = self.pixel_coordinates()
        if xs.size == 0:
            return (np.nan, np.nan)
        return float(np.mean(xs)), float(np.mean(ys))

    # -----------------------
    # Membership
    # -----------------------
    def contains_points(self, points) -> np.ndarray:
        """Test (M, 2) x, y points for membership with the even-odd rule."""
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        inside = np.zeros(pts.shape[0], dtype=bool)
        for path in self._paths:
            inside ^= path.contains_points(pts)
        return inside

    def contains_point(self, x: float, y: float) -> bool:
        return bool(self.contains_points([[x, y]])[0])

    def mask(self) -> Tuple[np.ndarray, int, int]:
        """Boolean raster of the region and the image position of its [0, 0] pixel."""
        if self._mask is None:
            if self.is_empty:
                self._mask = (np.zeros((0, 0), dtype=bool), 0, 0)
            else:
                x, y, w, h = self.bounds
                x0, y0 = int(np.floor(x)), int(np.floor(y))
                x1, y1 = int(np.ceil(x + w)), int(np.ceil(y + h))
                gx, gy = np.meshgrid(np.arange(x0, x1 + 1), np.arange(y0, y1 + 1))
                inside = self.contains_points(np.column_stack([gx.ravel(), gy.ravel()]))
                self._mask = (inside.reshape(gx.shape), x0, y0)
        return self._mask

    def contains_pixels(self, xs, ys) -> np.ndarray:
        """Membership of integer pixel coordinates, looked up in the cached raster."""
        xs = np.asarray(xs, dtype=np.int64)
        ys = np.asarray(ys, dtype=np.int64)
        mask, x0, y0 = self.mask()
        cols = xs - x0
        rows = ys - y0
        h, w = mask.shape
        ok = (cols >= 0) & (cols < w) & (rows >= 0) & (rows < h)
        out = np.zeros(xs.shape, dtype=bool)
        out[ok] = mask[rows[ok], cols[ok]]
        return out

    def pixel_coordinates(self) -> Tuple[np.ndarray, np.ndarray]:
        mask, x0, y0 = self.mask()
        rows, cols = np.nonzero(mask)
        return cols.astype(np.int64) + x0, rows.astype(np.int64) + y0

    def __repr__(self):
        x, y, w, h = self.bounds
        return f"Region(rings={len(self._rings)}, bounds=({x:.1f}, {y:.1f}, {w:.1f}, {h:.1f}))"
