"""
Shell decomposition for ShellQuant.

Includes:
- Nested/exclusive conversion of per-shell sums
- RegionShrinker: distance-transform erosion of a region by radius or by area
- ShellDecomposer: the N nested shells of one component, with shell lookup and
  per-shell pixel intensity sums
- Suitability check for shell analysis

Shells are ordered outer (0, the whole component) to inner (N-1). Each shell
includes the area of every shell inside it, so raw per-shell sums are
cumulative and must be corrected to get per-band values.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np
import scipy.ndimage as ndi

from .geometry import Region
from .models import DEFAULT_SHELL_COUNT, ShellAnalysisException, ShrinkType

logger = logging.getLogger(__name__)

# A component must give each shell at least this many pixels
MINIMUM_AREA_PER_SHELL = 50
MINIMUM_CIRCULARITY = 0.07


def correct_nested_values(raw) -> np.ndarray:
    """
    Convert cumulative per-shell values to per-band values.

    raw[i] includes everything in shells i+1..N-1. The result holds only what
    lies between shell i and shell i+1; the innermost shell keeps its raw value.
    """
    arr = np.array(raw, dtype=np.int64)
    if arr.size == 0:
        raise ValueError("Array length is zero")
    inner_total = 0
    for i in range(arr.size - 1, -1, -1):
        shell_total = int(arr[i])
        arr[i] = shell_total - inner_total
        inner_total = shell_total
    return arr


def _round_half_up(v: float) -> int:
    return int(np.floor(v + 0.5))


class RegionShrinker:
    """Erode a region to a given shell using its distance map.

    The region is drawn onto a canvas with a 1-pixel empty border so the
    distance transform sees background all round.
    """

    def __init__(self, region: Region, shell_count: int):
        self.region = region
        self.shell_count = int(shell_count)
        mask, x0, y0 = region.mask()
        self._x0 = x0 - 1
        self._y0 = y0 - 1
        canvas = np.pad(mask, 1)
        # zero outside, distance to the nearest background pixel inside
        di = ndi.distance_transform_edt(canvas)
        self._field = np.rint(di).astype(np.int64)
        self.field_max = int(self._field.max()) if self._field.size else 0
        self.full_area = int(np.count_nonzero(mask))
        self.last_threshold: Optional[int] = None

    def survivor_area(self, threshold: int) -> int:
        return int(np.count_nonzero(self._field >= max(1, int(threshold))))

    def shrink(self, shrink_type: ShrinkType, shell: int) -> Region:
        if shrink_type == ShrinkType.AREA:
            return self.shrink_by_area(shell)
        return self.shrink_by_radius(shell)

    def shrink_by_radius(self, shell: int) -> Region:
        if shell == 0:
            return self.region
        ratio = float(shell) / float(self.shell_count)
        # threshold 0 would keep the background
        threshold = max(1, _round_half_up(ratio * self.field_max))
        self.last_threshold = threshold
        survivors = self._field >= threshold
        if not np.any(survivors):
            logger.warning("Shell %d collapsed to zero area at threshold %d; using the unshrunk region", shell, threshold)
            return self.region
        return Region.from_mask(survivors, self._x0, self._y0)

    def shrink_by_area(self, shell: int) -> Region:
        ratio = float(self.shell_count - shell) / float(self.shell_count)
        desired_area = self.full_area * ratio
        threshold = 1
        while True:
            survivors = self._field >= threshold
            area = int(np.count_nonzero(survivors))
            if area <= desired_area:
                break
            if threshold >= self.field_max:
                logger.warning(
                    "Shell %d did not reach target area %.1f before the distance map maximum %d (area %d)",
                    shell, desired_area, self.field_max, area,
                )
                break
            threshold += 1
        self.last_threshold = threshold
        logger.debug("Shell %d ratio %.3f threshold %d desired %.1f actual %d", shell, ratio, threshold, desired_area, area)
        if area == 0:
            logger.warning("Shell %d collapsed to zero area at threshold %d; using the unshrunk region", shell, threshold)
            return self.region
        return Region.from_mask(survivors, self._x0, self._y0)


class ShellDecomposer:
    """
    Divide a component into nested shells and measure within them.

    Args:
        region: boundary of the component in original image coordinates
        shell_count: number of shells to create
        shrink_type: RADIUS for shells of equal width, AREA for shells of
            (approximately) equal area

    Raises:
        ShellAnalysisException: if the shells cannot be built
    """

    def __init__(
        self,
        region: Region,
        shell_count: int = DEFAULT_SHELL_COUNT,
        shrink_type: ShrinkType = ShrinkType.RADIUS,
    ):
        if int(shell_count) < 1:
            raise ShellAnalysisException(f"Shell count must be at least 1, got {shell_count}")
        self.shell_count = int(shell_count)
        self.shrink_type = ShrinkType(shrink_type)
        if region is None or region.area == 0:
            raise ShellAnalysisException("Component has no pixels to divide into shells")
        self.shells: List[Region] = self._create_shells(region)

    def _create_shells(self, region: Region) -> List[Region]:
        shrinker = RegionShrinker(region, self.shell_count)
        shells = [region.copy()]
        for i in range(1, self.shell_count):
            shells.append(shrinker.shrink(self.shrink_type, i))
        areas = [s.area for s in shells]
        if any(a == 0 for a in areas):
            raise ShellAnalysisException(f"Shell with zero area created; areas {areas}")
        x, y, _, _ = region.bounds
        logger.debug("Shells at %.1f - %.1f", x, y)
        logger.debug("Areas: %s", areas)
        logger.debug("Ratios: %s", [a / areas[0] for a in areas])
        return shells

    def shell_areas(self) -> np.ndarray:
        return np.array([s.area for s in self.shells], dtype=np.int64)

    def shell_ratios(self) -> np.ndarray:
        areas = self.shell_areas().astype(np.float64)
        return areas / areas[0]

    # -----------------------
    # Shell lookup
    # -----------------------
    def find_shells(self, points) -> np.ndarray:
        """Innermost shell index holding each (x, y) point, -1 outside shell 0.

        Points are tested against the shell boundaries directly, so a point
        inside the component is always inside shell 0.
        """
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        in_outer = self.shells[0].contains_points(pts)
        result = np.zeros(pts.shape[0], dtype=np.int64)
        for i in range(1, self.shell_count):
            result[self.shells[i].contains_points(pts)] = i
        result[~in_outer] = -1
        return result

    def find_shell(self, point) -> int:
        return int(self.find_shells([point])[0])

    # -----------------------
    # Measurement
    # -----------------------
    def find_pixel_intensities(self, source: Region, image: np.ndarray) -> np.ndarray:
        """
        Total pixel intensity per shell within the source component.

        Only pixels inside both the source and the shell count. Pixels of the
        source outside the image are ignored.

        Returns:
            per-band intensities, outer to inner
        """
        image = np.asarray(image)
        xs, ys = source.pixel_coordinates()
        H, W = image.shape[:2]
        on_image = (xs >= 0) & (xs < W) & (ys >= 0) & (ys < H)
        xs = xs[on_image]; ys = ys[on_image]
        vals = image[ys, xs].astype(np.float64)
        raw = np.zeros(self.shell_count, dtype=np.int64)
        for i, shell in enumerate(self.shells):
            inside = shell.contains_pixels(xs, ys)
            raw[i] = int(np.rint(np.sum(vals[inside])))
        return self.correct_nested_values(raw)

    def find_pixel_counts(self, source: Optional[Region] = None) -> np.ndarray:
        """Number of pixels per shell band, optionally only those inside source."""
        raw = np.zeros(self.shell_count, dtype=np.int64)
        if source is None:
            raw[:] = self.shell_areas()
        else:
            xs, ys = source.pixel_coordinates()
            for i, shell in enumerate(self.shells):
                raw[i] = int(np.count_nonzero(shell.contains_pixels(xs, ys)))
        return self.correct_nested_values(raw)

    def correct_nested_values(self, raw) -> np.ndarray:
        if len(raw) != self.shell_count:
            raise ValueError(f"Expected {self.shell_count} values, got {len(raw)}")
        return correct_nested_values(raw)


def is_suitable_for_shells(region: Region, shell_count: int = DEFAULT_SHELL_COUNT) -> bool:
    """Whether a component is large and round enough to divide into shells."""
    if region is None or region.is_empty:
        return False
    area = region.area
    if area < MINIMUM_AREA_PER_SHELL * int(shell_count):
        return False
    return region.circularity >= MINIMUM_CIRCULARITY
