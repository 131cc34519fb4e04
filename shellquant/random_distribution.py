"""
Random baseline for shell analysis.

Points are scattered uniformly over a component and binned into its shells,
giving the shell occupancy expected if signal were placed by chance. The seed
is fixed so that the same component always yields the same counts.

Each point falls in exactly one shell band, so the counts are already
per-band values and are not passed through nested correction.
"""

from __future__ import annotations

import logging

import numpy as np

from .geometry import Region
from .models import DEFAULT_RANDOM_ITERATIONS, ShellAnalysisException
from .shells import ShellDecomposer

logger = logging.getLogger(__name__)


class RandomDistribution:
    DEFAULT_SEED = 1234
    # give up on components that reject nearly every point
    MAX_DRAWS_PER_POINT = 1000

    def __init__(self, template: Region, decomposer: ShellDecomposer, iterations: int = DEFAULT_RANDOM_ITERATIONS):
        if iterations <= 0:
            raise ValueError("Must have at least one iteration")
        self.iterations = int(iterations)
        self.points = self._create_points(template)
        shells = decomposer.find_shells(self.points)
        mapped = shells >= 0
        self.unmapped = int(np.count_nonzero(~mapped))
        self.counts = np.bincount(shells[mapped], minlength=decomposer.shell_count).astype(np.int64)
        logger.debug("Random signal: %d of %d points were not in a shell", self.unmapped, self.iterations)

    def _create_points(self, template: Region) -> np.ndarray:
        rng = np.random.default_rng(self.DEFAULT_SEED)
        x, y, w, h = template.bounds
        accepted = []
        n_accepted = 0
        n_drawn = 0
        max_draws = self.iterations * self.MAX_DRAWS_PER_POINT
        while n_accepted < self.iterations:
            if n_drawn >= max_draws:
                raise ShellAnalysisException(
                    f"Only {n_accepted} of {self.iterations} random points fell inside the component"
                )
            batch = max(64, 2 * (self.iterations - n_accepted))
            r = rng.random((batch, 2))
            n_drawn += batch
            pts = np.column_stack([x + w * r[:, 0], y + h * r[:, 1]])
            pts = pts[template.contains_points(pts)]
            accepted.append(pts)
            n_accepted += pts.shape[0]
        return np.vstack(accepted)[: self.iterations]

    def get_counts(self) -> np.ndarray:
        return self.counts.copy()
