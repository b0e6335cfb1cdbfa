"""
Confidence-connected region growing.
"""

from __future__ import annotations

import logging
from typing import Sequence, Tuple

import numpy as np

from config import REGION_GROWING_CONNECTIVITY
from core.base import IterativePipeline, PipelineInputs, require_seeds
from core.coordinates import SeedPoint
from pipelines.ops import fast_label

logger = logging.getLogger(__name__)


def neighborhood_statistics(image: np.ndarray, seeds: Sequence[SeedPoint], radius: int) -> Tuple[float, float]:
    """Mean and standard deviation over the (2r+1)^3 boxes around all seeds, clipped to the volume."""
    samples = []
    for seed in seeds:
        box = tuple(
            slice(max(int(c) - radius, 0), min(int(c) + radius + 1, n))
            for c, n in zip(seed, image.shape)
        )
        samples.append(image[box].ravel())
    values = np.concatenate(samples).astype(np.float64)
    return float(values.mean()), float(values.std())


class ConfidenceConnectedPipeline(IterativePipeline):
    """
    Grow the region connected to the seeds whose intensities fall inside
    ``mean +/- multiplier * sigma``.

    Step 1 estimates the statistics from the neighborhoods of the seeds;
    every further step re-estimates them from the current region. The
    acceptance interval always contains the seed intensities, so every seed
    belongs to the result. Output voxels are ``replace_value`` inside the
    region and 0 elsewhere.
    """

    name = "ConfidenceConnected"

    def __init__(
        self,
        iterations: int = 5,
        multiplier: float = 2.5,
        replace_value: float = 255,
        initial_radius: int = 2,
        connectivity: int = REGION_GROWING_CONNECTIVITY,
    ) -> None:
        super().__init__(max_iterations=max(int(iterations), 0) + 1, convergence_threshold=None)
        self.multiplier = float(multiplier)
        self.replace_value = replace_value
        self.initial_radius = max(int(initial_radius), 0)
        self.connectivity = connectivity
        self._image = None
        self._seeds: Tuple[SeedPoint, ...] = ()
        self._region = None
        self.interval = (np.nan, np.nan)

    def initialize(self, inputs: PipelineInputs) -> None:
        require_seeds(inputs.seeds, "Confidence connected region growing")
        self._image = inputs.primary
        self._seeds = tuple(inputs.seeds)
        self._region = None

    def _grow(self, mean: float, sigma: float) -> np.ndarray:
        image = self._image
        seed_values = [float(image[tuple(s)]) for s in self._seeds]
        lower = min(mean - self.multiplier * sigma, min(seed_values))
        upper = max(mean + self.multiplier * sigma, max(seed_values))
        self.interval = (lower, upper)

        candidates = (image >= lower) & (image <= upper)
        labels, _ = fast_label(candidates, connectivity=self.connectivity)
        seed_labels = {int(labels[tuple(s)]) for s in self._seeds} - {0}
        return np.isin(labels, sorted(seed_labels))

    def step(self) -> float:
        if self._region is None:
            mean, sigma = neighborhood_statistics(self._image, self._seeds, self.initial_radius)
        else:
            values = self._image[self._region].astype(np.float64)
            mean, sigma = float(values.mean()), float(values.std())

        region = self._grow(mean, sigma)
        changed = 1.0 if self._region is None else float(np.count_nonzero(region ^ self._region)) / region.size
        self._region = region
        logger.debug(
            "Confidence interval [%g, %g], region size %d", self.interval[0], self.interval[1], int(region.sum())
        )
        return changed

    def result(self) -> np.ndarray:
        return np.where(self._region, float(self.replace_value), 0.0)


__all__ = ["neighborhood_statistics", "ConfidenceConnectedPipeline"]
