"""
Pointwise and derivative intensity pipelines.

Pointwise pipelines run one step per z-slab ("piece") and cast each slab into
the output kind as soon as it is computed, so no full-size floating-point copy
of the volume is ever held.
"""

from __future__ import annotations

from typing import Callable, List, Optional

import numpy as np

from config import PIECES_SLAB_DEPTH
from core.base import IterativePipeline, PipelineInputs
from core.chunker import ChunkDescriptor, SpatialChunker
from core.errors import PipelineFault
from pipelines.ops import gradient_magnitude

SlabCast = Callable[[np.ndarray], np.ndarray]


class GradientMagnitudePipeline(IterativePipeline):
    """Finite-difference gradient magnitude in physical units (single pass)."""

    name = "GradientMagnitude"

    def __init__(self) -> None:
        super().__init__(max_iterations=1)
        self._inputs: Optional[PipelineInputs] = None
        self._result = None

    def initialize(self, inputs: PipelineInputs) -> None:
        self._inputs = inputs

    def step(self) -> float:
        self._result = gradient_magnitude(self._inputs.primary, self._inputs.spacing_zyx)
        return 0.0

    def result(self) -> np.ndarray:
        return self._result


class PointwisePipeline(IterativePipeline):
    """
    Base for voxel-independent transforms processed slab by slab.

    Subclasses implement ``transform`` on float64 values; ``cast`` maps the
    transformed slab into the output kind.
    """

    name = "Pointwise"

    def __init__(self, cast: SlabCast, slab_depth: int = PIECES_SLAB_DEPTH) -> None:
        super().__init__(max_iterations=1)
        self._cast = cast
        self.slab_depth = max(int(slab_depth), 1)
        self._source = None
        self._slabs: List[ChunkDescriptor] = []
        self._next = 0
        self._output = None

    def transform(self, values: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def initialize(self, inputs: PipelineInputs) -> None:
        self._source = inputs.primary
        self._slabs = list(SpatialChunker.slabs(self._source.shape, self.slab_depth))
        self.max_iterations = len(self._slabs)
        self._next = 0
        self._output = None

    def step(self) -> float:
        desc = self._slabs[self._next]
        values = self._source[desc.core_slices].astype(np.float64)
        cast = self._cast(self.transform(values))
        if self._output is None:
            self._output = np.empty(self._source.shape, dtype=cast.dtype)
        self._output[desc.core_slices] = cast
        self._next += 1
        return 0.0

    def result(self) -> np.ndarray:
        return self._output


class IntensityWindowingPipeline(PointwisePipeline):
    """
    Identity transform; the windowing itself is the linear cast onto the
    output bounds with the user window.
    """

    name = "IntensityWindowing"

    def transform(self, values: np.ndarray) -> np.ndarray:
        return values


class SigmoidPipeline(PointwisePipeline):
    """
    ``1 / (1 + exp(-(x - beta) / alpha))`` in [0, 1]; the cast maps [0, 1]
    onto the output bounds.
    """

    name = "Sigmoid"

    def __init__(self, alpha: float, beta: float, cast: SlabCast, slab_depth: int = PIECES_SLAB_DEPTH) -> None:
        super().__init__(cast, slab_depth)
        self.alpha = float(alpha)
        self.beta = float(beta)

    def initialize(self, inputs: PipelineInputs) -> None:
        if self.alpha == 0.0:
            raise PipelineFault("Sigmoid width is zero; the input scalar range is empty.")
        super().initialize(inputs)

    def transform(self, values: np.ndarray) -> np.ndarray:
        with np.errstate(over="ignore"):
            return 1.0 / (1.0 + np.exp(-(values - self.beta) / self.alpha))


def sigmoid_parameters(normalized_alpha: float, normalized_beta: float, lower: float, upper: float):
    """
    Map normalized alpha/beta onto the input scalar range [lower, upper].

    alpha scales the range width; beta = -1 puts the midpoint at ``lower``
    and +1 at ``upper``.
    """
    alpha = normalized_alpha * upper - normalized_alpha * lower
    beta = (1.0 + normalized_beta) / 2.0 * upper + (1.0 - normalized_beta) / 2.0 * lower
    return alpha, beta


__all__ = [
    "GradientMagnitudePipeline",
    "PointwisePipeline",
    "IntensityWindowingPipeline",
    "SigmoidPipeline",
    "sigmoid_parameters",
]
