"""
Image-processing pipelines driven by the adaptation layer.

Modules:
- diffusion: gradient anisotropic diffusion
- region_growing: confidence-connected region growing
- level_sets: anti-aliasing and geodesic active contours
- intensity: gradient magnitude, intensity windowing, sigmoid
- ops: finite differences and connected-component labeling
"""

from pipelines.diffusion import GradientAnisotropicDiffusionPipeline
from pipelines.region_growing import ConfidenceConnectedPipeline
from pipelines.level_sets import (
    AntiAliasPipeline,
    GeodesicActiveContourPipeline,
    GeodesicActiveContourModulePipeline,
)
from pipelines.intensity import (
    GradientMagnitudePipeline,
    IntensityWindowingPipeline,
    SigmoidPipeline,
)

__all__ = [
    'GradientAnisotropicDiffusionPipeline',
    'ConfidenceConnectedPipeline',
    'AntiAliasPipeline',
    'GeodesicActiveContourPipeline',
    'GeodesicActiveContourModulePipeline',
    'GradientMagnitudePipeline',
    'IntensityWindowingPipeline',
    'SigmoidPipeline',
]
