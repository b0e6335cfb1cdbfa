"""
Surface generation plugins.
"""

from config import ANTIALIAS_OUTPUT_RANGE
from core.dto import ParameterSpec
from core.rescale import CastPolicy
from core.scalar_types import NumericKind
from pipelines.level_sets import AntiAliasPipeline
from plugins.spec import PluginSpec


ANTI_ALIAS = PluginSpec(
    key="anti_alias",
    name="Anti-Aliasing",
    group="Surface Generation",
    terse="Reduction of aliasing effects",
    documentation=(
        "Level-set evolution over a binary volume producing a smoother contour suited for "
        "iso-surface extraction. The contour is the zero set of the output level set, "
        "rescaled so that it sits at mid-range of an unsigned 8-bit volume."
    ),
    parameters=(
        ParameterSpec("iterations", "Number of Iterations", "int", 5, 1, 100, 1,
                      "Maximum number of curvature-flow iterations."),
        ParameterSpec("max_rms_error", "Maximum RMS Error", "float", 0.05, 0.001, 0.1, 0.001,
                      "Convergence criterion on the RMS change of one iteration."),
    ),
    build=lambda p, ctx: AntiAliasPipeline(p["iterations"], p["max_rms_error"]),
    output_kind=NumericKind.UINT8,
    cast_policy=CastPolicy.LINEAR,
    output_bounds=lambda p, kind: ANTIALIAS_OUTPUT_RANGE,
    reports_iterations=True,
    per_voxel_memory=lambda volume, p: 8.0,
    required_z_overlap=lambda p: int(p["iterations"]),
    update_message="Reducing aliasing effects...",
    done_message="Anti-aliasing done.",
)
