"""
Seeded and level-set segmentation plugins.
"""

from config import MASK_FOREGROUND_VALUE
from core.dto import ParameterSpec
from core.errors import PreconditionError
from core.scalar_types import NumericKind
from pipelines.level_sets import GeodesicActiveContourModulePipeline, GeodesicActiveContourPipeline
from pipelines.region_growing import ConfidenceConnectedPipeline
from plugins.spec import PluginSpec, input_midpoint


# ---------------------------------------------------------------------------
# Confidence connected
# ---------------------------------------------------------------------------

CONFIDENCE_CONNECTED = PluginSpec(
    key="confidence_connected",
    name="Confidence Connected",
    group="Segmentation - Region Growing",
    terse="Confidence Connected Segmentation",
    documentation=(
        "Region growing from the seed points. A voxel joins the region when its intensity "
        "lies within the mean of the region plus or minus the multiplier times the standard "
        "deviation; the statistics are re-estimated on every iteration."
    ),
    parameters=(
        ParameterSpec("iterations", "Number of Iterations", "int", 5, 1, 20, 1,
                      "How many times the statistics are re-estimated from the grown region."),
        ParameterSpec("multiplier", "Variance Multiplier", "float", 2.5, 0.1, 10.0, 0.1,
                      "Width of the acceptance interval in standard deviations."),
        ParameterSpec("replace_value", "Replace Value", "int", 255, 1, 255, 1,
                      "Value written in the segmented region; everything else is zero."),
        ParameterSpec("initial_radius", "Initial Neighborhood Radius", "int", 2, 1, 20, 1,
                      "Radius of the box around each seed used for the first statistics."),
        ParameterSpec("composite", "Produce composite output", "bool", False, None, None, None,
                      "Output the input intensities and the mask as a two-component volume."),
    ),
    build=lambda p, ctx: ConfidenceConnectedPipeline(
        p["iterations"], p["multiplier"], p["replace_value"], p["initial_radius"]
    ),
    output_kind=NumericKind.UINT8,
    requires_seeds=True,
    composite_parameter="composite",
    reports_iterations=False,
    per_voxel_memory=lambda volume, p: 2.0 if p["composite"] else 1.0,
    update_message="Confidence Connected Region Growing...",
    done_message="Confidence Connected Region Growing done.",
)


# ---------------------------------------------------------------------------
# Geodesic active contour
# ---------------------------------------------------------------------------

def _check_basin(params, _volume) -> None:
    if params["basin_value"] == params["border_value"]:
        raise PreconditionError("Bottom of basin and lowest of basin border must differ.")


_LEVEL_SET_SCALINGS = (
    ParameterSpec("curvature_scaling", "Curvature scaling", "float", 1.0, 0.1, 10.0, 0.1,
                  "Weight of the curvature term. Larger values give smoother contours."),
    ParameterSpec("propagation_scaling", "Propagation scaling", "float", 1.0, 0.1, 10.0, 0.1,
                  "Weight of the inflation term. Larger values expand faster with rougher borders."),
    ParameterSpec("advection_scaling", "Advection scaling", "float", 1.0, 0.1, 10.0, 0.1,
                  "Weight of the term pulling the contour towards edges of the speed image."),
    ParameterSpec("max_rms_error", "Maximum RMS Error", "float", 0.06, 0.01, 0.5, 0.01,
                  "Evolution stops once the RMS change of one iteration falls below this value."),
    ParameterSpec("max_iterations", "Maximum iterations", "int", 100, 1, 500, 1,
                  "Upper bound on the number of evolution steps."),
)


GEODESIC_ACTIVE_CONTOUR = PluginSpec(
    key="geodesic_active_contour",
    name="Geodesic Active Contour",
    group="Segmentation - Level Sets",
    terse="Geodesic Active Contour",
    documentation=(
        "Geodesic active contour evolution without preprocessing. The current volume is the "
        "initial model (voxels above the isovalue are inside) and the second input is the "
        "speed image."
    ),
    parameters=(
        ParameterSpec("sigma", "Sigma for gradient magnitude", "float", 1.0, 0.1, 10.0, 0.1,
                      "Smoothing (in mm) applied before differentiating the speed image for advection."),
        *_LEVEL_SET_SCALINGS,
        ParameterSpec("isovalue", "Initial model isovalue", "float", input_midpoint, None, None, None,
                      "Intensity separating inside from outside in the initial model."),
    ),
    build=lambda p, ctx: GeodesicActiveContourPipeline(
        derivative_sigma=p["sigma"],
        curvature_scaling=p["curvature_scaling"],
        propagation_scaling=p["propagation_scaling"],
        advection_scaling=p["advection_scaling"],
        max_rms_error=p["max_rms_error"],
        max_iterations=p["max_iterations"],
        isovalue=p["isovalue"],
        foreground=MASK_FOREGROUND_VALUE,
    ),
    output_kind=NumericKind.UINT8,
    requires_second_input=True,
    reports_iterations=True,
    per_voxel_memory=lambda volume, p: 16.0,
    update_message="Computing Geodesic Active Contour...",
    done_message="Geodesic Active Contour LevelSet Done !",
)


GEODESIC_ACTIVE_CONTOUR_MODULE = PluginSpec(
    key="geodesic_active_contour_module",
    name="Geodesic Active Contour Module",
    group="Segmentation - Level Sets",
    terse="Geodesic Active Contour Module",
    documentation=(
        "Geodesic active contour segmentation with all preprocessing included: smoothed "
        "gradient magnitude, sigmoid speed image and an initial level set placed at a fixed "
        "distance from the seed points."
    ),
    parameters=(
        ParameterSpec("distance", "Distance from seeds", "float", 5.0, 1.0, 100.0, 1.0,
                      "The initial zero set is placed at this distance (mm) from the seed points."),
        ParameterSpec("sigma", "Sigma for gradient magnitude", "float", 1.0, 0.1, 10.0, 0.1,
                      "Smoothing (in mm) applied before computing the gradient magnitude."),
        ParameterSpec("basin_value", "Bottom of basin", "float", 0.0, 0.0, 255.0, 1.0,
                      "Typical gradient magnitude inside the region; mapped to the fastest speed."),
        ParameterSpec("border_value", "Lowest of basin border", "float", 6.0, 0.0, 255.0, 1.0,
                      "Typical gradient magnitude on the region border; mapped to the slowest speed."),
        *_LEVEL_SET_SCALINGS,
        ParameterSpec("composite", "Produce composite output", "bool", False, None, None, None,
                      "Output the input intensities and the mask as a two-component volume."),
    ),
    build=lambda p, ctx: GeodesicActiveContourModulePipeline(
        distance=p["distance"],
        sigma=p["sigma"],
        basin_value=p["basin_value"],
        border_value=p["border_value"],
        curvature_scaling=p["curvature_scaling"],
        propagation_scaling=p["propagation_scaling"],
        advection_scaling=p["advection_scaling"],
        max_rms_error=p["max_rms_error"],
        max_iterations=p["max_iterations"],
        foreground=MASK_FOREGROUND_VALUE,
    ),
    output_kind=NumericKind.UINT8,
    requires_seeds=True,
    composite_parameter="composite",
    reports_iterations=True,
    per_voxel_memory=lambda volume, p: 16.0,
    validate=_check_basin,
    update_message="Computing Geodesic Active Contour Module...",
    done_message="Geodesic Active Contour Module done.",
)
