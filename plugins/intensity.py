"""
Intensity transformation and utility plugins.
"""

from core.dto import ParameterSpec
from core.errors import PreconditionError
from core.rescale import CastPolicy
from pipelines.intensity import (
    GradientMagnitudePipeline,
    IntensityWindowingPipeline,
    SigmoidPipeline,
    sigmoid_parameters,
)
from plugins.spec import (
    PluginSpec,
    input_minimum,
    input_window_maximum,
    one_scalar_in_one_out,
    type_maximum,
    type_minimum,
)

_OUTPUT_BOUNDS = (
    ParameterSpec("output_minimum", "Output Minimum", "float", type_minimum, None, None, None,
                  "Intensity of the output for the lowest transformed value."),
    ParameterSpec("output_maximum", "Output Maximum", "float", type_maximum, None, None, None,
                  "Intensity of the output for the highest transformed value."),
)


def _output_bounds(params, _kind):
    return (params["output_minimum"], params["output_maximum"])


def _check_window(params, _volume) -> None:
    if not params["window_minimum"] < params["window_maximum"]:
        raise PreconditionError(
            f"Window minimum ({params['window_minimum']:g}) must be below window maximum ({params['window_maximum']:g})."
        )


def _check_alpha(params, _volume) -> None:
    if params["alpha"] == 0.0:
        raise PreconditionError("Sigmoid alpha must be non-zero.")


GRADIENT_MAGNITUDE = PluginSpec(
    key="gradient_magnitude",
    name="Gradient Magnitude",
    group="Utility",
    terse="Gradient Magnitude",
    documentation="Magnitude of the image gradient from central finite differences, in physical units.",
    parameters=(),
    build=lambda p, ctx: GradientMagnitudePipeline(),
    requires_single_component=False,
    per_voxel_memory=one_scalar_in_one_out,
    update_message="Computing Gradient Magnitude...",
    done_message="Gradient Magnitude done.",
)


INTENSITY_WINDOWING = PluginSpec(
    key="intensity_windowing",
    name="Intensity Windowing",
    group="Intensity Transformation",
    terse="Intensity Windowing Transform",
    documentation=(
        "Pixel-wise linear mapping of an intensity window onto an output range; values "
        "outside the window saturate at the output bounds."
    ),
    parameters=(
        ParameterSpec("window_minimum", "Window Minimum", "float", input_minimum, None, None, None,
                      "Lowest input intensity of the window."),
        ParameterSpec("window_maximum", "Window Maximum", "float", input_window_maximum, None, None, None,
                      "Highest input intensity of the window. Defaults to the input maximum, or one above the minimum for constant input."),
        *_OUTPUT_BOUNDS,
    ),
    build=lambda p, ctx: IntensityWindowingPipeline(cast=ctx.cast),
    cast_policy=CastPolicy.LINEAR,
    rescale_window=lambda p: (p["window_minimum"], p["window_maximum"]),
    output_bounds=_output_bounds,
    requires_single_component=False,
    supports_pieces=True,
    per_voxel_memory=one_scalar_in_one_out,
    validate=_check_window,
    update_message="Transforming intensities with an intensity window...",
    done_message="Intensity Windowing done.",
)


def _build_sigmoid(p, ctx):
    alpha, beta = sigmoid_parameters(p["alpha"], p["beta"], *ctx.scalar_range)
    return SigmoidPipeline(alpha, beta, cast=ctx.cast)


SIGMOID = PluginSpec(
    key="sigmoid",
    name="Sigmoid",
    group="Intensity Transformation",
    terse="Sigmoid Intensity Transform",
    documentation=(
        "Pixel-wise sigmoid intensity transform. Alpha and beta are normalized to the input "
        "scalar range; the sigmoid output is mapped onto the output bounds."
    ),
    parameters=(
        ParameterSpec("alpha", "Alpha", "float", 5.0, -10.0, 10.0, 0.1,
                      "Width of the sigmoid relative to the input range. Small values approach a step."),
        ParameterSpec("beta", "Beta", "float", 0.0, -1.0, 1.0, 0.01,
                      "Center of the sigmoid within the input range, normalized to [-1, 1]."),
        *_OUTPUT_BOUNDS,
    ),
    build=_build_sigmoid,
    cast_policy=CastPolicy.LINEAR,
    rescale_window=lambda p: (0.0, 1.0),
    output_bounds=_output_bounds,
    requires_single_component=False,
    supports_pieces=True,
    per_voxel_memory=one_scalar_in_one_out,
    validate=_check_alpha,
    update_message="Transforming intensities with a Sigmoid function...",
    done_message="Sigmoid done.",
)
