"""
Noise suppression plugins.
"""

from core.dto import ParameterSpec
from core.scalar_types import NumericKind
from config import BRIDGE_WORKING_KIND
from pipelines.diffusion import GradientAnisotropicDiffusionPipeline
from plugins.spec import PluginSpec


def _diffusion_memory(volume, _params) -> float:
    # two float working images; multi-component inputs add one extracted scalar
    size = 2 * 4
    if volume.components > 1:
        size += volume.kind.itemsize
    return float(size)


ANISOTROPIC_DIFFUSION = PluginSpec(
    key="anisotropic_diffusion",
    name="Gradient Anisotropic Diffusion",
    group="Noise Suppression",
    terse="Anisotropic diffusion smoothing",
    documentation=(
        "Edge-preserving smoothing by evolving an anisotropic diffusion equation whose "
        "conductance is regulated by the image gradient. The whole volume is processed "
        "in one piece; dimensions, data type and spacing are unchanged."
    ),
    parameters=(
        ParameterSpec("iterations", "Number of Iterations", "int", 5, 1, 100, 1,
                      "How many times the diffusion step is applied. More iterations smooth more."),
        ParameterSpec("time_step", "Time Step", "float", 0.05, 0.01, 1.0, 0.005,
                      "Time discretization of the diffusion process."),
        ParameterSpec("conductance", "Conductance", "float", 3.0, 0.1, 10.0, 0.1,
                      "Scales the local conductance computed from the gradient. Larger values diffuse more."),
    ),
    build=lambda p, ctx: GradientAnisotropicDiffusionPipeline(p["iterations"], p["time_step"], p["conductance"]),
    input_mode="bridge",
    working_kind=NumericKind(BRIDGE_WORKING_KIND),
    requires_single_component=False,
    per_voxel_memory=_diffusion_memory,
    required_z_overlap=lambda p: int(p["iterations"]),
    update_message="Smoothing with Gradient Anisotropic Diffusion...",
    done_message="Gradient Anisotropic Diffusion done.",
)
