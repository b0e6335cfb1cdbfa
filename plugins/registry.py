"""
Registry of the available filter plugins, keyed by their CLI name.
"""

from typing import Dict, List

from core.errors import PreconditionError
from plugins.intensity import GRADIENT_MAGNITUDE, INTENSITY_WINDOWING, SIGMOID
from plugins.noise import ANISOTROPIC_DIFFUSION
from plugins.segmentation import (
    CONFIDENCE_CONNECTED,
    GEODESIC_ACTIVE_CONTOUR,
    GEODESIC_ACTIVE_CONTOUR_MODULE,
)
from plugins.spec import PluginSpec
from plugins.surface import ANTI_ALIAS

PLUGINS: Dict[str, PluginSpec] = {
    spec.key: spec
    for spec in (
        ANISOTROPIC_DIFFUSION,
        CONFIDENCE_CONNECTED,
        ANTI_ALIAS,
        GEODESIC_ACTIVE_CONTOUR,
        GEODESIC_ACTIVE_CONTOUR_MODULE,
        GRADIENT_MAGNITUDE,
        INTENSITY_WINDOWING,
        SIGMOID,
    )
}


def available_plugins() -> List[str]:
    return sorted(PLUGINS)


def get_plugin(key: str) -> PluginSpec:
    """Look up a plugin by key; unknown keys are a precondition error."""
    try:
        return PLUGINS[key]
    except KeyError:
        raise PreconditionError(
            f"Unknown plugin '{key}'. Available: {', '.join(available_plugins())}."
        ) from None


__all__ = ["PLUGINS", "available_plugins", "get_plugin"]
