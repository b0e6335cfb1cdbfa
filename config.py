"""
Configuration constants for the volume filter plugin suite.
All tunable defaults of the adaptation layer are centralized here.
"""

# ==========================================
# Buffer Adaptation
# ==========================================

# Working representation used when a pipeline bridges the host scalar type
BRIDGE_WORKING_KIND = "float32"

# Level-set pipelines evolve in double precision
LEVEL_SET_WORKING_KIND = "float64"

# ==========================================
# Output Policies
# ==========================================

# Value written into binary masks produced by level-set pipelines
MASK_FOREGROUND_VALUE = 255

# Anti-aliasing output is rescaled onto the full unsigned 8-bit range
ANTIALIAS_OUTPUT_RANGE = (0.0, 255.0)

# ==========================================
# Tile ("pieces") Processing
# ==========================================

# Number of z-slices per tile for pipelines that support piecewise processing
PIECES_SLAB_DEPTH = 32

# Slices per piece for reductions over the whole volume (scalar range)
RANGE_SLAB_DEPTH = 64

# ==========================================
# Anisotropic Diffusion
# ==========================================

# Explicit 3D scheme stability limit (1 / 2^(N+1) with N = 3)
DIFFUSION_MAX_STABLE_TIME_STEP = 0.0625

# ==========================================
# Level Sets
# ==========================================

LEVEL_SET_TIME_STEP = 0.0625      # Explicit update step for curvature flow
LEVEL_SET_BAND_WIDTH = 3.0        # Half width (voxels) of the anti-aliased band
LEVEL_SET_EPSILON = 1e-8          # Guards divisions by |grad phi|

# ==========================================
# Region Growing
# ==========================================

# Face connectivity, matching flood-fill iterators of the pipeline library
REGION_GROWING_CONNECTIVITY = 6

# ==========================================
# CLI
# ==========================================
CLI_DEFAULT_FORMATS = ("npy",)
CLI_DEFAULT_LOG_LEVEL = "WARNING"
