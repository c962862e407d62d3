"""Numerical constants shared by the convective operator and its collaborators.

Import from here instead of defining local constants.
"""

# Ghost widths required by each reconstruction stencil
GUPWINDG = 2                  # Upwind
GCUIG = 3                     # Cubic upwind interpolation
GFBICSG = 3                   # Flux-blended interface capturing
GMGAMMAG = 3                  # Modified gamma
NOGHOSTS = 0                  # Output fields carry no halo

# Halo-fill transaction defaults
DEFAULT_REFINE_OP = "CONSERVATIVE_LINEAR_REFINE"
DEFAULT_COARSEN_OP = "CONSERVATIVE_COARSEN"
DEFAULT_BDRY_EXTRAP_TYPE = "CONSTANT"

REFINE_OP_NAMES = ("CONSERVATIVE_LINEAR_REFINE", "CONSTANT_REFINE", "NONE")
COARSEN_OP_NAMES = ("CONSERVATIVE_COARSEN", "NONE")
BDRY_EXTRAP_TYPES = ("CONSTANT", "LINEAR")

# Robin coefficient tolerance: |b| below this is treated as Dirichlet
ROBIN_DIRICHLET_TOL = 1.0e-12
