"""Variable-density staggered conservative convective operator.

Evaluates the conservative convective term of a variable-density
incompressible flow on staggered (MAC) grids over block-structured patch
hierarchies, together with the consistent update of the staggered density.
"""

from vcins.amr.boundary import FunctionRobinBcCoefs, LocationIndexRobinBcCoefs, RobinBcCoefStrategy
from vcins.amr.ghost_fill import HierarchyGhostCellInterpolation, InterpolationTransactionComponent
from vcins.amr.hierarchy import PatchHierarchy, VariableDatabase
from vcins.config import (
    ConvectiveDifferencingType,
    ConvectiveLimiter,
    ConvectiveOperatorConfig,
    DensityTimeStepping,
    HierarchyConfig,
)
from vcins.core.bases import HierarchyVector, MassReport
from vcins.core.box import Box
from vcins.errors import ConfigurationError, ConvectiveOperatorError, PreconditionError
from vcins.fluid.convective_operator import (
    StaggeredConservativeConvectiveOperator,
    VCINSStaggeredConservativeConvectiveOperator,
)

__version__ = "0.1.0"

__all__ = [
    "Box",
    "ConfigurationError",
    "ConvectiveDifferencingType",
    "ConvectiveLimiter",
    "ConvectiveOperatorConfig",
    "ConvectiveOperatorError",
    "DensityTimeStepping",
    "FunctionRobinBcCoefs",
    "HierarchyConfig",
    "HierarchyGhostCellInterpolation",
    "HierarchyVector",
    "InterpolationTransactionComponent",
    "LocationIndexRobinBcCoefs",
    "MassReport",
    "PatchHierarchy",
    "PreconditionError",
    "RobinBcCoefStrategy",
    "StaggeredConservativeConvectiveOperator",
    "VCINSStaggeredConservativeConvectiveOperator",
    "VariableDatabase",
]
