"""Static patch hierarchies, inter-level transfer and ghost filling for side data."""

from vcins.amr.ghost_fill import HierarchyGhostCellInterpolation, InterpolationTransactionComponent
from vcins.amr.hierarchy import Patch, PatchGeometry, PatchHierarchy, PatchLevel, VariableDatabase

__all__ = [
    "HierarchyGhostCellInterpolation",
    "InterpolationTransactionComponent",
    "Patch",
    "PatchGeometry",
    "PatchHierarchy",
    "PatchLevel",
    "VariableDatabase",
]
