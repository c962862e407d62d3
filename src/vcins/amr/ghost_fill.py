"""Hierarchy-wide ghost (halo) filling for side-centered patch data.

A fill plan is a list of :class:`InterpolationTransactionComponent` entries,
each naming a source and destination patch data index together with the
transfer operators and boundary treatment to use. Plans are either cached
for the lifetime of an operator or built for one fill and thrown away.

``fill_data`` runs, for every component:

1. copy of the source interior into the destination interior;
2. fine-to-coarse coarsening of the destination, finest level first;
3. for each level, coarsest first:
   a. coarse-to-fine refinement into ghost regions;
   b. same-level and periodic-image copies between patches;
   c. physical boundary conditions.

The service exchanges data between patches of the same process only.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Sequence

from vcins.amr.boundary import RobinBcCoefStrategy, fill_physical_boundary
from vcins.amr.hierarchy import PatchHierarchy, PatchLevel
from vcins.amr.transfer import coarsen_side_component, refine_side_component, refine_stencil_region
from vcins.constants import (
    BDRY_EXTRAP_TYPES,
    COARSEN_OP_NAMES,
    DEFAULT_BDRY_EXTRAP_TYPE,
    DEFAULT_COARSEN_OP,
    DEFAULT_REFINE_OP,
    REFINE_OP_NAMES,
)
from vcins.core.patch_data import BoxArray
from vcins.errors import ConfigurationError, PreconditionError

logger = logging.getLogger(__name__)


@dataclass
class InterpolationTransactionComponent:
    """Describes one source-to-destination ghost fill.

    Attributes:
        dst_data_idx: Patch data index filled (interior and ghosts).
        src_data_idx: Patch data index providing interior values.
        refine_op_name: Coarse-to-fine operator for ghost regions.
        coarsen_op_name: Fine-to-coarse operator synchronizing coarse data.
        phys_bdry_extrap_type: Extrapolation across physical boundaries.
        robin_bc_coefs: One Robin coefficient object (or None) per component.
    """

    dst_data_idx: int
    src_data_idx: int
    refine_op_name: str = DEFAULT_REFINE_OP
    coarsen_op_name: str = DEFAULT_COARSEN_OP
    phys_bdry_extrap_type: str = DEFAULT_BDRY_EXTRAP_TYPE
    robin_bc_coefs: Sequence[RobinBcCoefStrategy | None] | None = None


class HierarchyGhostCellInterpolation:
    """Fills ghost regions of side data across a patch hierarchy.

    Args:
        object_name: Name used in log messages and errors.
    """

    def __init__(self, object_name: str = "HierarchyGhostCellInterpolation") -> None:
        self.object_name = object_name
        self._components: list[InterpolationTransactionComponent] = []
        self._hierarchy: PatchHierarchy | None = None
        self._coarsest_ln = 0
        self._finest_ln = 0
        self._homogeneous_bc = False
        self._is_initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    def _validate(self, components: Sequence[InterpolationTransactionComponent], dim: int) -> None:
        for comp in components:
            if comp.refine_op_name not in REFINE_OP_NAMES:
                raise ConfigurationError(
                    f"unknown refine operator '{comp.refine_op_name}'", object_name=self.object_name
                )
            if comp.coarsen_op_name not in COARSEN_OP_NAMES:
                raise ConfigurationError(
                    f"unknown coarsen operator '{comp.coarsen_op_name}'", object_name=self.object_name
                )
            if comp.phys_bdry_extrap_type not in BDRY_EXTRAP_TYPES:
                raise ConfigurationError(
                    f"unknown boundary extrapolation type '{comp.phys_bdry_extrap_type}'",
                    object_name=self.object_name,
                )
            if comp.robin_bc_coefs is not None and len(comp.robin_bc_coefs) != dim:
                raise ConfigurationError(
                    f"expected {dim} boundary coefficient objects, got {len(comp.robin_bc_coefs)}",
                    object_name=self.object_name,
                )

    def initialize_operator_state(
        self,
        components: InterpolationTransactionComponent | Sequence[InterpolationTransactionComponent],
        hierarchy: PatchHierarchy,
        coarsest_ln: int | None = None,
        finest_ln: int | None = None,
    ) -> None:
        """Set up the fill plan for ``components`` on the given level range."""
        if self._is_initialized:
            self.deallocate_operator_state()
        if isinstance(components, InterpolationTransactionComponent):
            components = [components]
        self._validate(components, hierarchy.dim)
        self._components = list(components)
        self._hierarchy = hierarchy
        self._coarsest_ln = 0 if coarsest_ln is None else coarsest_ln
        self._finest_ln = hierarchy.finest_level_number if finest_ln is None else finest_ln
        self._is_initialized = True
        logger.debug(
            "%s: initialized %d components on levels %d..%d",
            self.object_name,
            len(self._components),
            self._coarsest_ln,
            self._finest_ln,
        )

    def reset_transaction_components(
        self,
        components: InterpolationTransactionComponent | Sequence[InterpolationTransactionComponent],
    ) -> None:
        if not self._is_initialized:
            raise PreconditionError("fill plan is not initialized", object_name=self.object_name)
        if isinstance(components, InterpolationTransactionComponent):
            components = [components]
        self._validate(components, self._hierarchy.dim)
        self._components = list(components)

    def set_homogeneous_bc(self, homogeneous_bc: bool) -> None:
        self._homogeneous_bc = homogeneous_bc

    def deallocate_operator_state(self) -> None:
        self._components = []
        self._hierarchy = None
        self._is_initialized = False

    # ----------------------------------------------------------
    # Filling
    # ----------------------------------------------------------

    def fill_data(self, fill_time: float) -> None:
        """Fill interiors and ghost regions of every destination index.

        Raises:
            PreconditionError: If the plan is not initialized or data is unallocated.
            NotImplementedError: If the hierarchy spans several processes.
        """
        if not self._is_initialized:
            raise PreconditionError("fill plan is not initialized", object_name=self.object_name)
        if self._hierarchy.communicator.size > 1:
            raise NotImplementedError(
                "cross-process halo exchange is provided by the host framework"
            )
        for comp in self._components:
            self._fill_component(comp, fill_time)

    def _fill_component(self, comp: InterpolationTransactionComponent, fill_time: float) -> None:
        hierarchy = self._hierarchy
        src, dst = comp.src_data_idx, comp.dst_data_idx

        if src != dst:
            for ln in range(self._coarsest_ln, self._finest_ln + 1):
                for patch in hierarchy.get_patch_level(ln):
                    patch.get_patch_data(dst).copy_from(patch.get_patch_data(src))

        if comp.coarsen_op_name != "NONE":
            for ln in range(self._finest_ln, self._coarsest_ln, -1):
                self._coarsen_level(ln, dst)

        for ln in range(self._coarsest_ln, self._finest_ln + 1):
            level = hierarchy.get_patch_level(ln)
            if ln > self._coarsest_ln and comp.refine_op_name != "NONE":
                self._refine_ghosts(ln, dst, comp.refine_op_name)
            self._fill_same_level(level, dst)
            for patch in level:
                fill_physical_boundary(
                    patch.get_patch_data(dst),
                    patch.geometry,
                    comp.robin_bc_coefs,
                    comp.phys_bdry_extrap_type,
                    fill_time,
                    self._homogeneous_bc,
                )
        logger.debug("%s: filled index %d from %d at t=%g", self.object_name, dst, src, fill_time)

    def _coarsen_level(self, ln: int, idx: int) -> None:
        hierarchy = self._hierarchy
        ratio = hierarchy.refinement_ratio
        coarse_level = hierarchy.get_patch_level(ln - 1)
        for fine_patch in hierarchy.get_patch_level(ln):
            fine_data = fine_patch.get_patch_data(idx)
            cbox = fine_patch.box.coarsen(ratio)
            for coarse_patch in coarse_level:
                coarse_data = coarse_patch.get_patch_data(idx)
                for axis in range(hierarchy.dim):
                    region = cbox.side_box(axis).intersect(coarse_patch.box.side_box(axis))
                    coarsen_side_component(fine_data[axis], coarse_data[axis], region, axis, ratio)

    def _refine_ghosts(self, ln: int, idx: int, op_name: str) -> None:
        hierarchy = self._hierarchy
        ratio = hierarchy.refinement_ratio
        coarse_level = hierarchy.get_patch_level(ln - 1)
        for patch in hierarchy.get_patch_level(ln):
            data = patch.get_patch_data(idx)
            for axis in range(hierarchy.dim):
                comp = data[axis]
                saved = comp.view().copy()
                coarse_values = BoxArray(refine_stencil_region(comp.ghost_box, axis, ratio))
                for coarse_patch in coarse_level:
                    coarse_values.copy_from(coarse_patch.get_patch_data(idx)[axis])
                for coarse_patch in coarse_level:
                    cp_comp = coarse_patch.get_patch_data(idx)[axis]
                    coarse_values.copy_from(cp_comp, region=cp_comp.box)
                comp.view(comp.ghost_box)[...] = refine_side_component(
                    coarse_values, comp.ghost_box, axis, ratio, op_name
                )
                comp.view()[...] = saved

    def _fill_same_level(self, level: PatchLevel, idx: int) -> None:
        dim = self._hierarchy.dim
        shifts_per_axis = [(0, -n, n) if n else (0,) for n in level.periodic_shift]
        shifts = list(itertools.product(*shifts_per_axis))

        # The upper periodic face duplicates its lower image, so it is left out
        # of the snapshots and filled by the shifted copy of the lower face.
        snapshots: dict[int, list[BoxArray]] = {}
        for patch in level:
            snaps = []
            for axis, comp in enumerate(patch.get_patch_data(idx)):
                keep = comp.box
                if level.periodic[axis] and patch.geometry.touches_periodic_boundary(axis, 1):
                    keep = keep.cell_box_of_side(axis)
                snap = BoxArray(keep)
                snap.array[...] = comp.view(keep)
                snaps.append(snap)
            snapshots[patch.patch_number] = snaps

        for patch in level:
            data = patch.get_patch_data(idx)
            for axis in range(dim):
                comp = data[axis]
                for other in level:
                    for shift in shifts:
                        if other is patch and not any(shift):
                            continue
                        comp.copy_from(snapshots[other.patch_number][axis], shift=shift)
                own = snapshots[patch.patch_number][axis]
                comp.view(own.box)[...] = own.view()
