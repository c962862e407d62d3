"""Mass diagnostics for staggered density on a patch hierarchy.

Every side belongs to the two cells it separates. A cell counts on the
coarsest level that is not covered by a finer one, and it lends half its
volume to each of its two sides normal to a given axis. Hence

    w_a(s) = cell_volume / 2 * #{c in {s - e_a, s} : c in patch box, c not covered}

Sides shared by two patches, or lying on a periodic or coarse-fine
interface, are counted once in total, and the weights of each axis sum to the
domain volume. For a field linear in space the weighted sum is the exact
domain integral, once per component.

Sides on a physical wall get half a cell, the same half control volume the
density update uses there, so the sum changes only by the wall fluxes.
"""

from __future__ import annotations

import logging

import numpy as np

from vcins.amr.hierarchy import PatchHierarchy
from vcins.core.bases import MassReport
from vcins.core.communicator import Communicator
from vcins.core.patch_data import SideData

logger = logging.getLogger(__name__)


def side_weights(
    hierarchy: PatchHierarchy,
    coarsest_ln: int = 0,
    finest_ln: int | None = None,
) -> dict[tuple[int, int], SideData]:
    """Control-volume weights of every side on the local patches.

    Returns:
        Weights keyed by ``(level_number, patch_number)``.
    """
    finest_ln = hierarchy.finest_level_number if finest_ln is None else finest_ln
    weights: dict[tuple[int, int], SideData] = {}
    for ln in range(coarsest_ln, finest_ln + 1):
        for patch in hierarchy.get_patch_level(ln):
            if ln < finest_ln:
                covered = hierarchy.covered_by_finer(ln, patch.box)
            else:
                covered = np.zeros(patch.box.shape, dtype=bool)
            owned = (~covered).astype(float)
            half_vol = 0.5 * patch.geometry.cell_volume

            w = SideData(patch.box)
            for axis in range(hierarchy.dim):
                pad = [(1, 1) if d == axis else (0, 0) for d in range(hierarchy.dim)]
                padded = np.pad(owned, pad)
                lower = [slice(None)] * hierarchy.dim
                upper = [slice(None)] * hierarchy.dim
                lower[axis] = slice(None, -1)
                upper[axis] = slice(1, None)
                w[axis].array[...] = half_vol * (padded[tuple(lower)] + padded[tuple(upper)])
            weights[(ln, patch.patch_number)] = w
    return weights


class MassDiagnostics:
    """Weighted collective sums of staggered density.

    Args:
        hierarchy: Hierarchy holding the density.
        coarsest_ln: Coarsest level in range.
        finest_ln: Finest level in range.
        communicator: Reduction communicator (default: the hierarchy's).
    """

    def __init__(
        self,
        hierarchy: PatchHierarchy,
        coarsest_ln: int = 0,
        finest_ln: int | None = None,
        communicator: Communicator | None = None,
    ) -> None:
        self.hierarchy = hierarchy
        self.coarsest_ln = coarsest_ln
        self.finest_ln = hierarchy.finest_level_number if finest_ln is None else finest_ln
        self.communicator = communicator or hierarchy.communicator
        self.weights = side_weights(hierarchy, self.coarsest_ln, self.finest_ln)

    def integral(self, idx: int) -> float:
        """Global weighted sum of the side data at ``idx`` (collective)."""
        local = 0.0
        for ln in range(self.coarsest_ln, self.finest_ln + 1):
            for patch in self.hierarchy.get_patch_level(ln):
                data = patch.get_patch_data(idx)
                w = self.weights[(ln, patch.patch_number)]
                for axis in range(self.hierarchy.dim):
                    local += float(np.sum(data[axis].view() * w[axis].array))
        return self.communicator.allreduce_sum(local)

    def report(self, mass_old: float, rho_new_idx: int, object_name: str = "") -> MassReport:
        """Compute the updated mass and log it against ``mass_old``."""
        mass_new = self.integral(rho_new_idx)
        report = MassReport(mass_old=mass_old, mass_new=mass_new, change=mass_new - mass_old)
        logger.info("%s: mass of density before update: %.16e", object_name, report.mass_old)
        logger.info("%s: mass of density after update: %.16e", object_name, report.mass_new)
        logger.info("%s: change in mass: %.16e", object_name, report.change)
        return report
