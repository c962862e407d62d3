"""Static block-structured patch hierarchy for staggered data.

The hierarchy is an ordered list of refinement levels. Level 0 covers the
physical domain; each finer level holds disjoint boxes, expressed in its own
index space, that nest inside the next coarser level. Patch data is
registered once in a process-wide :class:`VariableDatabase` and allocated per
level by integer patch data index, the way SAMRAI hierarchies hand out
storage.

Refinement decisions are not made here: levels are built from explicit box
lists (see :class:`vcins.config.HierarchyConfig`).

Reference:
    Berger & Colella, "Local adaptive mesh refinement for shock
    hydrodynamics", JCP 82, 64-84 (1989).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, Sequence

import numpy as np

from vcins.config import HierarchyConfig
from vcins.core.box import Box
from vcins.core.communicator import Communicator, SerialCommunicator
from vcins.core.patch_data import SideData
from vcins.errors import ConfigurationError, PreconditionError

logger = logging.getLogger(__name__)


# ============================================================
# Variable database
# ============================================================


class VariableDatabase:
    """Process-wide registry of (variable, context) pairs and their ghost widths.

    Each registration yields an integer patch data index that levels use to
    allocate and look up :class:`SideData`.
    """

    _instance: VariableDatabase | None = None

    def __init__(self) -> None:
        self._indices: dict[tuple[str, str], int] = {}
        self._ghosts: dict[int, int] = {}
        self._names: dict[int, tuple[str, str]] = {}

    @classmethod
    def get_database(cls) -> VariableDatabase:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def register_variable_and_context(self, variable: str, context: str, ghosts: int) -> int:
        """Return the patch data index of ``variable`` in ``context``.

        An existing registration is reused when its ghost width covers
        ``ghosts``.

        Raises:
            ConfigurationError: If the existing registration is too narrow.
        """
        key = (variable, context)
        if key in self._indices:
            idx = self._indices[key]
            if self._ghosts[idx] < ghosts:
                raise ConfigurationError(
                    "registered ghost width is smaller than the stencil requires",
                    object_name="VariableDatabase",
                    context={
                        "variable": variable,
                        "context": context,
                        "registered": self._ghosts[idx],
                        "required": ghosts,
                    },
                )
            return idx
        idx = len(self._names)
        self._indices[key] = idx
        self._ghosts[idx] = ghosts
        self._names[idx] = key
        logger.debug("Registered %s::%s as index %d (ghosts=%d)", variable, context, idx, ghosts)
        return idx

    def ghost_width(self, idx: int) -> int:
        try:
            return self._ghosts[idx]
        except KeyError:
            raise PreconditionError(
                f"unknown patch data index {idx}", object_name="VariableDatabase"
            ) from None

    def name_of(self, idx: int) -> str:
        variable, context = self._names[idx]
        return f"{variable}::{context}"

    def reset(self) -> None:
        """Forget every registration."""
        self._indices.clear()
        self._ghosts.clear()
        self._names.clear()


# ============================================================
# Patches
# ============================================================


@dataclass
class PatchGeometry:
    """Cartesian geometry of a single patch.

    Attributes:
        dx: Grid spacing along each axis.
        x_lo: Physical coordinate of the lower corner of the patch box.
        box: Cell box of the patch in its level's index space.
        touches_regular: ``[axis][side]`` flags for non-periodic domain boundaries.
        touches_periodic: ``[axis][side]`` flags for periodic domain boundaries.
    """

    dx: tuple[float, ...]
    x_lo: tuple[float, ...]
    box: Box
    touches_regular: tuple[tuple[bool, bool], ...]
    touches_periodic: tuple[tuple[bool, bool], ...]

    def touches_regular_boundary(self, axis: int, side: int) -> bool:
        return self.touches_regular[axis][side]

    def touches_periodic_boundary(self, axis: int, side: int) -> bool:
        return self.touches_periodic[axis][side]

    @property
    def cell_volume(self) -> float:
        return float(np.prod(self.dx))

    def side_centers(self, axis: int, region: Box) -> list[np.ndarray]:
        """Coordinates of the sides normal to ``axis`` over ``region``.

        Returns one 1D array per dimension; the ``axis`` entry sits on
        cell edges, the others on cell centers.
        """
        coords = []
        for d in range(region.dim):
            idx = np.arange(region.lower[d], region.upper[d] + 1) - self.box.lower[d]
            offset = 0.0 if d == axis else 0.5
            coords.append(self.x_lo[d] + (idx + offset) * self.dx[d])
        return coords


@dataclass
class Patch:
    """A box of one level together with its allocated patch data.

    Attributes:
        box: Cell box in the level's index space.
        level_number: Refinement level (0 = coarsest).
        patch_number: Position within the level.
        geometry: Spacing, coordinates and boundary-touching flags.
        owner: Rank owning this patch.
        data: Allocated side data keyed by patch data index.
    """

    box: Box
    level_number: int
    patch_number: int
    geometry: PatchGeometry
    owner: int = 0
    data: dict[int, SideData] = field(default_factory=dict)

    def get_patch_data(self, idx: int) -> SideData:
        try:
            return self.data[idx]
        except KeyError:
            raise PreconditionError(
                "patch data is not allocated",
                object_name="Patch",
                context={"level": self.level_number, "patch": self.patch_number, "index": idx},
            ) from None

    def check_allocated(self, idx: int) -> bool:
        return idx in self.data


# ============================================================
# Levels
# ============================================================


class PatchLevel:
    """One refinement level: disjoint boxes with a common grid spacing.

    Args:
        level_number: Index of the level in the hierarchy.
        boxes: Cell boxes in this level's index space.
        ratio_to_level_zero: Refinement ratio relative to level 0.
        dx: Grid spacing on this level.
        domain_box: Physical domain in this level's index space.
        x_lo: Physical coordinate of the domain's lower corner.
        periodic: Periodic flag per axis.
        owners: Owning rank per box.
        communicator: Communicator deciding which patches are local.
    """

    def __init__(
        self,
        level_number: int,
        boxes: Sequence[Box],
        ratio_to_level_zero: int,
        dx: tuple[float, ...],
        domain_box: Box,
        x_lo: tuple[float, ...],
        periodic: tuple[bool, ...],
        owners: Sequence[int] | None = None,
        communicator: Communicator | None = None,
    ) -> None:
        self.level_number = level_number
        self.ratio_to_level_zero = ratio_to_level_zero
        self.dx = dx
        self.domain_box = domain_box
        self.periodic = periodic
        self.communicator = communicator or SerialCommunicator()
        owners = list(owners) if owners is not None else [0] * len(boxes)

        self.patches: list[Patch] = []
        for pn, (box, owner) in enumerate(zip(boxes, owners)):
            touches_regular = []
            touches_periodic = []
            for axis in range(box.dim):
                at_bdry = (
                    box.lower[axis] == domain_box.lower[axis],
                    box.upper[axis] == domain_box.upper[axis],
                )
                if periodic[axis]:
                    touches_regular.append((False, False))
                    touches_periodic.append(at_bdry)
                else:
                    touches_regular.append(at_bdry)
                    touches_periodic.append((False, False))
            patch_x_lo = tuple(
                x_lo[d] + (box.lower[d] - domain_box.lower[d]) * dx[d] for d in range(box.dim)
            )
            geometry = PatchGeometry(
                dx=dx,
                x_lo=patch_x_lo,
                box=box,
                touches_regular=tuple(touches_regular),
                touches_periodic=tuple(touches_periodic),
            )
            self.patches.append(Patch(box, level_number, pn, geometry, owner))

    @property
    def boxes(self) -> list[Box]:
        return [p.box for p in self.patches]

    @property
    def periodic_shift(self) -> tuple[int, ...]:
        """Domain extent along periodic axes (0 elsewhere)."""
        return tuple(
            n if periodic else 0 for n, periodic in zip(self.domain_box.shape, self.periodic)
        )

    def __iter__(self) -> Iterator[Patch]:
        """Iterate over the patches owned by this process."""
        rank = self.communicator.rank
        return (p for p in self.patches if p.owner == rank)

    def __len__(self) -> int:
        return len(self.patches)

    def allocate_patch_data(self, idx: int, ghosts: int | None = None) -> None:
        if ghosts is None:
            ghosts = VariableDatabase.get_database().ghost_width(idx)
        for patch in self:
            if idx not in patch.data:
                patch.data[idx] = SideData(patch.box, ghosts)

    def deallocate_patch_data(self, idx: int) -> None:
        for patch in self:
            patch.data.pop(idx, None)

    def check_allocated(self, idx: int) -> bool:
        return all(patch.check_allocated(idx) for patch in self)


# ============================================================
# Hierarchy
# ============================================================


class PatchHierarchy:
    """Ordered sequence of nested refinement levels.

    Args:
        domain: Level-0 cell box of the physical domain.
        x_lo: Physical lower corner of the domain.
        x_up: Physical upper corner of the domain.
        periodic: Periodic flag per axis (default: none periodic).
        refinement_ratio: Ratio between successive levels.
        communicator: Communicator for patch ownership and reductions.
    """

    def __init__(
        self,
        domain: Box,
        x_lo: Sequence[float],
        x_up: Sequence[float],
        periodic: Sequence[bool] | None = None,
        refinement_ratio: int = 2,
        communicator: Communicator | None = None,
    ) -> None:
        self.domain = domain
        self.x_lo = tuple(float(x) for x in x_lo)
        self.x_up = tuple(float(x) for x in x_up)
        self.periodic = tuple(periodic) if periodic is not None else (False,) * domain.dim
        self.refinement_ratio = refinement_ratio
        self.communicator = communicator or SerialCommunicator()
        self.dx0 = tuple(
            (up - lo) / n for lo, up, n in zip(self.x_lo, self.x_up, domain.shape)
        )
        self.levels: list[PatchLevel] = []

        logger.info(
            "PatchHierarchy initialized: dim=%d, domain %s, periodic=%s, ratio=%d",
            domain.dim,
            domain,
            self.periodic,
            refinement_ratio,
        )

    @classmethod
    def from_config(
        cls, config: HierarchyConfig, communicator: Communicator | None = None
    ) -> PatchHierarchy:
        """Build a hierarchy and all of its levels from a configuration."""
        domain = Box(tuple(config.domain.lower), tuple(config.domain.upper))
        hierarchy = cls(
            domain,
            config.x_lo,
            config.x_up,
            periodic=config.periodic,
            refinement_ratio=config.refinement_ratio,
            communicator=communicator,
        )
        levels = list(config.levels)
        if not levels:
            hierarchy.make_new_level([domain])
        for level in levels:
            boxes = [Box(tuple(b.lower), tuple(b.upper)) for b in level.boxes]
            hierarchy.make_new_level(boxes, owners=level.owners)
        return hierarchy

    @property
    def dim(self) -> int:
        return self.domain.dim

    @property
    def finest_level_number(self) -> int:
        return len(self.levels) - 1

    @property
    def number_of_levels(self) -> int:
        return len(self.levels)

    def get_patch_level(self, ln: int) -> PatchLevel:
        return self.levels[ln]

    def make_new_level(self, boxes: Sequence[Box], owners: Sequence[int] | None = None) -> PatchLevel:
        """Append the next finer level built from ``boxes``.

        Raises:
            ConfigurationError: If boxes leave the domain, overlap, or do not
                nest inside the next coarser level.
        """
        ln = len(self.levels)
        ratio = self.refinement_ratio**ln
        domain_box = self.domain.refine(ratio) if ln > 0 else self.domain
        dx = tuple(h / ratio for h in self.dx0)

        for i, box in enumerate(boxes):
            if not domain_box.contains_box(box):
                raise ConfigurationError(
                    "level box leaves the physical domain",
                    object_name="PatchHierarchy",
                    context={"level": ln, "box": box, "domain": domain_box},
                )
            for other in boxes[i + 1:]:
                if not box.intersect(other).empty():
                    raise ConfigurationError(
                        "level boxes overlap",
                        object_name="PatchHierarchy",
                        context={"level": ln, "boxes": (box, other)},
                    )
        if ln > 0:
            r = self.refinement_ratio
            for box in boxes:
                if any(lo % r or (hi + 1) % r for lo, hi in zip(box.lower, box.upper)):
                    raise ConfigurationError(
                        "level box is not aligned with the coarser level",
                        object_name="PatchHierarchy",
                        context={"level": ln, "box": box, "ratio": r},
                    )
            coarse = self.levels[ln - 1]
            coarse_cover = _box_mask(coarse.domain_box, coarse.boxes)
            for box in boxes:
                region = box.coarsen(self.refinement_ratio)
                if not np.all(_view_mask(coarse_cover, coarse.domain_box, region)):
                    raise ConfigurationError(
                        "level box is not nested in the next coarser level",
                        object_name="PatchHierarchy",
                        context={"level": ln, "box": box},
                    )

        level = PatchLevel(
            ln,
            boxes,
            ratio,
            dx,
            domain_box,
            self.x_lo,
            self.periodic,
            owners=owners,
            communicator=self.communicator,
        )
        self.levels.append(level)
        logger.info("Level %d created: %d patches, dx=%s", ln, len(boxes), dx)
        return level

    def covered_by_finer(self, ln: int, region: Box) -> np.ndarray:
        """Boolean mask over the cells of ``region`` covered by level ``ln + 1``."""
        mask = np.zeros(region.shape, dtype=bool)
        if ln >= self.finest_level_number:
            return mask
        for fine_box in self.levels[ln + 1].boxes:
            overlap = fine_box.coarsen(self.refinement_ratio).intersect(region)
            if overlap.empty():
                continue
            mask[_relative_slices(region, overlap)] = True
        return mask

    def allocate_patch_data(self, idx: int, coarsest_ln: int = 0, finest_ln: int | None = None) -> None:
        finest_ln = self.finest_level_number if finest_ln is None else finest_ln
        for ln in range(coarsest_ln, finest_ln + 1):
            self.levels[ln].allocate_patch_data(idx)

    def deallocate_patch_data(self, idx: int, coarsest_ln: int = 0, finest_ln: int | None = None) -> None:
        finest_ln = self.finest_level_number if finest_ln is None else finest_ln
        for ln in range(coarsest_ln, finest_ln + 1):
            self.levels[ln].deallocate_patch_data(idx)


def _relative_slices(outer: Box, inner: Box) -> tuple[slice, ...]:
    return tuple(
        slice(lo - olo, hi - olo + 1) for lo, hi, olo in zip(inner.lower, inner.upper, outer.lower)
    )


def _box_mask(domain: Box, boxes: Sequence[Box]) -> np.ndarray:
    mask = np.zeros(domain.shape, dtype=bool)
    for box in boxes:
        mask[_relative_slices(domain, box.intersect(domain))] = True
    return mask


def _view_mask(mask: np.ndarray, domain: Box, region: Box) -> np.ndarray:
    return mask[_relative_slices(domain, region.intersect(domain))]
