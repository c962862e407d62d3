"""Patch data containers for staggered (side-centered) quantities.

:class:`BoxArray` is the strided view every kernel works through: a numpy
array covering an index-space box grown by a ghost width, addressed by
index-space boxes rather than raw offsets. :class:`SideData` stores one
``BoxArray`` per axis on the side boxes of a cell box, and
:class:`FaceData` stores the transient face values bounding the staggered
control volumes of one axis.
"""

from __future__ import annotations

from typing import Iterator, Sequence

import numpy as np

from vcins.core.box import Box


class BoxArray:
    """Array of values over ``box`` grown by ``ghosts`` on every side.

    Args:
        box: Owned (interior) index region.
        ghosts: Halo width around ``box``.
        dtype: Array element type.
    """

    def __init__(self, box: Box, ghosts: int = 0, dtype: type = np.float64) -> None:
        if ghosts < 0:
            raise ValueError(f"ghost width must be non-negative, got {ghosts}")
        self.box = box
        self.ghosts = ghosts
        self.ghost_box = box.grow(ghosts)
        self.array = np.zeros(self.ghost_box.shape, dtype=dtype)

    def _slices(self, region: Box) -> tuple[slice, ...]:
        if not self.ghost_box.contains_box(region):
            raise IndexError(f"{region} lies outside the allocated region {self.ghost_box}")
        return tuple(
            slice(lo - glo, hi - glo + 1)
            for lo, hi, glo in zip(region.lower, region.upper, self.ghost_box.lower)
        )

    def view(self, region: Box | None = None, offset: Sequence[int] | None = None) -> np.ndarray:
        """Writable view of the values at ``region`` translated by ``offset``.

        Args:
            region: Index region (default: the interior box).
            offset: Integer shift applied to ``region`` before slicing, so
                ``view(box, offset=-e_d)`` reads the ``i - e_d`` neighbors of
                every index ``i`` in ``box``.

        Returns:
            numpy view with shape ``region.shape``.
        """
        if region is None:
            region = self.box
        if offset is not None:
            region = region.translate(offset)
        return self.array[self._slices(region)]

    def fill(self, value: float, region: Box | None = None) -> None:
        self.view(region if region is not None else self.ghost_box)[...] = value

    def copy_from(
        self,
        src: BoxArray,
        region: Box | None = None,
        shift: Sequence[int] | None = None,
    ) -> Box:
        """Copy ``src`` values into this array over ``region``.

        Destination index ``i`` receives ``src[i - shift]``. The region is
        clipped to what both arrays hold.

        Returns:
            The destination region actually written (possibly empty).
        """
        shift = tuple(shift) if shift is not None else (0,) * self.box.dim
        src_box = src.ghost_box.translate(shift)
        target = self.ghost_box.intersect(src_box)
        if region is not None:
            target = target.intersect(region)
        if target.empty():
            return target
        neg = tuple(-s for s in shift)
        self.view(target)[...] = src.view(target, offset=neg)
        return target


class SideData:
    """Side-centered data on a cell box: one :class:`BoxArray` per axis.

    Component ``a`` lives on ``box.side_box(a)``, the sides normal to axis
    ``a``, each carrying the same ghost width.

    Args:
        box: Cell box of the patch.
        ghosts: Ghost width of every component.
    """

    def __init__(self, box: Box, ghosts: int = 0, dtype: type = np.float64) -> None:
        self.box = box
        self.ghosts = ghosts
        self.components = [
            BoxArray(box.side_box(axis), ghosts, dtype=dtype) for axis in range(box.dim)
        ]

    @property
    def dim(self) -> int:
        return self.box.dim

    def __getitem__(self, axis: int) -> BoxArray:
        return self.components[axis]

    def __iter__(self) -> Iterator[BoxArray]:
        return iter(self.components)

    def fill(self, value: float) -> None:
        for comp in self.components:
            comp.fill(value)

    def copy_from(self, src: SideData, interior_only: bool = True) -> None:
        """Copy ``src`` into this data over the shared (interior) sides."""
        for dst_comp, src_comp in zip(self.components, src.components):
            region = dst_comp.box.intersect(src_comp.box) if interior_only else None
            dst_comp.copy_from(src_comp, region)


class FaceData(SideData):
    """Values on the faces bounding the staggered control volumes of one axis.

    The control volumes of axis ``a`` form the index box ``cv_box =
    patch_box.side_box(a)``; component ``d`` holds the faces normal to ``d``
    of those volumes, ``cv_box.side_box(d)``. Face ``f`` is the lower face of
    control volume ``f``.
    """

    def __init__(self, cv_box: Box, dtype: type = np.float64) -> None:
        super().__init__(cv_box, ghosts=0, dtype=dtype)
