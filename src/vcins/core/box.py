"""Integer index-space boxes for block-structured grids.

Boxes are inclusive on both ends, the way SAMRAI describes patch regions:
a box with ``lower=(0, 0)`` and ``upper=(3, 7)`` holds 4 x 8 cells. Side
(staggered) and face index spaces are derived from the cell box by extending
the upper bound by one along the normal axis.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence


@dataclass(frozen=True)
class Box:
    """Axis-aligned inclusive box of integer indices.

    Attributes:
        lower: Smallest index along each axis.
        upper: Largest index along each axis.
    """

    lower: tuple[int, ...]
    upper: tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "lower", tuple(int(i) for i in self.lower))
        object.__setattr__(self, "upper", tuple(int(i) for i in self.upper))
        if len(self.lower) != len(self.upper):
            raise ValueError(
                f"Box bounds differ in dimension: {self.lower} vs {self.upper}"
            )

    # ----------------------------------------------------------
    # Queries
    # ----------------------------------------------------------

    @property
    def dim(self) -> int:
        return len(self.lower)

    @property
    def shape(self) -> tuple[int, ...]:
        """Number of indices along each axis (zero for empty boxes)."""
        return tuple(max(hi - lo + 1, 0) for lo, hi in zip(self.lower, self.upper))

    @property
    def size(self) -> int:
        n = 1
        for extent in self.shape:
            n *= extent
        return n

    def empty(self) -> bool:
        return any(hi < lo for lo, hi in zip(self.lower, self.upper))

    def contains(self, index: Sequence[int]) -> bool:
        return all(lo <= i <= hi for lo, i, hi in zip(self.lower, index, self.upper))

    def contains_box(self, other: Box) -> bool:
        if other.empty():
            return True
        return all(
            lo <= olo and ohi <= hi
            for lo, hi, olo, ohi in zip(self.lower, self.upper, other.lower, other.upper)
        )

    # ----------------------------------------------------------
    # Derived boxes
    # ----------------------------------------------------------

    def grow(self, width: int | Sequence[int]) -> Box:
        """Return the box grown by ``width`` on every side (per axis if a sequence)."""
        if isinstance(width, int):
            width = (width,) * self.dim
        return Box(
            tuple(lo - w for lo, w in zip(self.lower, width)),
            tuple(hi + w for hi, w in zip(self.upper, width)),
        )

    def shift(self, axis: int, offset: int) -> Box:
        """Return the box translated by ``offset`` along ``axis``."""
        lower = list(self.lower)
        upper = list(self.upper)
        lower[axis] += offset
        upper[axis] += offset
        return Box(tuple(lower), tuple(upper))

    def translate(self, offset: Sequence[int]) -> Box:
        return Box(
            tuple(lo + o for lo, o in zip(self.lower, offset)),
            tuple(hi + o for hi, o in zip(self.upper, offset)),
        )

    def side_box(self, axis: int) -> Box:
        """Index space of the sides normal to ``axis`` bounding this cell box."""
        upper = list(self.upper)
        upper[axis] += 1
        return Box(self.lower, tuple(upper))

    def cell_box_of_side(self, axis: int) -> Box:
        """Inverse of :meth:`side_box`."""
        upper = list(self.upper)
        upper[axis] -= 1
        return Box(self.lower, tuple(upper))

    def intersect(self, other: Box) -> Box:
        return Box(
            tuple(max(a, b) for a, b in zip(self.lower, other.lower)),
            tuple(min(a, b) for a, b in zip(self.upper, other.upper)),
        )

    def __mul__(self, other: Box) -> Box:
        return self.intersect(other)

    def refine(self, ratio: int) -> Box:
        """Cell box covering the same region on a level ``ratio`` times finer."""
        return Box(
            tuple(lo * ratio for lo in self.lower),
            tuple((hi + 1) * ratio - 1 for hi in self.upper),
        )

    def coarsen(self, ratio: int) -> Box:
        """Smallest cell box on a level ``ratio`` times coarser covering this box."""
        return Box(
            tuple(lo // ratio for lo in self.lower),
            tuple(hi // ratio for hi in self.upper),
        )

    def slab(self, axis: int, index: int) -> Box:
        """The one-index-thick slice of this box at ``index`` along ``axis``."""
        lower = list(self.lower)
        upper = list(self.upper)
        lower[axis] = index
        upper[axis] = index
        return Box(tuple(lower), tuple(upper))

    def indices(self) -> Iterator[tuple[int, ...]]:
        """Iterate over all indices in lexicographic order."""
        if self.empty():
            return
        index = list(self.lower)
        while True:
            yield tuple(index)
            for axis in range(self.dim - 1, -1, -1):
                index[axis] += 1
                if index[axis] <= self.upper[axis]:
                    break
                index[axis] = self.lower[axis]
            else:
                return

    def __repr__(self) -> str:
        return f"Box({list(self.lower)}, {list(self.upper)})"


def unit_vector(dim: int, axis: int, magnitude: int = 1) -> tuple[int, ...]:
    """Integer offset of ``magnitude`` along ``axis``."""
    return tuple(magnitude if d == axis else 0 for d in range(dim))
