"""Robin boundary coefficients and physical-boundary ghost filling for side data.

A Robin condition on a boundary face reads ``a*u + b*du/dn = g`` with ``n``
the outward normal. Coefficient objects return ``(a, b, g)`` arrays for the
boundary points of one location index; location index ``2*axis + side``
names the lower (side 0) or upper (side 1) boundary normal to ``axis``.

Ghost filling distinguishes the two kinds of side components at a boundary:

- the *normal* component has a sample on the boundary itself; a Dirichlet
  condition (``b == 0``) overwrites it with ``g/a`` and ghosts are
  extrapolated from it;
- *tangential* components sit half a cell inside the boundary; the first
  ghost enforces the Robin condition at the boundary,
  ``u_g = (g - u_i*(a/2 - b/h)) / (a/2 + b/h)``, and further ghosts are
  extrapolated.

Without coefficients every ghost is extrapolated (``CONSTANT`` or
``LINEAR``).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Sequence

import numpy as np

from vcins.amr.hierarchy import PatchGeometry
from vcins.constants import ROBIN_DIRICHLET_TOL
from vcins.core.box import Box
from vcins.core.patch_data import BoxArray, SideData
from vcins.errors import ConfigurationError


# ============================================================
# Coefficient objects
# ============================================================


class RobinBcCoefStrategy(ABC):
    """Provides Robin coefficients ``(a, b, g)`` on boundary points."""

    @abstractmethod
    def set_bc_coefs(
        self,
        location_index: int,
        x: Sequence[np.ndarray],
        fill_time: float,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return ``(a, b, g)`` at the boundary points ``x``.

        Args:
            location_index: ``2*axis + side`` of the boundary.
            x: Coordinate arrays (one per axis, ``indexing="ij"`` meshgrid)
                of the boundary points.
            fill_time: Time at which the condition is evaluated.

        Returns:
            Three arrays broadcastable to ``x[0].shape``.
        """


class LocationIndexRobinBcCoefs(RobinBcCoefStrategy):
    """Constant Robin coefficients per location index.

    Args:
        dim: Spatial dimension.
        a: Coefficient ``a`` per location index (default 1).
        b: Coefficient ``b`` per location index (default 0).
        g: Coefficient ``g`` per location index (default 0).
    """

    def __init__(
        self,
        dim: int,
        a: Sequence[float] | None = None,
        b: Sequence[float] | None = None,
        g: Sequence[float] | None = None,
    ) -> None:
        n = 2 * dim
        self.a = list(a) if a is not None else [1.0] * n
        self.b = list(b) if b is not None else [0.0] * n
        self.g = list(g) if g is not None else [0.0] * n
        if not (len(self.a) == len(self.b) == len(self.g) == n):
            raise ConfigurationError(
                f"Robin coefficients need {n} entries per coefficient",
                object_name="LocationIndexRobinBcCoefs",
            )

    @classmethod
    def dirichlet(cls, dim: int, values: float | Sequence[float] = 0.0) -> LocationIndexRobinBcCoefs:
        g = [values] * (2 * dim) if isinstance(values, (int, float)) else list(values)
        return cls(dim, a=[1.0] * (2 * dim), b=[0.0] * (2 * dim), g=g)

    @classmethod
    def neumann(cls, dim: int, values: float | Sequence[float] = 0.0) -> LocationIndexRobinBcCoefs:
        g = [values] * (2 * dim) if isinstance(values, (int, float)) else list(values)
        return cls(dim, a=[0.0] * (2 * dim), b=[1.0] * (2 * dim), g=g)

    def set_bc_coefs(
        self,
        location_index: int,
        x: Sequence[np.ndarray],
        fill_time: float,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        shape = np.shape(x[0])
        return (
            np.full(shape, self.a[location_index]),
            np.full(shape, self.b[location_index]),
            np.full(shape, self.g[location_index]),
        )


class FunctionRobinBcCoefs(RobinBcCoefStrategy):
    """Robin coefficients with ``g`` given by a function of position and time.

    Args:
        g_func: ``g_func(x, t, location_index) -> array``.
        a: Constant coefficient ``a``.
        b: Constant coefficient ``b``.
    """

    def __init__(
        self,
        g_func: Callable[[Sequence[np.ndarray], float, int], np.ndarray],
        a: float = 1.0,
        b: float = 0.0,
    ) -> None:
        self.g_func = g_func
        self.a = a
        self.b = b

    def set_bc_coefs(
        self,
        location_index: int,
        x: Sequence[np.ndarray],
        fill_time: float,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        shape = np.shape(x[0])
        g = np.broadcast_to(np.asarray(self.g_func(x, fill_time, location_index), dtype=float), shape)
        return np.full(shape, self.a), np.full(shape, self.b), np.array(g)


# ============================================================
# Physical boundary fill
# ============================================================


def _boundary_points(
    geometry: PatchGeometry, axis: int, slab: Box, bdry_axis: int, side: int
) -> list[np.ndarray]:
    coords = geometry.side_centers(axis, slab)
    x_bdry = geometry.x_lo[bdry_axis] + side * geometry.box.shape[bdry_axis] * geometry.dx[bdry_axis]
    coords[bdry_axis] = np.array([x_bdry])
    return np.meshgrid(*coords, indexing="ij")


def _extrapolate(
    comp: BoxArray,
    edge: Box,
    inner: Box,
    bdry_axis: int,
    outward: int,
    first: int,
    count: int,
    extrap_type: str,
) -> None:
    """Fill ``count`` ghost slabs starting ``first`` steps outside ``edge``."""
    v_edge = comp.view(edge)
    slope = v_edge - comp.view(inner) if extrap_type == "LINEAR" else 0.0
    for k in range(first, first + count):
        target = edge.shift(bdry_axis, outward * k)
        comp.view(target)[...] = v_edge + k * slope


def fill_physical_boundary(
    data: SideData,
    geometry: PatchGeometry,
    bc_coefs: Sequence[RobinBcCoefStrategy | None] | None,
    extrap_type: str,
    fill_time: float,
    homogeneous_bc: bool = False,
) -> None:
    """Fill ghost sides of ``data`` lying across non-periodic domain boundaries.

    Args:
        data: Side data of one patch, interior already set.
        geometry: Geometry of the patch.
        bc_coefs: One coefficient object (or None) per component.
        extrap_type: ``"CONSTANT"`` or ``"LINEAR"``.
        fill_time: Time handed to the coefficient objects.
        homogeneous_bc: Treat ``g`` as zero.
    """
    if extrap_type not in ("CONSTANT", "LINEAR"):
        raise ConfigurationError(f"unknown boundary extrapolation type '{extrap_type}'")
    dim = data.dim
    if data.ghosts == 0:
        return

    for bdry_axis in range(dim):
        for side in (0, 1):
            if not geometry.touches_regular_boundary(bdry_axis, side):
                continue
            outward = -1 if side == 0 else 1
            location_index = 2 * bdry_axis + side

            for axis in range(dim):
                comp = data[axis]
                coefs = bc_coefs[axis] if bc_coefs is not None else None
                edge_index = comp.box.lower[bdry_axis] if side == 0 else comp.box.upper[bdry_axis]
                edge = comp.ghost_box.slab(bdry_axis, edge_index)
                inner = edge.shift(bdry_axis, -outward)

                if axis == bdry_axis:
                    if coefs is not None:
                        x = _boundary_points(geometry, axis, edge, bdry_axis, side)
                        a, b, g = coefs.set_bc_coefs(location_index, x, fill_time)
                        if homogeneous_bc:
                            g = np.zeros_like(g)
                        dirichlet = np.abs(b) < ROBIN_DIRICHLET_TOL
                        values = comp.view(edge)
                        safe_a = np.where(dirichlet, a, 1.0)
                        values[...] = np.where(dirichlet, g / safe_a, values)
                    _extrapolate(comp, edge, inner, bdry_axis, outward, 1, data.ghosts, extrap_type)
                    continue

                if coefs is None:
                    _extrapolate(comp, edge, inner, bdry_axis, outward, 1, data.ghosts, extrap_type)
                    continue

                h = geometry.dx[bdry_axis]
                x = _boundary_points(geometry, axis, edge, bdry_axis, side)
                a, b, g = coefs.set_bc_coefs(location_index, x, fill_time)
                if homogeneous_bc:
                    g = np.zeros_like(g)
                u_i = comp.view(edge)
                ghost = edge.shift(bdry_axis, outward)
                comp.view(ghost)[...] = (g - u_i * (0.5 * a - b / h)) / (0.5 * a + b / h)
                if data.ghosts > 1:
                    _extrapolate(
                        comp, ghost, edge, bdry_axis, outward, 1, data.ghosts - 1, extrap_type
                    )
