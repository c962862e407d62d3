"""Patch kernels for the conservative staggered convective operator.

For the control volumes of axis ``a`` (the side box of the patch normal to
``a``) and each direction ``d``:

- advective velocity on the lower face ``f`` of control volume ``f``:
  ``U_adv[a][d](f) = (u_d(f - e_a) + u_d(f)) / 2``;
- momentum flux ``P[a][d] = R_half[a][d] * U_half[a][d]``;
- convective derivative
  ``N_a(s) = sum_d (U_adv P)[a][d](s + e_d) - (U_adv P)[a][d](s)) / dx_d``;
- density update by the discrete divergence of ``U_adv * R_half`` with the
  same stencil, so mass is conserved face by face.

Sides on a physical wall are half control volumes. Their divergence along
the wall normal closes on the wall flux ``u_a * q_a`` taken at the side.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from vcins.core.box import Box, unit_vector
from vcins.core.patch_data import FaceData, SideData


def compute_advection_velocity(u: SideData, patch_box: Box) -> list[FaceData]:
    """Average staggered velocity onto the faces of every control volume.

    Requires ``u`` to carry at least one ghost.
    """
    dim = patch_box.dim
    u_adv = []
    for axis in range(dim):
        cv_box = patch_box.side_box(axis)
        faces_data = FaceData(cv_box)
        shift = unit_vector(dim, axis, -1)
        for d in range(dim):
            faces = cv_box.side_box(d)
            faces_data[d].view(faces)[...] = 0.5 * (
                u[d].view(faces, offset=shift) + u[d].view(faces)
            )
        u_adv.append(faces_data)
    return u_adv


def compute_momentum(r_half: Sequence[FaceData], u_half: Sequence[FaceData]) -> list[FaceData]:
    """Face momentum ``rho_half * u_half`` for every control volume axis."""
    p_half = []
    for r_faces, u_faces in zip(r_half, u_half):
        p_faces = FaceData(r_faces.box)
        for d in range(r_faces.dim):
            p_faces[d].array[...] = r_faces[d].array * u_faces[d].array
        p_half.append(p_faces)
    return p_half


WallFlux = tuple[Optional[np.ndarray], Optional[np.ndarray]]


def compute_wall_fluxes(
    u: SideData,
    quantities: Sequence[SideData],
    patch_box: Box,
    touches_regular: Sequence[Sequence[bool]],
) -> list[WallFlux]:
    """Normal flux through the physical walls of each axis's control volumes.

    At a wall side the flux is ``u_a * prod(q_a)`` evaluated on the side
    itself. Sides not on a physical boundary get ``None``.

    Args:
        u: Velocity with boundary values already filled.
        quantities: Side quantities multiplied into the flux (``[rho]`` for
            mass, ``[rho, u]`` for momentum).
        patch_box: Cell box of the patch.
        touches_regular: ``[axis][side]`` flags for non-periodic boundaries.

    Returns:
        One ``(lower, upper)`` pair per axis, each a slab shaped array.
    """
    fluxes = []
    for axis in range(patch_box.dim):
        side_box = patch_box.side_box(axis)
        pair = []
        for side, index in enumerate((side_box.lower[axis], side_box.upper[axis])):
            if not touches_regular[axis][side]:
                pair.append(None)
                continue
            slab = side_box.slab(axis, index)
            flux = u[axis].view(slab).copy()
            for q in quantities:
                flux *= q[axis].view(slab)
            pair.append(flux)
        fluxes.append((pair[0], pair[1]))
    return fluxes


def flux_divergence(
    q_half: FaceData,
    u_adv: FaceData,
    dx: Sequence[float],
    axis: int | None = None,
    wall_flux: WallFlux = (None, None),
) -> np.ndarray:
    """Discrete divergence of ``u_adv * q_half`` over one axis's control volumes.

    A side lying on a physical wall owns only the half control volume inside
    the domain. Along ``axis`` its divergence is taken over that half width,
    between the first interior face and the wall flux, so the half weighted
    sum over a patch telescopes to the wall fluxes.

    Args:
        q_half: Face values of the transported quantity.
        u_adv: Advective velocity on the same faces.
        dx: Grid spacing.
        axis: Normal axis of the control volumes. Needed with ``wall_flux``.
        wall_flux: ``(lower, upper)`` wall fluxes along ``axis``, or ``None``
            where the side is not on a wall.

    Returns:
        Array shaped like the control-volume box ``q_half.box``.
    """
    div = np.zeros(q_half.box.shape)
    for d in range(q_half.dim):
        flux = u_adv[d].view() * q_half[d].view()
        ddiv = np.diff(flux, axis=d) / dx[d]
        if d == axis:
            lower, upper = wall_flux
            if lower is not None:
                first = _slab_index(d, 0)
                ddiv[first] = (flux[_slab_index(d, 1)] - lower) / (0.5 * dx[d])
            if upper is not None:
                last = _slab_index(d, -1)
                ddiv[last] = (upper - flux[_slab_index(d, -2)]) / (0.5 * dx[d])
        div += ddiv
    return div


def _slab_index(axis: int, index: int) -> tuple[slice, ...]:
    # Keeps the reduced axis so slabs broadcast against wall flux arrays.
    stop = index + 1 if index != -1 else None
    return (slice(None),) * axis + (slice(index, stop),)


def compute_convective_derivative(
    n: SideData,
    p_half: Sequence[FaceData],
    u_adv: Sequence[FaceData],
    patch_box: Box,
    dx: Sequence[float],
    wall_fluxes: Sequence[WallFlux] | None = None,
) -> None:
    """Write ``N = div(U_adv * P)`` into the interior sides of ``n``."""
    for axis in range(patch_box.dim):
        cv_box = patch_box.side_box(axis)
        wall = wall_fluxes[axis] if wall_fluxes is not None else (None, None)
        n[axis].view(cv_box)[...] = flux_divergence(p_half[axis], u_adv[axis], dx, axis, wall)


def forward_euler_density(
    rho_new: SideData,
    rho: SideData,
    r_half: Sequence[FaceData],
    u_adv: Sequence[FaceData],
    patch_box: Box,
    dx: Sequence[float],
    dt: float,
    wall_fluxes: Sequence[WallFlux] | None = None,
) -> None:
    """``rho_new = rho - dt * div(U_adv * R_half)`` on every interior side."""
    for axis in range(patch_box.dim):
        cv_box = patch_box.side_box(axis)
        wall = wall_fluxes[axis] if wall_fluxes is not None else (None, None)
        div = flux_divergence(r_half[axis], u_adv[axis], dx, axis, wall)
        rho_new[axis].view(cv_box)[...] = rho[axis].view(cv_box) - dt * div


def ssprk2_density(
    rho_new: SideData,
    rho_old: SideData,
    rho_stage: SideData,
    r_half: Sequence[FaceData],
    u_adv: Sequence[FaceData],
    patch_box: Box,
    dx: Sequence[float],
    dt: float,
    wall_fluxes: Sequence[WallFlux] | None = None,
) -> None:
    """Second SSP-RK2 stage in Shu-Osher form.

    ``rho_new = rho_old / 2 + (rho_stage - dt * div(U_adv * R_half)) / 2``
    where ``R_half`` and the wall fluxes come from the stage density.
    """
    for axis in range(patch_box.dim):
        cv_box = patch_box.side_box(axis)
        wall = wall_fluxes[axis] if wall_fluxes is not None else (None, None)
        div = flux_divergence(r_half[axis], u_adv[axis], dx, axis, wall)
        rho_new[axis].view(cv_box)[...] = 0.5 * rho_old[axis].view(cv_box) + 0.5 * (
            rho_stage[axis].view(cv_box) - dt * div
        )
