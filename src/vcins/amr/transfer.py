"""Inter-level transfer operators for side-centered data.

Coarsening replaces each coarse side coincident with fine sides by the
area-weighted mean of the ``ratio**(dim-1)`` fine sides it covers, which
preserves the flux through every coarse face. Refinement interpolates
linearly along the side normal (coarse faces are exact samples there) and
uses MC-limited linear reconstruction in the tangential, cell-centered
directions, so the fine sides inside a coarse face average back to the coarse
value.

All operators act on :class:`~vcins.core.patch_data.BoxArray` views and
work in any dimension.
"""

from __future__ import annotations

import numpy as np

from vcins.core.box import Box
from vcins.core.patch_data import BoxArray
from vcins.errors import ConfigurationError


def _broadcast_along(values: np.ndarray, axis: int, ndim: int) -> np.ndarray:
    shape = [1] * ndim
    shape[axis] = -1
    return values.reshape(shape)


def mc_slope(left: np.ndarray, right: np.ndarray) -> np.ndarray:
    """Monotonized-central slope from one-sided differences."""
    centered = 0.5 * (left + right)
    bound = np.minimum(np.abs(centered), 2.0 * np.minimum(np.abs(left), np.abs(right)))
    return np.where(left * right > 0.0, np.sign(centered) * bound, 0.0)


# ============================================================
# Coarsening
# ============================================================


def coarsen_side_component(
    fine: BoxArray,
    coarse: BoxArray,
    coarse_region: Box,
    axis: int,
    ratio: int,
) -> None:
    """Average fine sides normal to ``axis`` onto the coincident coarse sides.

    Args:
        fine: Fine side data for ``axis``.
        coarse: Coarse side data for ``axis`` (written in place).
        coarse_region: Coarse side indices to overwrite; every fine side they
            cover must be present in ``fine``.
        axis: Normal axis of the side component.
        ratio: Refinement ratio.
    """
    if coarse_region.empty():
        return
    dim = coarse_region.dim
    lower = []
    upper = []
    for d in range(dim):
        if d == axis:
            lower.append(coarse_region.lower[d] * ratio)
            upper.append(coarse_region.upper[d] * ratio)
        else:
            lower.append(coarse_region.lower[d] * ratio)
            upper.append(coarse_region.upper[d] * ratio + ratio - 1)
    values = fine.view(Box(tuple(lower), tuple(upper)))
    stride = tuple(slice(None, None, ratio) if d == axis else slice(None) for d in range(dim))
    values = values[stride]

    shape: list[int] = []
    mean_axes: list[int] = []
    for d in range(dim):
        if d == axis:
            shape.append(values.shape[d])
        else:
            shape.extend([values.shape[d] // ratio, ratio])
            mean_axes.append(len(shape) - 1)
    coarse.view(coarse_region)[...] = values.reshape(shape).mean(axis=tuple(mean_axes))


# ============================================================
# Refinement
# ============================================================


def refine_stencil_region(fine_region: Box, axis: int, ratio: int) -> Box:
    """Coarse side indices read when refining ``fine_region``."""
    lower = []
    upper = []
    for d in range(fine_region.dim):
        lo = fine_region.lower[d] // ratio
        hi = fine_region.upper[d] // ratio
        if d == axis:
            lower.append(lo)
            upper.append(hi + 1)
        else:
            lower.append(lo - 1)
            upper.append(hi + 1)
    return Box(tuple(lower), tuple(upper))


def refine_side_component(
    coarse: BoxArray,
    fine_region: Box,
    axis: int,
    ratio: int,
    op_name: str = "CONSERVATIVE_LINEAR_REFINE",
) -> np.ndarray:
    """Interpolate coarse sides normal to ``axis`` onto ``fine_region``.

    Coarse values outside ``coarse`` are replaced by the nearest available
    ones, so the stencil degrades to constant at the edge of the data.

    Args:
        coarse: Coarse side data for ``axis``.
        fine_region: Fine side indices to produce.
        axis: Normal axis of the side component.
        ratio: Refinement ratio.
        op_name: ``"CONSERVATIVE_LINEAR_REFINE"`` or ``"CONSTANT_REFINE"``.

    Returns:
        Array of shape ``fine_region.shape``.
    """
    if op_name not in ("CONSERVATIVE_LINEAR_REFINE", "CONSTANT_REFINE"):
        raise ConfigurationError(f"unknown refine operator '{op_name}'")
    dim = fine_region.dim
    src_region = refine_stencil_region(fine_region, axis, ratio).intersect(coarse.ghost_box)
    values = coarse.view(src_region).copy()

    for d in range(dim):
        fine_idx = np.arange(fine_region.lower[d], fine_region.upper[d] + 1)
        coarse_idx = np.floor_divide(fine_idx, ratio)
        rel = coarse_idx - src_region.lower[d]
        n = values.shape[d]
        base = np.take(values, np.clip(rel, 0, n - 1), axis=d)
        if op_name == "CONSTANT_REFINE":
            values = base
        elif d == axis:
            weight = (fine_idx - coarse_idx * ratio) / ratio
            upper_val = np.take(values, np.clip(rel + 1, 0, n - 1), axis=d)
            values = base + _broadcast_along(weight, d, dim) * (upper_val - base)
        else:
            offset = (fine_idx - coarse_idx * ratio + 0.5) / ratio - 0.5
            lower_val = np.take(values, np.clip(rel - 1, 0, n - 1), axis=d)
            upper_val = np.take(values, np.clip(rel + 1, 0, n - 1), axis=d)
            slope = mc_slope(base - lower_val, upper_val - base)
            values = base + _broadcast_along(offset, d, dim) * slope
    return values
