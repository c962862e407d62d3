"""Tests for hierarchy ghost filling, transfer operators and Robin boundaries.

Tests cover:
- Periodic and same-level ghost copies
- Physical boundary extrapolation and Robin conditions
- Coarsening and linear refinement of side data
- Fill-plan validation and lifecycle
"""

from __future__ import annotations

import typing

import numpy as np
import pytest

from vcins.amr.boundary import FunctionRobinBcCoefs, LocationIndexRobinBcCoefs, RobinBcCoefStrategy
from vcins.amr.ghost_fill import HierarchyGhostCellInterpolation, InterpolationTransactionComponent
from vcins.amr.hierarchy import PatchHierarchy
from vcins.amr.transfer import coarsen_side_component, mc_slope, refine_side_component
from vcins.core.box import Box
from vcins.core.patch_data import BoxArray
from vcins.errors import ConfigurationError, PreconditionError


def _linear(axis, x, y):
    return 1.0 + x + 2.0 * y + axis


def _fill(hierarchy, component):
    fill = HierarchyGhostCellInterpolation("test::fill")
    fill.initialize_operator_state(component, hierarchy)
    fill.fill_data(0.0)
    return fill


def _wall_hierarchy(boxes=None):
    h = PatchHierarchy(Box((0, 0), (7, 3)), (0.0, 0.0), (1.0, 0.5), periodic=(False, True))
    h.make_new_level(boxes or [h.domain])
    return h


class TestSameLevelFill:
    """Verify periodic and patch-to-patch ghost copies."""

    def test_periodic_ghosts(self, periodic_hierarchy, register, fill_sides):
        src = register("src")
        dst = register("dst", ghosts=2)
        periodic_hierarchy.allocate_patch_data(src)
        periodic_hierarchy.allocate_patch_data(dst)
        fill_sides(periodic_hierarchy, src, lambda axis, x, y: np.sin(2 * np.pi * x) + np.cos(4 * np.pi * y))
        _fill(periodic_hierarchy, InterpolationTransactionComponent(dst, src))

        patch = periodic_hierarchy.get_patch_level(0).patches[0]
        comp = patch.get_patch_data(dst)[0]
        # x-sides 0..16 along x; index -1 images index 15, index 17 images index 1
        np.testing.assert_allclose(comp.view(Box((-1, 0), (-1, 7))), comp.view(Box((15, 0), (15, 7))))
        np.testing.assert_allclose(comp.view(Box((17, 0), (17, 7))), comp.view(Box((1, 0), (1, 7))))
        np.testing.assert_allclose(comp.view(Box((0, -2), (16, -1))), comp.view(Box((0, 6), (16, 7))))
        # Upper periodic face takes its lower image
        np.testing.assert_array_equal(comp.view(Box((16, 0), (16, 7))), comp.view(Box((0, 0), (0, 7))))

    def test_two_patches_match_single_patch(self, register, fill_sides):
        func = lambda axis, x, y: np.exp(x) * (1.0 + y) + axis  # noqa: E731
        single = _wall_hierarchy()
        split = _wall_hierarchy([Box((0, 0), (3, 3)), Box((4, 0), (7, 3))])
        src = register("src")
        dst = register("dst", ghosts=2)
        for h in (single, split):
            h.allocate_patch_data(src)
            h.allocate_patch_data(dst)
            fill_sides(h, src, func)
            _fill(h, InterpolationTransactionComponent(dst, src))

        whole = single.get_patch_level(0).patches[0].get_patch_data(dst)
        for patch in split.get_patch_level(0):
            data = patch.get_patch_data(dst)
            for axis in range(2):
                region = data[axis].ghost_box
                np.testing.assert_allclose(data[axis].view(region), whole[axis].view(region))


class TestPhysicalBoundary:
    """Verify extrapolation and Robin conditions at non-periodic walls."""

    def test_constant_extrapolation(self, register, fill_sides):
        h = _wall_hierarchy()
        src, dst = register("src"), register("dst", ghosts=2)
        h.allocate_patch_data(src)
        h.allocate_patch_data(dst)
        fill_sides(h, src, _linear)
        _fill(h, InterpolationTransactionComponent(dst, src, phys_bdry_extrap_type="CONSTANT"))
        comp = h.get_patch_level(0).patches[0].get_patch_data(dst)[0]
        edge = comp.view(Box((0, 0), (0, 3)))
        np.testing.assert_array_equal(comp.view(Box((-1, 0), (-1, 3))), edge)
        np.testing.assert_array_equal(comp.view(Box((-2, 0), (-2, 3))), edge)

    def test_linear_extrapolation_is_exact_for_linear_data(self, register, fill_sides):
        h = _wall_hierarchy()
        src, dst = register("src"), register("dst", ghosts=2)
        h.allocate_patch_data(src)
        h.allocate_patch_data(dst)
        fill_sides(h, src, _linear)
        _fill(h, InterpolationTransactionComponent(dst, src, phys_bdry_extrap_type="LINEAR"))
        patch = h.get_patch_level(0).patches[0]
        for axis in range(2):
            comp = patch.get_patch_data(dst)[axis]
            region = Box((comp.ghost_box.lower[0], 0), (comp.ghost_box.upper[0], 3))
            mesh = np.meshgrid(*patch.geometry.side_centers(axis, region), indexing="ij")
            np.testing.assert_allclose(comp.view(region), _linear(axis, *mesh), atol=1e-12)

    def test_dirichlet_tangential_and_normal(self, register, fill_sides):
        """Tangential ghosts average to g at the wall; normal wall sides equal g."""
        h = _wall_hierarchy()
        src, dst = register("src"), register("dst", ghosts=2)
        h.allocate_patch_data(src)
        h.allocate_patch_data(dst)
        fill_sides(h, src, _linear)
        bc = LocationIndexRobinBcCoefs.dirichlet(2, [3.0, -1.0, 0.0, 0.0])
        _fill(h, InterpolationTransactionComponent(dst, src, robin_bc_coefs=[bc, bc]))
        data = h.get_patch_level(0).patches[0].get_patch_data(dst)

        np.testing.assert_allclose(data[0].view(Box((0, 0), (0, 3))), 3.0)
        np.testing.assert_allclose(data[0].view(Box((8, 0), (8, 3))), -1.0)
        ghost = data[1].view(Box((-1, 0), (-1, 4)))
        inner = data[1].view(Box((0, 0), (0, 4)))
        np.testing.assert_allclose(0.5 * (ghost + inner), 3.0)

    def test_homogeneous_dirichlet(self, register, fill_sides):
        h = _wall_hierarchy()
        src, dst = register("src"), register("dst", ghosts=2)
        h.allocate_patch_data(src)
        h.allocate_patch_data(dst)
        fill_sides(h, src, _linear)
        bc = LocationIndexRobinBcCoefs.dirichlet(2, 5.0)
        fill = HierarchyGhostCellInterpolation()
        fill.initialize_operator_state(
            InterpolationTransactionComponent(dst, src, robin_bc_coefs=[bc, bc]), h
        )
        fill.set_homogeneous_bc(True)
        fill.fill_data(0.0)
        data = h.get_patch_level(0).patches[0].get_patch_data(dst)
        np.testing.assert_allclose(data[0].view(Box((0, 0), (0, 3))), 0.0)

    def test_neumann_tangential(self, register, fill_sides):
        """Zero normal derivative copies the interior value into the first ghost."""
        h = _wall_hierarchy()
        src, dst = register("src"), register("dst", ghosts=2)
        h.allocate_patch_data(src)
        h.allocate_patch_data(dst)
        fill_sides(h, src, _linear)
        bc = LocationIndexRobinBcCoefs.neumann(2)
        _fill(h, InterpolationTransactionComponent(dst, src, robin_bc_coefs=[None, bc]))
        data = h.get_patch_level(0).patches[0].get_patch_data(dst)
        np.testing.assert_allclose(
            data[1].view(Box((-1, 0), (-1, 4))), data[1].view(Box((0, 0), (0, 4)))
        )

    def test_function_coefficients_receive_boundary_points(self, register, fill_sides):
        calls = []

        def g(x, t, location_index):
            calls.append((location_index, t))
            return x[1]

        h = _wall_hierarchy()
        src, dst = register("src"), register("dst", ghosts=2)
        h.allocate_patch_data(src)
        h.allocate_patch_data(dst)
        fill_sides(h, src, _linear)
        bc = FunctionRobinBcCoefs(g)
        fill = HierarchyGhostCellInterpolation()
        fill.initialize_operator_state(InterpolationTransactionComponent(dst, src, robin_bc_coefs=[bc, None]), h)
        fill.fill_data(0.25)
        data = h.get_patch_level(0).patches[0].get_patch_data(dst)
        y = (np.arange(-2, 6) + 0.5) / 8
        np.testing.assert_allclose(data[0].view(Box((0, -2), (0, 5)))[0], y)
        assert {loc for loc, _ in calls} == {0, 1}
        assert all(t == 0.25 for _, t in calls)

    def test_robin_coefficient_count(self):
        with pytest.raises(ConfigurationError, match="4 entries"):
            LocationIndexRobinBcCoefs(2, a=[1.0, 1.0])

    @pytest.mark.parametrize("cls", [LocationIndexRobinBcCoefs, FunctionRobinBcCoefs])
    def test_coefficient_signatures_match_strategy(self, cls):
        expected = typing.get_type_hints(RobinBcCoefStrategy.set_bc_coefs)
        assert typing.get_type_hints(cls.set_bc_coefs) == expected


class TestTransferOperators:
    """Verify coarsening and refinement of side components."""

    def test_mc_slope(self):
        np.testing.assert_allclose(mc_slope(np.array([1.0, 1.0, -1.0]), np.array([1.0, 3.0, 1.0])), [1.0, 2.0, 0.0])

    def test_coarsen_averages_coincident_sides(self):
        fine = BoxArray(Box((0, 0), (4, 3)))
        fine.array[...] = np.arange(20, dtype=float).reshape(5, 4)
        coarse = BoxArray(Box((0, 0), (2, 1)))
        coarsen_side_component(fine, coarse, coarse.box, axis=0, ratio=2)
        # Coarse side (I, J) averages fine sides (2I, 2J) and (2I, 2J + 1)
        expected = fine.array[::2].reshape(3, 2, 2).mean(axis=2)
        np.testing.assert_allclose(coarse.view(), expected)

    def test_refine_reproduces_linear_field(self):
        coarse = BoxArray(Box((0, 0), (4, 3)), ghosts=1)
        ii, jj = np.meshgrid(
            np.arange(-1, 6, dtype=float), np.arange(-1, 5, dtype=float), indexing="ij"
        )
        coarse.array[...] = 2.0 * ii + 3.0 * (jj + 0.5)
        fine_region = Box((2, 2), (6, 5))
        fi, fj = np.meshgrid(np.arange(2, 7), np.arange(2, 6), indexing="ij")
        expected = 2.0 * fi / 2.0 + 3.0 * (fj + 0.5) / 2.0
        out = refine_side_component(coarse, fine_region, axis=0, ratio=2)
        np.testing.assert_allclose(out, expected, atol=1e-12)

    def test_constant_refine_injects(self):
        coarse = BoxArray(Box((0,), (3,)))
        coarse.array[...] = [1.0, 2.0, 3.0, 4.0]
        out = refine_side_component(coarse, Box((2,), (5,)), axis=0, ratio=2, op_name="CONSTANT_REFINE")
        np.testing.assert_array_equal(out, [2.0, 2.0, 3.0, 3.0])

    def test_unknown_refine_operator(self):
        with pytest.raises(ConfigurationError, match="unknown refine operator"):
            refine_side_component(BoxArray(Box((0,), (3,))), Box((0,), (1,)), 0, 2, "QUADRATIC")


class TestTwoLevelFill:
    """Verify coarse-fine ghost filling on a two-level hierarchy."""

    def test_linear_field_filled_exactly(self, two_level_hierarchy, register, fill_sides):
        h = two_level_hierarchy
        src, dst = register("src"), register("dst", ghosts=2)
        h.allocate_patch_data(src)
        h.allocate_patch_data(dst)
        fill_sides(h, src, _linear)
        _fill(h, InterpolationTransactionComponent(dst, src, phys_bdry_extrap_type="LINEAR"))
        for level in h.levels:
            for patch in level:
                for axis in range(2):
                    comp = patch.get_patch_data(dst)[axis]
                    mesh = np.meshgrid(*patch.geometry.side_centers(axis, comp.ghost_box), indexing="ij")
                    np.testing.assert_allclose(comp.array, _linear(axis, *mesh), atol=1e-12)

    def test_coarse_data_synchronized_from_fine(self, two_level_hierarchy, register):
        h = two_level_hierarchy
        src, dst = register("src"), register("dst", ghosts=2)
        h.allocate_patch_data(src)
        h.allocate_patch_data(dst)
        for patch in h.get_patch_level(1):
            patch.get_patch_data(src).fill(7.0)
        _fill(h, InterpolationTransactionComponent(dst, src))
        coarse = h.get_patch_level(0).patches[0].get_patch_data(dst)
        np.testing.assert_allclose(coarse[0].view(Box((2, 2), (6, 5))), 7.0)
        np.testing.assert_allclose(coarse[0].view(Box((0, 0), (1, 7))), 0.0)


class TestFillPlanLifecycle:
    """Verify fill-plan validation and state handling."""

    def test_fill_before_initialize(self):
        with pytest.raises(PreconditionError, match="not initialized"):
            HierarchyGhostCellInterpolation().fill_data(0.0)

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"refine_op_name": "CUBIC"}, "unknown refine operator"),
            ({"coarsen_op_name": "INJECT"}, "unknown coarsen operator"),
            ({"phys_bdry_extrap_type": "QUADRATIC"}, "unknown boundary extrapolation"),
            ({"robin_bc_coefs": [None]}, "expected 2 boundary coefficient objects"),
        ],
    )
    def test_invalid_component(self, periodic_hierarchy, kwargs, message):
        fill = HierarchyGhostCellInterpolation()
        with pytest.raises(ConfigurationError, match=message):
            fill.initialize_operator_state(InterpolationTransactionComponent(0, 0, **kwargs), periodic_hierarchy)

    def test_reset_and_deallocate(self, periodic_hierarchy, register):
        a, b = register("a", ghosts=1), register("b", ghosts=1)
        periodic_hierarchy.allocate_patch_data(a)
        periodic_hierarchy.allocate_patch_data(b)
        fill = HierarchyGhostCellInterpolation()
        fill.initialize_operator_state(InterpolationTransactionComponent(a, a), periodic_hierarchy)
        fill.reset_transaction_components(InterpolationTransactionComponent(b, a))
        fill.fill_data(0.0)
        assert fill.is_initialized
        fill.deallocate_operator_state()
        assert not fill.is_initialized
        with pytest.raises(PreconditionError):
            fill.reset_transaction_components(InterpolationTransactionComponent(b, a))
