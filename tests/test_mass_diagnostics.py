"""Tests for control-volume weights and the mass diagnostic."""

from __future__ import annotations

import logging

import numpy as np
import pytest

from vcins.core.communicator import Communicator
from vcins.diagnostics.mass import MassDiagnostics, side_weights


class _ScalingCommunicator(Communicator):
    """Pretends three ranks contributed identical sums."""

    rank = 0
    size = 1

    def allreduce_sum(self, value):
        return 3.0 * value

    def barrier(self):
        return None


class TestSideWeights:
    """Verify the unique-owner side weights."""

    def test_weights_sum_to_domain_volume(self, two_level_hierarchy):
        weights = side_weights(two_level_hierarchy)
        for axis in range(2):
            total = sum(float(w[axis].array.sum()) for w in weights.values())
            assert total == pytest.approx(1.0, rel=1e-14)

    def test_periodic_faces_counted_once(self, periodic_hierarchy):
        w = side_weights(periodic_hierarchy)[(0, 0)]
        half_vol = 0.5 / 256
        assert w[0].array[0, 0] == pytest.approx(half_vol)
        assert w[0].array[-1, 0] == pytest.approx(half_vol)
        assert w[0].array[5, 3] == pytest.approx(2.0 * half_vol)

    def test_covered_coarse_sides_have_no_weight(self, two_level_hierarchy):
        w = side_weights(two_level_hierarchy)[(0, 0)]
        # x-sides strictly inside the refined coarse cells 2..5
        np.testing.assert_array_equal(w[0].array[3:6, 2:6], 0.0)
        # Coarse-fine interface side: one owned coarse neighbor
        assert w[0].array[2, 3] == pytest.approx(0.5 / 64)


class TestMassDiagnostics:
    """Verify weighted integrals of staggered data."""

    def test_linear_field_integrates_exactly(self, two_level_hierarchy, register, fill_sides):
        """Each component contributes the domain integral of the field."""
        idx = register("rho")
        two_level_hierarchy.allocate_patch_data(idx)
        fill_sides(two_level_hierarchy, idx, lambda axis, x, y: 1.0 + x + 2.0 * y)
        mass = MassDiagnostics(two_level_hierarchy)
        # integral of 1 + x + 2y over the unit square is 2.5
        assert mass.integral(idx) == pytest.approx(2 * 2.5, rel=1e-13)

    def test_reduction_goes_through_communicator(self, periodic_hierarchy, register):
        idx = register("rho")
        periodic_hierarchy.allocate_patch_data(idx)
        for patch in periodic_hierarchy.get_patch_level(0):
            patch.get_patch_data(idx).fill(1.0)
        mass = MassDiagnostics(periodic_hierarchy, communicator=_ScalingCommunicator())
        assert mass.integral(idx) == pytest.approx(3.0 * 2 * 0.5)

    def test_report_logs_mass(self, periodic_hierarchy, register, caplog):
        idx = register("rho")
        periodic_hierarchy.allocate_patch_data(idx)
        for patch in periodic_hierarchy.get_patch_level(0):
            patch.get_patch_data(idx).fill(2.0)
        mass = MassDiagnostics(periodic_hierarchy)
        with caplog.at_level(logging.INFO, logger="vcins.diagnostics.mass"):
            report = mass.report(0.5, idx, "op")
        assert report.mass_new == pytest.approx(2.0)
        assert report.change == pytest.approx(1.5)
        assert "op: change in mass" in caplog.text
