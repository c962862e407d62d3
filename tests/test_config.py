"""Tests for the pydantic configuration models and the error taxonomy."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from vcins.config import (
    ConvectiveLimiter,
    ConvectiveOperatorConfig,
    DensityTimeStepping,
    HierarchyConfig,
)
from vcins.errors import ConfigurationError, ConvectiveOperatorError, PreconditionError


class TestConvectiveOperatorConfig:
    """Verify operator option parsing."""

    def test_defaults(self):
        config = ConvectiveOperatorConfig()
        assert config.bdry_extrap_type == "CONSTANT"
        assert config.velocity_limiter is ConvectiveLimiter.UPWIND
        assert config.density_limiter is ConvectiveLimiter.UPWIND
        assert config.density_time_stepping_type is DensityTimeStepping.FORWARD_EULER

    def test_input_database_aliases(self):
        config = ConvectiveOperatorConfig(
            **{
                "vc_convective_limiter": "VC_MGAMMA",
                "vc_density_time_stepping_type": "vc_ssprk2",
                "bdry_extrap_type": "linear",
            }
        )
        assert config.convective_limiter is ConvectiveLimiter.MGAMMA
        assert config.density_time_stepping_type is DensityTimeStepping.SSPRK2
        assert config.bdry_extrap_type == "LINEAR"

    def test_per_quantity_overrides(self):
        config = ConvectiveOperatorConfig(
            convective_limiter="CUI", velocity_convective_limiter="FBICS"
        )
        assert config.velocity_limiter is ConvectiveLimiter.FBICS
        assert config.density_limiter is ConvectiveLimiter.CUI

    def test_unknown_limiter(self):
        with pytest.raises(ValidationError):
            ConvectiveOperatorConfig(convective_limiter="SUPERBEE")

    def test_unknown_extrapolation(self):
        with pytest.raises(ValidationError, match="bdry_extrap_type"):
            ConvectiveOperatorConfig(bdry_extrap_type="QUADRATIC")

    def test_json_roundtrip(self, tmp_path):
        config = ConvectiveOperatorConfig(
            convective_limiter="CUI", density_time_stepping_type="SSPRK2"
        )
        path = tmp_path / "op.json"
        text = config.to_json(path)
        assert json.loads(text)["convective_limiter"] == "CUI"
        loaded = ConvectiveOperatorConfig.from_file(path)
        assert loaded == config


class TestHierarchyConfig:
    """Verify hierarchy geometry validation."""

    def test_valid(self):
        config = HierarchyConfig(
            domain={"lower": [0, 0, 0], "upper": [7, 7, 7]},
            x_lo=[0.0, 0.0, 0.0],
            x_up=[1.0, 1.0, 1.0],
        )
        assert config.dim == 3
        assert config.refinement_ratio == 2
        assert config.levels == []

    def test_inverted_extent(self):
        with pytest.raises(ValidationError, match="strictly below"):
            HierarchyConfig(
                domain={"lower": [0, 0], "upper": [7, 7]}, x_lo=[1.0, 0.0], x_up=[0.0, 1.0]
            )

    def test_empty_box(self):
        with pytest.raises(ValidationError, match="empty box"):
            HierarchyConfig(domain={"lower": [0, 4], "upper": [7, 3]}, x_lo=[0.0, 0.0], x_up=[1.0, 1.0])

    def test_dimension_mismatch(self):
        with pytest.raises(ValidationError, match="periodic"):
            HierarchyConfig(
                domain={"lower": [0, 0], "upper": [7, 7]},
                x_lo=[0.0, 0.0],
                x_up=[1.0, 1.0],
                periodic=[True],
            )

    def test_owner_count(self):
        with pytest.raises(ValidationError, match="one rank per box"):
            HierarchyConfig(
                domain={"lower": [0, 0], "upper": [7, 7]},
                x_lo=[0.0, 0.0],
                x_up=[1.0, 1.0],
                levels=[{"boxes": [{"lower": [0, 0], "upper": [7, 7]}], "owners": [0, 1]}],
            )

    def test_from_file(self, tmp_path):
        path = tmp_path / "hierarchy.json"
        path.write_text(
            json.dumps(
                {
                    "domain": {"lower": [0, 0], "upper": [15, 7]},
                    "x_lo": [0.0, 0.0],
                    "x_up": [2.0, 1.0],
                    "periodic": [True, True],
                    "refinement_ratio": 4,
                }
            )
        )
        config = HierarchyConfig.from_file(path)
        assert config.refinement_ratio == 4
        assert config.periodic == [True, True]


class TestErrors:
    """Verify error messages and class hierarchy."""

    def test_message_carries_name_and_context(self):
        err = ConfigurationError("bad limiter", object_name="op", context={"limiter": "PPM"})
        assert str(err) == "op: bad limiter (limiter=PPM)"
        assert err.object_name == "op"
        assert err.context == {"limiter": "PPM"}

    def test_hierarchy(self):
        assert issubclass(ConfigurationError, ValueError)
        assert issubclass(PreconditionError, RuntimeError)
        assert issubclass(PreconditionError, ConvectiveOperatorError)
        assert str(PreconditionError("plain")) == "plain"
