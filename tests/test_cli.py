"""Tests for the command-line interface."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from vcins.cli.main import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "operator.json"
    path.write_text(
        json.dumps(
            {
                "vc_convective_limiter": "VC_CUI",
                "density_convective_limiter": "MGAMMA",
                "density_time_stepping_type": "SSPRK2",
            }
        )
    )
    return str(path)


class TestCheckConfig:
    def test_valid_config(self, runner, config_file):
        result = runner.invoke(cli, ["check-config", config_file])
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "Velocity limiter: CUI (ghost width 3)" in result.output
        assert "Density limiter: MGAMMA" in result.output
        assert "SSPRK2" in result.output

    def test_invalid_config(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"convective_limiter": "PPM"}))
        result = runner.invoke(cli, ["check-config", str(path)])
        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_malformed_json(self, runner, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        result = runner.invoke(cli, ["check-config", str(path)])
        assert result.exit_code == 1

    def test_missing_file(self, runner):
        result = runner.invoke(cli, ["check-config", "/nonexistent/operator.json"])
        assert result.exit_code != 0


class TestStepTest:
    def test_default_run(self, runner):
        result = runner.invoke(cli, ["step-test", "--nx", "16"])
        assert result.exit_code == 0, result.output
        assert "Step Advection Summary" in result.output
        assert "exact_shift: PASS" in result.output

    def test_limiter_choice_case_insensitive(self, runner):
        result = runner.invoke(cli, ["-v", "step-test", "--nx", "16", "--limiter", "cui", "--time-stepping", "ssprk2"])
        assert result.exit_code == 0, result.output
        assert "no_new_extrema: PASS" in result.output

    def test_unknown_limiter_rejected(self, runner):
        result = runner.invoke(cli, ["step-test", "--limiter", "PPM"])
        assert result.exit_code == 2
