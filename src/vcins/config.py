"""Pydantic v2 configuration for the convective operator and patch hierarchies.

Provides validated, typed configuration for the variable-density staggered
convective operator (limiters, density time stepping, boundary extrapolation)
and for building static block-structured hierarchies. Option names from
existing input databases (``vc_convective_limiter`` and friends) are accepted
as aliases, and enumerant values may carry the ``VC_`` prefix.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from vcins.constants import BDRY_EXTRAP_TYPES, DEFAULT_BDRY_EXTRAP_TYPE


class ConvectiveLimiter(str, Enum):
    """Face reconstruction schemes for staggered transport."""

    UPWIND = "UPWIND"
    CUI = "CUI"
    FBICS = "FBICS"
    MGAMMA = "MGAMMA"


class DensityTimeStepping(str, Enum):
    """Explicit schemes for advancing the staggered density."""

    FORWARD_EULER = "FORWARD_EULER"
    SSPRK2 = "SSPRK2"


class ConvectiveDifferencingType(str, Enum):
    """Discrete forms of the nonlinear convective term."""

    ADVECTIVE = "ADVECTIVE"
    CONSERVATIVE = "CONSERVATIVE"
    SKEW_SYMMETRIC = "SKEW_SYMMETRIC"


def _normalize_enum_name(value: object) -> object:
    if isinstance(value, str):
        name = value.strip().upper()
        if name.startswith("VC_"):
            name = name[3:]
        return name
    return value


class ConvectiveOperatorConfig(BaseModel):
    """Convective operator options.

    Attributes:
        bdry_extrap_type: Ghost extrapolation at physical boundaries.
        convective_limiter: Limiter for both velocity and density.
        velocity_convective_limiter: Velocity limiter override.
        density_convective_limiter: Density limiter override.
        density_time_stepping_type: Scheme used to advance density.
    """

    bdry_extrap_type: str = Field(
        DEFAULT_BDRY_EXTRAP_TYPE,
        description="Physical boundary extrapolation: 'CONSTANT' or 'LINEAR'",
    )
    convective_limiter: ConvectiveLimiter = Field(
        ConvectiveLimiter.UPWIND,
        validation_alias=AliasChoices("convective_limiter", "vc_convective_limiter"),
        description="Limiter applied to velocity and density unless overridden",
    )
    velocity_convective_limiter: ConvectiveLimiter | None = Field(
        None,
        validation_alias=AliasChoices(
            "velocity_convective_limiter", "vc_velocity_convective_limiter"
        ),
    )
    density_convective_limiter: ConvectiveLimiter | None = Field(
        None,
        validation_alias=AliasChoices(
            "density_convective_limiter", "vc_density_convective_limiter"
        ),
    )
    density_time_stepping_type: DensityTimeStepping = Field(
        DensityTimeStepping.FORWARD_EULER,
        validation_alias=AliasChoices(
            "density_time_stepping_type", "vc_density_time_stepping_type"
        ),
    )

    @field_validator(
        "convective_limiter",
        "velocity_convective_limiter",
        "density_convective_limiter",
        "density_time_stepping_type",
        mode="before",
    )
    @classmethod
    def strip_prefix(cls, value: object) -> object:
        return _normalize_enum_name(value)

    @field_validator("bdry_extrap_type", mode="before")
    @classmethod
    def upper_extrap(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value

    @model_validator(mode="after")
    def validate_extrapolation(self) -> ConvectiveOperatorConfig:
        if self.bdry_extrap_type not in BDRY_EXTRAP_TYPES:
            raise ValueError(
                f"bdry_extrap_type must be one of {BDRY_EXTRAP_TYPES}, got '{self.bdry_extrap_type}'"
            )
        return self

    @property
    def velocity_limiter(self) -> ConvectiveLimiter:
        """Limiter used to reconstruct the transported velocity."""
        return self.velocity_convective_limiter or self.convective_limiter

    @property
    def density_limiter(self) -> ConvectiveLimiter:
        """Limiter used to reconstruct the transported density."""
        return self.density_convective_limiter or self.convective_limiter

    # --- I/O helpers ---

    @classmethod
    def from_file(cls, path: str | Path) -> ConvectiveOperatorConfig:
        """Load configuration from a JSON file."""
        path = Path(path)
        with path.open() as f:
            data = json.load(f)
        return cls(**data)

    def to_json(self, path: str | Path | None = None) -> str:
        """Serialize to JSON string, optionally writing to file."""
        out = self.model_dump_json(indent=2)
        if path is not None:
            Path(path).write_text(out)
        return out


class BoxConfig(BaseModel):
    """Inclusive index-space box."""

    lower: list[int] = Field(..., min_length=2, max_length=3)
    upper: list[int] = Field(..., min_length=2, max_length=3)

    @model_validator(mode="after")
    def check_bounds(self) -> BoxConfig:
        if len(self.lower) != len(self.upper):
            raise ValueError("box lower and upper must have the same dimension")
        if any(lo > hi for lo, hi in zip(self.lower, self.upper)):
            raise ValueError(f"empty box: lower={self.lower}, upper={self.upper}")
        return self


class LevelConfig(BaseModel):
    """Boxes of one refinement level, in that level's index space."""

    boxes: list[BoxConfig] = Field(..., min_length=1)
    owners: list[int] | None = Field(None, description="Owner rank per box (default: all rank 0)")

    @model_validator(mode="after")
    def check_owners(self) -> LevelConfig:
        if self.owners is not None and len(self.owners) != len(self.boxes):
            raise ValueError("owners must list one rank per box")
        return self


class HierarchyConfig(BaseModel):
    """Static block-structured hierarchy.

    Level 0 covers the whole domain unless its boxes are listed explicitly.
    """

    domain: BoxConfig
    x_lo: list[float] = Field(..., min_length=2, max_length=3)
    x_up: list[float] = Field(..., min_length=2, max_length=3)
    periodic: list[bool] | None = Field(None, description="Periodic flag per axis")
    refinement_ratio: int = Field(2, ge=2, le=4)
    levels: list[LevelConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_geometry(self) -> HierarchyConfig:
        dim = len(self.domain.lower)
        if len(self.x_lo) != dim or len(self.x_up) != dim:
            raise ValueError(f"x_lo and x_up must have {dim} entries")
        if any(lo >= up for lo, up in zip(self.x_lo, self.x_up)):
            raise ValueError("x_lo must be strictly below x_up on every axis")
        if self.periodic is not None and len(self.periodic) != dim:
            raise ValueError(f"periodic must have {dim} entries")
        for level in self.levels:
            for box in level.boxes:
                if len(box.lower) != dim:
                    raise ValueError("level boxes must match the domain dimension")
        return self

    @property
    def dim(self) -> int:
        return len(self.domain.lower)

    @classmethod
    def from_file(cls, path: str | Path) -> HierarchyConfig:
        """Load configuration from a JSON file."""
        path = Path(path)
        with path.open() as f:
            data = json.load(f)
        return cls(**data)
