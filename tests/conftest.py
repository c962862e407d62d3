"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import numpy as np
import pytest

from vcins.amr.hierarchy import PatchHierarchy, VariableDatabase
from vcins.core.box import Box


@pytest.fixture(autouse=True)
def fresh_variable_database():
    """Every test starts from an empty variable registry."""
    VariableDatabase.get_database().reset()
    yield
    VariableDatabase.get_database().reset()


@pytest.fixture
def periodic_hierarchy():
    """Single-level, fully periodic 16 x 8 hierarchy on [0, 1] x [0, 0.5]."""
    hierarchy = PatchHierarchy(
        Box((0, 0), (15, 7)),
        x_lo=(0.0, 0.0),
        x_up=(1.0, 0.5),
        periodic=(True, True),
    )
    hierarchy.make_new_level([hierarchy.domain])
    return hierarchy


@pytest.fixture
def two_level_hierarchy():
    """Non-periodic 8 x 8 unit square with a refined 8 x 8 fine patch in the middle."""
    hierarchy = PatchHierarchy(
        Box((0, 0), (7, 7)),
        x_lo=(0.0, 0.0),
        x_up=(1.0, 1.0),
        refinement_ratio=2,
    )
    hierarchy.make_new_level([hierarchy.domain])
    hierarchy.make_new_level([Box((4, 4), (11, 11))])
    return hierarchy


def _register(name: str, ghosts: int = 0, context: str = "CURRENT") -> int:
    return VariableDatabase.get_database().register_variable_and_context(name, context, ghosts)


def _fill_sides(hierarchy: PatchHierarchy, idx: int, func) -> None:
    for level in hierarchy.levels:
        for patch in level:
            data = patch.get_patch_data(idx)
            for axis in range(hierarchy.dim):
                coords = patch.geometry.side_centers(axis, data[axis].box)
                mesh = np.meshgrid(*coords, indexing="ij")
                data[axis].view()[...] = func(axis, *mesh)


@pytest.fixture
def register():
    """Register a test variable: ``register(name, ghosts=0)`` returns its index."""
    return _register


@pytest.fixture
def fill_sides():
    """Sample ``func(axis, X, Y)`` at the interior side centers of every patch."""
    return _fill_sides
