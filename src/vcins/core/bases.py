"""Core abstract base classes and shared data structures.

Defines the interface contracts for convective operators:
- ``HierarchyVector`` : a set of patch data indices on a level range
- ``MassReport`` : pre/post-step mass of the transported density
- ``ConvectiveOperatorBase`` : ABC for convective operators
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from vcins.config import ConvectiveDifferencingType

if TYPE_CHECKING:
    from vcins.amr.hierarchy import PatchHierarchy


@dataclass
class HierarchyVector:
    """Patch data indices living on a range of hierarchy levels.

    Attributes:
        hierarchy: Hierarchy holding the data (not owned).
        coarsest_ln: Coarsest level in range.
        finest_ln: Finest level in range.
        components: Patch data indices, one per vector component.
        name: Label used in messages.
    """

    hierarchy: PatchHierarchy
    coarsest_ln: int
    finest_ln: int
    components: list[int] = field(default_factory=list)
    name: str = "vector"

    @classmethod
    def on_all_levels(cls, hierarchy: PatchHierarchy, idx: int, name: str = "vector") -> HierarchyVector:
        return cls(hierarchy, 0, hierarchy.finest_level_number, [idx], name)

    @property
    def component_index(self) -> int:
        """The single patch data index of a one-component vector."""
        if len(self.components) != 1:
            raise ValueError(f"{self.name} has {len(self.components)} components, expected 1")
        return self.components[0]


@dataclass
class MassReport:
    """Mass of the staggered density before and after one apply.

    Attributes:
        mass_old: Weighted sum of the input density.
        mass_new: Weighted sum of the updated density.
        change: ``mass_new - mass_old``.
    """

    mass_old: float = 0.0
    mass_new: float = 0.0
    change: float = 0.0


class ConvectiveOperatorBase(ABC):
    """Abstract base for operators evaluating ``N(u) ~ div(u u)`` on staggered grids.

    Args:
        object_name: Name used in logs and error messages.
        difference_form: Discrete form of the convective term.
    """

    def __init__(
        self,
        object_name: str,
        difference_form: ConvectiveDifferencingType | str = ConvectiveDifferencingType.CONSERVATIVE,
    ) -> None:
        self.object_name = object_name
        self._difference_form = difference_form
        self._u_idx: int | None = None
        self._solution_time = 0.0
        self._homogeneous_bc = False

    @property
    def difference_form(self) -> ConvectiveDifferencingType | str:
        return self._difference_form

    @property
    def advection_velocity(self) -> int | None:
        return self._u_idx

    def set_advection_velocity(self, u_idx: int) -> None:
        self._u_idx = u_idx

    @property
    def solution_time(self) -> float:
        return self._solution_time

    def set_solution_time(self, time: float) -> None:
        self._solution_time = time

    @property
    def homogeneous_bc(self) -> bool:
        return self._homogeneous_bc

    def set_homogeneous_bc(self, homogeneous_bc: bool) -> None:
        self._homogeneous_bc = homogeneous_bc

    @abstractmethod
    def initialize_operator_state(self, in_vec: HierarchyVector, out_vec: HierarchyVector) -> None:
        """Allocate working storage for vectors shaped like ``in_vec`` and ``out_vec``."""

    @abstractmethod
    def apply_convective_operator(self, q_idx: int, n_idx: int) -> None:
        """Evaluate the convective operator of ``q_idx`` into ``n_idx``."""

    @abstractmethod
    def deallocate_operator_state(self) -> None:
        """Release working storage; safe to call repeatedly."""

    @property
    @abstractmethod
    def is_initialized(self) -> bool:
        """Whether working storage is allocated."""

    def apply_vector(self, x: HierarchyVector, y: HierarchyVector) -> None:
        """Compute ``y = N(x)`` on hierarchy vectors.

        The operator state is set up around the call when it is not
        initialized already.
        """
        deallocate_after = not self.is_initialized
        if deallocate_after:
            self.initialize_operator_state(x, y)
        self.apply_convective_operator(x.component_index, y.component_index)
        if deallocate_after:
            self.deallocate_operator_state()
