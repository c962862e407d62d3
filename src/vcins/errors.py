"""Exception taxonomy for the convective operator and its collaborators.

Every failure raised here is a programming or configuration error, not a
transient fault: nothing is retried and nothing is recovered. Two families
exist:

- :class:`ConfigurationError` for unsupported enumerants and malformed
  configuration, raised at construction or first use.
- :class:`PreconditionError` for lifecycle violations (apply before
  initialize, missing density index or timestep, mismatched hierarchies).
"""

from __future__ import annotations

from typing import Any


class ConvectiveOperatorError(Exception):
    """Base exception carrying the owning object name and diagnostic context.

    Args:
        message: Human-readable description of the failure.
        object_name: Name of the operator or service raising the error.
        context: Optional key/value diagnostics appended to the message.
    """

    def __init__(
        self,
        message: str,
        object_name: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.object_name = object_name
        self.context = context or {}

        full_message = f"{object_name}: {message}" if object_name else message
        if self.context:
            details = ", ".join(f"{key}={value}" for key, value in self.context.items())
            full_message += f" ({details})"

        super().__init__(full_message)


class ConfigurationError(ConvectiveOperatorError, ValueError):
    """Unsupported differencing form, limiter, time stepping or transfer operator."""


class PreconditionError(ConvectiveOperatorError, RuntimeError):
    """Operator used outside of its initialize/apply/deallocate contract."""
