"""Exceptions raised by the engine.

Input problems surface as ``pydantic.ValidationError`` from the config
models; the types here cover failures detected after computation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from carbon_engine.models.results import InvariantCheck


class CarbonEngineError(Exception):
    """Base class for engine errors."""


class InvariantViolation(CarbonEngineError):
    """One or more accounting identities failed under the 'raise' policy."""

    def __init__(self, failures: Iterable[InvariantCheck]):
        self.failures = list(failures)
        first = self.failures[0] if self.failures else None
        if first is None:
            message = "Accounting identity check failed"
        else:
            message = (
                f"{len(self.failures)} accounting identity check(s) failed; first: "
                f"{first.name} in {first.year} (expected {first.expected:.2f}, "
                f"got {first.actual:.2f})"
            )
        super().__init__(message)
