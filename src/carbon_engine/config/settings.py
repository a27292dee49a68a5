"""Engine settings — numerical tolerances and the identity-check policy."""

from __future__ import annotations

import os
from typing import Literal

from pydantic import BaseModel, Field


class EngineSettings(BaseModel):
    """Knobs that change how a run is checked and solved, never what it computes."""

    invariant_policy: Literal["log", "raise"] = Field(
        default="log",
        description="What to do when an accounting identity fails. "
                    "'log' = record on the result and emit a warning; "
                    "'raise' = abort with InvariantViolation.",
    )
    tolerance: float = Field(
        default=0.01, gt=0,
        description="Absolute tolerance for identity checks (one cent).",
    )

    # --- IRR solver ---
    irr_low: float = Field(default=-0.99, gt=-1.0, description="Lower bracket for IRR bisection.")
    irr_high: float = Field(default=10.0, gt=0, description="Upper bracket for IRR bisection.")
    irr_max_iter: int = Field(default=200, ge=1)
    irr_tol: float = Field(default=1e-7, gt=0)

    @classmethod
    def from_env(cls) -> EngineSettings:
        """Build settings from ``CARBON_ENGINE_*`` environment variables."""
        overrides: dict[str, str] = {}
        policy = os.environ.get("CARBON_ENGINE_INVARIANT_POLICY")
        if policy:
            overrides["invariant_policy"] = policy.strip().lower()
        tolerance = os.environ.get("CARBON_ENGINE_TOLERANCE")
        if tolerance:
            overrides["tolerance"] = tolerance
        return cls.model_validate(overrides)
