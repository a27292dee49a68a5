"""Engine inputs — the canonical per-year schedule the engine consumes.

Every per-year array is indexed by project-year offset 0..N-1, where
N = len(years).  Units are canonical:
  - rates are fractions in [0, 1]
  - currency amounts are absolute
  - costs, capex and depreciation are positive magnitudes (the engine
    subtracts them)

Inputs are immutable once built.  Any structural problem (length mismatch,
impossible issuance schedule, underivable purchase price) is rejected at
construction with a pydantic ``ValidationError`` so that computation never
starts on a bad schedule.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, field_validator, model_validator


PER_YEAR_FIELDS: tuple[str, ...] = (
    "credits_generated",
    "price_per_credit",
    "feasibility_costs",
    "pdd_costs",
    "mrv_costs",
    "staff_costs",
    "capex",
    "depreciation",
    "equity_injection",
    "debt_draw",
    "purchase_amount",
)
"""Per-year arrays that default to zeros when omitted."""

RATE_FIELDS: tuple[str, ...] = (
    "interest_rate",
    "purchase_share",
    "ar_rate",
    "ap_rate",
    "cogs_rate",
    "income_tax_rate",
    "discount_rate",
)
"""Scalar fields expressed as fractions in [0, 1]."""


class EngineInputs(BaseModel):
    """Complete, validated input schedule for one model run."""

    model_config = ConfigDict(frozen=True)

    # --- Horizon ---
    years: list[int] = Field(
        min_length=1,
        description="Calendar year labels. len(years) is the projection horizon N.",
    )

    # --- Operational ---
    credits_generated: list[NonNegativeFloat] = Field(
        default_factory=list,
        description="Verified emission reductions produced each year (tCO2e).",
    )
    credits_issued: list[NonNegativeFloat] | None = Field(
        default=None,
        description="Explicit issuance schedule. When omitted, issuance is "
                    "derived from issuance_flag and cumulative generation.",
    )
    issuance_flag: list[int] = Field(
        default_factory=list,
        description="1 = registry issuance event this year (releases the whole "
                    "backlog of generated-but-unissued credits), 0 = none.",
    )
    price_per_credit: list[NonNegativeFloat] = Field(
        default_factory=list,
        description="Spot sale price per issued credit.",
    )

    # --- Operating expenses (positive magnitudes) ---
    feasibility_costs: list[NonNegativeFloat] = Field(default_factory=list)
    pdd_costs: list[NonNegativeFloat] = Field(
        default_factory=list,
        description="Project design document costs.",
    )
    mrv_costs: list[NonNegativeFloat] = Field(
        default_factory=list,
        description="Monitoring, reporting and verification costs.",
    )
    staff_costs: list[NonNegativeFloat] = Field(default_factory=list)

    # --- Assets ---
    capex: list[NonNegativeFloat] = Field(default_factory=list)
    depreciation: list[NonNegativeFloat] = Field(
        default_factory=list,
        description="Scheduled depreciation. Capped at the PPE book value "
                    "available in the year.",
    )

    # --- Financing ---
    equity_injection: list[NonNegativeFloat] = Field(default_factory=list)
    debt_draw: list[NonNegativeFloat] = Field(default_factory=list)
    interest_rate: float = Field(
        default=0.0, ge=0, le=1.0,
        description="Annual interest rate on outstanding debt.",
    )
    debt_duration_years: int = Field(
        default=1, ge=1,
        description="Amortisation term applied to each draw, in years.",
    )

    # --- Pre-purchase agreement ---
    purchase_amount: list[NonNegativeFloat] = Field(
        default_factory=list,
        description="Cash received in advance from a credit buyer.",
    )
    purchase_share: float = Field(
        default=0.0, ge=0, le=1.0,
        description="Fraction of credits generated/issued committed to the buyer.",
    )

    # --- Working capital, COGS, tax ---
    ar_rate: float = Field(default=0.0, ge=0, le=1.0, description="AR as a fraction of revenue.")
    ap_rate: float = Field(default=0.0, ge=0, le=1.0, description="AP as a fraction of total opex.")
    cogs_rate: float = Field(default=0.0, ge=0, le=1.0, description="COGS as a fraction of revenue.")
    income_tax_rate: float = Field(default=0.0, ge=0, le=1.0)

    # --- Valuation & opening position ---
    discount_rate: float = Field(default=0.0, ge=0, le=1.0, description="Equity discount rate.")
    initial_equity_t0: NonNegativeFloat = Field(
        default=0.0,
        description="Equity contributed before year 1; the t0 outflow for NPV/IRR.",
    )
    opening_cash_y1: NonNegativeFloat = Field(default=0.0, description="Cash at the start of year 1.")
    initial_ppe: NonNegativeFloat = Field(default=0.0, description="PPE carried in at the start of year 1.")

    # ── Validators ────────────────────────────────────────────────────────

    @model_validator(mode="before")
    @classmethod
    def _fill_missing_arrays(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        years = data.get("years")
        if not isinstance(years, (list, tuple)):
            return data

        n = len(years)
        filled = dict(data)
        for name in PER_YEAR_FIELDS:
            if filled.get(name) is None:
                filled[name] = [0.0] * n
        if filled.get("issuance_flag") is None:
            # No schedule at all means annual issuance
            fill = 1 if filled.get("credits_issued") is None else 0
            filled["issuance_flag"] = [fill] * n
        return filled

    @field_validator("issuance_flag")
    @classmethod
    def _flags_are_binary(cls, v: list[int]) -> list[int]:
        bad = [f for f in v if f not in (0, 1)]
        if bad:
            raise ValueError(f"issuance_flag values must be 0 or 1, got {bad[0]}")
        return v

    @model_validator(mode="after")
    def _check_schedule(self) -> EngineInputs:
        n = len(self.years)
        for name in (*PER_YEAR_FIELDS, "issuance_flag", "credits_issued"):
            values = getattr(self, name)
            if values is not None and len(values) != n:
                raise ValueError(
                    f"Length of {name} must equal years.length ({n}), got {len(values)}"
                )

        if self.credits_issued is not None:
            cum_generated = 0.0
            cum_issued = 0.0
            for i, (gen, iss) in enumerate(zip(self.credits_generated, self.credits_issued)):
                cum_generated += gen
                cum_issued += iss
                if cum_issued > cum_generated + 1e-9:
                    raise ValueError(
                        f"Cumulative credits issued ({cum_issued:g}) exceed cumulative "
                        f"credits generated ({cum_generated:g}) in year {self.years[i]}"
                    )

        first = self.first_purchase_index()
        if first is not None and self.purchase_share > 0:
            volume = self.purchase_share * self.credits_generated[first]
            if volume == 0 and self.price_per_credit[first] == 0:
                raise ValueError(
                    f"Cannot derive implied purchase price in year {self.years[first]}: "
                    "no credits generated and no spot price"
                )
        return self

    # ── Helpers ───────────────────────────────────────────────────────────

    @property
    def horizon(self) -> int:
        return len(self.years)

    def first_purchase_index(self) -> int | None:
        """Offset of the first year with a nonzero purchase amount."""
        for i, amount in enumerate(self.purchase_amount):
            if amount > 0:
                return i
        return None

    def total_opex(self, i: int) -> float:
        return (
            self.feasibility_costs[i]
            + self.pdd_costs[i]
            + self.mrv_costs[i]
            + self.staff_costs[i]
        )


def load_engine_inputs(path: str | Path) -> EngineInputs:
    """Load an ``engine_inputs.json`` fixture file."""
    return EngineInputs.model_validate_json(Path(path).read_text(encoding="utf-8"))
