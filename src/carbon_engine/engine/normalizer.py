"""Input normalizer — UI-shaped values → canonical ``EngineInputs``.

Forms hand us whatever the user typed:
  - rates as ``5``, ``"5"``, ``"5%"`` or ``0.05``     → 0.05
  - money as ``"$1,250"`` or ``" 1 250 "``             → 1250.0
  - costs with either sign                             → positive magnitude
  - issuance checkboxes as ``True`` / ``"true"`` / 1   → 1

Each coercion is a pydantic before-validator, so every bad value surfaces
as a ``ValidationError`` naming the offending field.  The transform is pure.
"""

from __future__ import annotations

import math
from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, BeforeValidator, Field, model_validator

from carbon_engine.config.inputs import EngineInputs


# ═══════════════════════════════════════════════════════════════════════════
# Scalar coercions
# ═══════════════════════════════════════════════════════════════════════════

def parse_number_loose(value: Any) -> float:
    """Parse a number that may carry ``$``, thousands separators or spaces."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = value.replace(",", "").replace("$", "")
        cleaned = "".join(cleaned.split())
        if not cleaned:
            return 0.0
        try:
            number = float(cleaned)
        except ValueError:
            raise ValueError(f"Invalid number: {value!r}") from None
        if not math.isfinite(number):
            raise ValueError(f"Invalid number: {value!r}")
        return number
    raise ValueError(f"Invalid number: {value!r}")


def normalize_rate(value: Any) -> float:
    """Percent or decimal → decimal in [0, 1].

    A trailing ``%`` always means percent.  Bare values above 1 are read as
    percentages, so a bare ``1`` is 100%.
    """
    if isinstance(value, str) and value.strip().endswith("%"):
        rate = parse_number_loose(value.strip()[:-1]) / 100
    else:
        raw = parse_number_loose(value)
        rate = raw / 100 if raw > 1 else raw
    if rate < 0 or rate > 1:
        raise ValueError(f"Rate must be between 0 and 1, got {value!r}")
    return rate


def normalize_outflow(value: Any) -> float:
    return abs(parse_number_loose(value))


def normalize_flag(value: Any) -> int:
    """Checkbox → 0/1. Anything not recognisably 'on' is 0."""
    if isinstance(value, bool):
        return int(value)
    if value == 1:
        return 1
    if isinstance(value, str) and value.strip().lower() in ("1", "true", "yes", "on"):
        return 1
    return 0


def _truncate_int(value: Any) -> int:
    return math.trunc(parse_number_loose(value))


LooseNumber = Annotated[float, BeforeValidator(parse_number_loose)]
Rate = Annotated[float, BeforeValidator(normalize_rate)]
Outflow = Annotated[float, BeforeValidator(normalize_outflow)]
Flag = Annotated[int, BeforeValidator(normalize_flag)]


# ═══════════════════════════════════════════════════════════════════════════
# UI model
# ═══════════════════════════════════════════════════════════════════════════

class UIModelInputs(BaseModel):
    """Raw form state. Missing arrays default to zeros of the horizon length."""

    years: list[int] = Field(min_length=1)

    issuance_flag: list[Flag] | None = Field(
        default=None,
        validation_alias=AliasChoices("issuance_flag", "issue"),
    )
    credits_generated: list[LooseNumber] | None = None
    credits_issued: list[LooseNumber] | None = None
    price_per_credit: list[LooseNumber] | None = None

    feasibility_costs: list[Outflow] | None = None
    pdd_costs: list[Outflow] | None = None
    mrv_costs: list[Outflow] | None = None
    staff_costs: list[Outflow] | None = None
    depreciation: list[Outflow] | None = None
    capex: list[Outflow] | None = None

    equity_injection: list[LooseNumber] | None = None
    debt_draw: list[LooseNumber] | None = None
    purchase_amount: list[LooseNumber] | None = None

    ar_rate: Rate = 0.0
    ap_rate: Rate = 0.0
    cogs_rate: Rate = 0.0
    income_tax_rate: Rate = 0.0
    interest_rate: Rate = 0.0
    purchase_share: Rate = 0.0
    discount_rate: Rate = 0.0

    debt_duration_years: Annotated[int, BeforeValidator(_truncate_int)] = 1
    opening_cash_y1: LooseNumber = 0.0
    initial_equity_t0: LooseNumber = 0.0
    initial_ppe: LooseNumber = 0.0

    @model_validator(mode="after")
    def _check_lengths(self) -> UIModelInputs:
        n = len(self.years)
        for name, values in self:
            if name == "years" or not isinstance(values, list):
                continue
            if len(values) != n:
                raise ValueError(f"Length of {name} must equal years.length ({n})")
        return self

    def to_engine_inputs(self) -> EngineInputs:
        """Build canonical inputs; ``None`` fields fall back to engine defaults."""
        data = {name: value for name, value in self if value is not None}
        return EngineInputs.model_validate(data)


def to_engine_inputs(ui: dict[str, Any] | UIModelInputs) -> EngineInputs:
    """Normalize UI form state into ``EngineInputs``."""
    if not isinstance(ui, UIModelInputs):
        ui = UIModelInputs.model_validate(ui)
    return ui.to_engine_inputs()


def from_engine_to_ui(inputs: EngineInputs) -> dict[str, Any]:
    """Map canonical inputs back to form state.

    Rates are emitted as ``"<n>%"`` strings so that values of 1% or less
    survive a second pass through ``normalize_rate``.
    """
    ui: dict[str, Any] = {
        "years": list(inputs.years),
        "issue": [flag == 1 for flag in inputs.issuance_flag],
    }
    for name in (
        "credits_generated", "price_per_credit",
        "feasibility_costs", "pdd_costs", "mrv_costs", "staff_costs",
        "depreciation", "capex",
        "equity_injection", "debt_draw", "purchase_amount",
    ):
        ui[name] = list(getattr(inputs, name))
    if inputs.credits_issued is not None:
        ui["credits_issued"] = list(inputs.credits_issued)
    for name in (
        "ar_rate", "ap_rate", "cogs_rate", "income_tax_rate",
        "interest_rate", "purchase_share", "discount_rate",
    ):
        ui[name] = f"{getattr(inputs, name) * 100}%"
    ui["debt_duration_years"] = inputs.debt_duration_years
    ui["opening_cash_y1"] = inputs.opening_cash_y1
    ui["initial_equity_t0"] = inputs.initial_equity_t0
    ui["initial_ppe"] = inputs.initial_ppe
    return ui
