"""Sensitivity / tornado analysis and scenario templates.

One-at-a-time sweeps: scale one input, rerun the model, measure the NPV
delta.  Per-year arrays are scaled element-wise; rates are clamped to
[0, 1] after scaling.

Default sweep set:
  - price_per_credit ± 20%
  - credits_generated ± 10%
  - cogs_rate ± 20%
  - capex ± 20%
  - income_tax_rate ± 20%
  - discount_rate ± 20%

Scenario templates apply several multipliers at once (Conservative,
Optimistic, High Volume) and compare the outcome against the base case.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from carbon_engine.config.inputs import RATE_FIELDS, EngineInputs
from carbon_engine.config.settings import EngineSettings
from carbon_engine.engine.orchestrator import run_model


@dataclass(frozen=True)
class TornadoBar:
    """One bar in the tornado chart."""

    param_name: str
    """Human-readable parameter name."""

    param_field: str
    """EngineInputs field that was scaled."""

    base_value: float
    """Value in the base case (sum over years for per-year arrays)."""

    low_value: float
    high_value: float

    npv_at_low: float
    npv_at_high: float

    delta_npv: float
    """abs(npv_at_high − npv_at_low) — total swing width."""


@dataclass
class SensitivityResult:
    """Complete sensitivity analysis output."""

    base_npv: float
    bars: list[TornadoBar] = field(default_factory=list)
    """Tornado bars sorted by delta_npv (descending)."""


@dataclass(frozen=True)
class ScenarioOutcome:
    """Headline results for one scenario template."""

    name: str
    multipliers: dict[str, float]
    npv: float
    irr: float | None
    payback_period: float | None
    total_revenue: float
    delta_npv: float
    """npv − base-case npv."""


DEFAULT_SWEEPS: list[tuple[str, str, float, float]] = [
    ("Credit price", "price_per_credit", -0.20, 0.20),
    ("Credits generated", "credits_generated", -0.10, 0.10),
    ("COGS rate", "cogs_rate", -0.20, 0.20),
    ("Capex", "capex", -0.20, 0.20),
    ("Income tax rate", "income_tax_rate", -0.20, 0.20),
    ("Discount rate", "discount_rate", -0.20, 0.20),
]

# Labels and schedules, not magnitudes
UNSCALABLE_FIELDS = frozenset({"years", "issuance_flag", "credits_issued"})

SCENARIO_TEMPLATES: dict[str, dict[str, float]] = {
    "Conservative": {"price_per_credit": 0.8, "credits_generated": 0.9, "cogs_rate": 1.2},
    "Optimistic": {"price_per_credit": 1.3, "credits_generated": 1.1, "cogs_rate": 0.8},
    "High Volume": {"credits_generated": 1.5, "cogs_rate": 0.9, "capex": 1.2},
}


def _field_value(inputs: EngineInputs, name: str) -> float:
    value = getattr(inputs, name)
    if isinstance(value, list):
        return float(sum(value))
    return float(value)


def scale_inputs(inputs: EngineInputs, multipliers: dict[str, float]) -> EngineInputs:
    """Return new inputs with each named field multiplied by its factor.

    Scaling ``credits_generated`` scales an explicit ``credits_issued``
    schedule too, so issuance stays within generation.

    ``years``, ``issuance_flag`` and ``credits_issued`` cannot be scaled.
    """
    data = inputs.model_dump()
    for name, factor in multipliers.items():
        if name not in data:
            raise KeyError(f"Unknown input field: {name}")
        if name in UNSCALABLE_FIELDS:
            raise KeyError(f"Input field cannot be scaled: {name}")
        value = data[name]
        if isinstance(value, list):
            data[name] = [v * factor for v in value]
            if name == "credits_generated" and data.get("credits_issued") is not None:
                data["credits_issued"] = [v * factor for v in data["credits_issued"]]
        elif name in RATE_FIELDS:
            data[name] = min(max(value * factor, 0.0), 1.0)
        elif isinstance(value, int):
            data[name] = max(round(value * factor), 1)
        else:
            data[name] = value * factor
    return EngineInputs.model_validate(data)


def run_sensitivity(
    inputs: EngineInputs,
    sweeps: list[tuple[str, str, float, float]] | None = None,
    settings: EngineSettings | None = None,
) -> SensitivityResult:
    """Run one-at-a-time sweeps around the base case.

    Parameters
    ----------
    inputs : EngineInputs
        Base case.
    sweeps : list[tuple[name, field, low_pct, high_pct]] | None
        Parameter sweeps. None = use DEFAULT_SWEEPS.
    settings : EngineSettings | None
        Passed through to every run.

    Returns
    -------
    SensitivityResult
        Tornado bars sorted by NPV impact.
    """
    if sweeps is None:
        sweeps = DEFAULT_SWEEPS

    base_npv = run_model(inputs, settings).returns.npv
    bars: list[TornadoBar] = []

    for name, field_name, low_pct, high_pct in sweeps:
        low_inputs = scale_inputs(inputs, {field_name: 1 + low_pct})
        high_inputs = scale_inputs(inputs, {field_name: 1 + high_pct})
        npv_low = run_model(low_inputs, settings).returns.npv
        npv_high = run_model(high_inputs, settings).returns.npv

        bars.append(TornadoBar(
            param_name=name,
            param_field=field_name,
            base_value=_field_value(inputs, field_name),
            low_value=_field_value(low_inputs, field_name),
            high_value=_field_value(high_inputs, field_name),
            npv_at_low=npv_low,
            npv_at_high=npv_high,
            delta_npv=abs(npv_high - npv_low),
        ))

    bars.sort(key=lambda b: b.delta_npv, reverse=True)
    return SensitivityResult(base_npv=base_npv, bars=bars)


def run_scenarios(
    inputs: EngineInputs,
    templates: dict[str, dict[str, float]] | None = None,
    settings: EngineSettings | None = None,
) -> list[ScenarioOutcome]:
    """Evaluate each scenario template against the base case.

    The first outcome is always the unscaled "Base" case.
    """
    if templates is None:
        templates = SCENARIO_TEMPLATES

    base = run_model(inputs, settings)
    base_npv = base.returns.npv
    outcomes = [ScenarioOutcome(
        name="Base",
        multipliers={},
        npv=base_npv,
        irr=base.returns.irr,
        payback_period=base.returns.payback_period,
        total_revenue=base.metrics.total_revenue,
        delta_npv=0.0,
    )]

    for name, multipliers in templates.items():
        result = run_model(scale_inputs(inputs, multipliers), settings)
        outcomes.append(ScenarioOutcome(
            name=name,
            multipliers=dict(multipliers),
            npv=result.returns.npv,
            irr=result.returns.irr,
            payback_period=result.returns.payback_period,
            total_revenue=result.metrics.total_revenue,
            delta_npv=result.returns.npv - base_npv,
        ))
    return outcomes
