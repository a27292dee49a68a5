"""Context manifest — makes the compute service self-describing.

``GET /`` points here; ``GET /schema`` returns the raw JSON Schema and
``GET /inputs/defaults`` a complete worked example to edit from.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from carbon_engine.config.inputs import EngineInputs
from carbon_engine.export.csv_export import STATEMENT_HEADERS


# ═══════════════════════════════════════════════════════════════════════════
# Public response models
# ═══════════════════════════════════════════════════════════════════════════

class ParameterInfo(BaseModel):
    """One input parameter, machine-readable."""
    name: str
    type: str
    default: Any
    description: str
    constraints: dict[str, Any] = Field(default_factory=dict)


class EndpointInfo(BaseModel):
    method: str
    path: str
    description: str


class EngineContext(BaseModel):
    """Everything a client needs to drive the service."""
    name: str
    version: str
    description: str
    key_formulas: list[dict[str, str]]
    parameters: list[ParameterInfo]
    statements: dict[str, list[str]]
    endpoints: list[EndpointInfo]


# ═══════════════════════════════════════════════════════════════════════════
# Schema extraction
# ═══════════════════════════════════════════════════════════════════════════

def _extract_params(model_cls: type[BaseModel]) -> list[ParameterInfo]:
    """Extract parameter info from a pydantic model class."""
    params: list[ParameterInfo] = []
    for name, info in model_cls.model_fields.items():
        constraints: dict[str, Any] = {}
        for meta in info.metadata:
            for attr in ("ge", "gt", "le", "lt", "min_length"):
                value = getattr(meta, attr, None)
                if value is not None:
                    constraints[attr] = value

        if info.is_required():
            default: Any = None
        elif info.default_factory is not None:
            default = info.default_factory()
        else:
            default = info.default

        annotation = info.annotation
        type_name = getattr(annotation, "__name__", None) or str(annotation)
        params.append(ParameterInfo(
            name=name,
            type=type_name,
            default=default,
            description=info.description or "",
            constraints=constraints,
        ))
    return params


def get_inputs_schema() -> dict[str, Any]:
    """JSON Schema for ``EngineInputs``."""
    return EngineInputs.model_json_schema()


def get_default_inputs() -> dict[str, Any]:
    """An eight-year cookstove project with debt, equity and a pre-purchase.

    Returns a fresh dict on every call so callers may mutate it.
    """
    return {
        "years": [2025, 2026, 2027, 2028, 2029, 2030, 2031, 2032],
        "credits_generated": [0, 6000, 8000, 10000, 12000, 12000, 12000, 12000],
        "issuance_flag": [0, 0, 0, 1, 1, 0, 1, 1],
        "price_per_credit": [0, 0, 95, 100, 105, 110, 115, 120],
        "feasibility_costs": [60000, 0, 0, 0, 0, 0, 0, 0],
        "pdd_costs": [45000, 20000, 0, 0, 0, 0, 0, 0],
        "mrv_costs": [0, 15000, 15000, 18000, 18000, 18000, 20000, 20000],
        "staff_costs": [80000, 90000, 95000, 100000, 105000, 110000, 115000, 120000],
        "capex": [250000, 150000, 0, 0, 0, 0, 0, 0],
        "depreciation": [25000, 40000, 40000, 40000, 40000, 40000, 40000, 40000],
        "equity_injection": [0, 100000, 0, 0, 0, 0, 0, 0],
        "debt_draw": [300000, 0, 0, 0, 0, 0, 0, 0],
        "interest_rate": 0.09,
        "debt_duration_years": 5,
        "purchase_amount": [0, 0, 350000, 350000, 0, 0, 0, 0],
        "purchase_share": 0.40,
        "ar_rate": 0.08,
        "ap_rate": 0.10,
        "cogs_rate": 0.15,
        "income_tax_rate": 0.25,
        "discount_rate": 0.12,
        "initial_equity_t0": 400000,
        "opening_cash_y1": 400000,
        "initial_ppe": 0,
    }


_KEY_FORMULAS = [
    {"name": "Credits issued", "formula": "(cum_generated − cum_issued_prev) × issuance_flag"},
    {"name": "Implied purchase price", "formula": "purchase_amount_f / (purchase_share × credits_generated_f)"},
    {"name": "EBITDA", "formula": "revenue × (1 − cogs_rate) − opex"},
    {"name": "Income tax", "formula": "max(0, EBT) × income_tax_rate"},
    {"name": "Principal", "formula": "Σ PPMT(rate, t − d + 1, duration, draw_d)"},
    {"name": "DSCR", "formula": "EBITDA / (principal + interest); N/A when no debt service"},
    {"name": "FCFE", "formula": "NI + D − ΔNWC − capex + (draw − principal)"},
    {"name": "NPV", "formula": "−E₀ + Σ FCFE_t / (1 + r)^(t+1)"},
]

_ENDPOINTS = [
    EndpointInfo(method="GET", path="/health", description="Liveness probe"),
    EndpointInfo(method="GET", path="/schema", description="JSON Schema for engine inputs"),
    EndpointInfo(method="GET", path="/inputs/defaults", description="Complete example inputs"),
    EndpointInfo(method="POST", path="/model/normalize", description="UI form state → engine inputs"),
    EndpointInfo(method="POST", path="/model/run", description="Run the model; statements, returns, checks"),
    EndpointInfo(method="POST", path="/model/export/{statement}", description="One statement as CSV"),
    EndpointInfo(method="POST", path="/model/sensitivity", description="Tornado sweep on NPV"),
    EndpointInfo(method="POST", path="/model/scenarios", description="Scenario templates vs. base case"),
    EndpointInfo(method="POST", path="/model/narrative", description="Plain-English summary only"),
]


def build_context(version: str) -> EngineContext:
    return EngineContext(
        name="Carbon Credit Project Financial Engine",
        version=version,
        description=(
            "Deterministic annual projection for carbon-credit projects: income "
            "statement, balance sheet, cash flow, debt schedule, pre-purchase "
            "stream, free cash flow to equity and returns."
        ),
        key_formulas=_KEY_FORMULAS,
        parameters=_extract_params(EngineInputs),
        statements={name: list(headers) for name, headers in STATEMENT_HEADERS.items()},
        endpoints=_ENDPOINTS,
    )
