"""FastAPI server — stateless compute service for the carbon-credit engine.

Run with:
    uvicorn carbon_engine.api.server:app --reload --port 8000

Or:
    carbon-engine-api

Endpoints:
    GET  /health                    — liveness probe
    GET  /                          — self-describing manifest
    GET  /schema                    — JSON Schema for engine inputs
    GET  /inputs/defaults           — complete example inputs
    POST /model/normalize           — UI form state → engine inputs
    POST /model/run                 — run the model (statements + returns + checks + narrative)
    POST /model/export/{statement}  — one statement as CSV
    POST /model/sensitivity         — tornado sweep on NPV
    POST /model/scenarios           — scenario templates vs. base case
    POST /model/narrative           — plain-English summary only

Invalid inputs return 422.  Under the 'raise' invariant policy a failed
accounting identity returns 500 with the failing checks.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Literal

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field, ValidationError

from carbon_engine.api.context import build_context, get_default_inputs, get_inputs_schema
from carbon_engine.api.narrative import generate_narrative
from carbon_engine.config.inputs import EngineInputs
from carbon_engine.config.settings import EngineSettings
from carbon_engine.engine.normalizer import UIModelInputs, from_engine_to_ui
from carbon_engine.engine.orchestrator import run_model
from carbon_engine.errors import InvariantViolation
from carbon_engine.export.csv_export import STATEMENT_HEADERS, export_statement
from carbon_engine.finance.sensitivity import run_scenarios, run_sensitivity
from carbon_engine.models.results import FinancialModelResult

logger = logging.getLogger(__name__)

API_VERSION = "1.0"


# ═══════════════════════════════════════════════════════════════════════════
# App setup
# ═══════════════════════════════════════════════════════════════════════════

app = FastAPI(
    title="Carbon Credit Project Financial Engine",
    version=API_VERSION,
    description=(
        "Stateless compute service for carbon-credit project financials. "
        "Post an input schedule, get back audited annual statements, returns "
        "and a plain-English summary. Start with GET / for the manifest."
    ),
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvariantViolation)
def _invariant_violation_handler(request: Request, exc: InvariantViolation) -> JSONResponse:
    logger.error("Invariant violation on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc),
            "failed_checks": [c.model_dump() for c in exc.failures],
        },
    )


# ═══════════════════════════════════════════════════════════════════════════
# Request / response models
# ═══════════════════════════════════════════════════════════════════════════

class RunRequest(BaseModel):
    """Request body for /model/*. All fields optional — defaults used for missing.

    Give either engine-shaped ``inputs`` or UI-shaped ``ui_inputs``; with
    neither, the default example is used.  ``overrides`` are merged on top.
    """
    inputs: dict[str, Any] | None = Field(
        default=None,
        description="Engine-shaped inputs (fractions, positive costs).",
    )
    ui_inputs: dict[str, Any] | None = Field(
        default=None,
        description="Form-shaped inputs (percent rates, '$1,000' strings, checkbox flags).",
    )
    overrides: dict[str, Any] = Field(
        default_factory=dict,
        description="Field overrides applied on top. Example: {'purchase_share': 0.3}",
    )
    invariant_policy: Literal["log", "raise"] | None = Field(
        default=None,
        description="Override the server's invariant policy for this call.",
    )


class SensitivityRequest(RunRequest):
    sweep_params: list[dict[str, Any]] | None = Field(
        default=None,
        description="Optional sweep override. "
                    "Format: [{'name': 'Price', 'field': 'price_per_credit', 'low_pct': -0.2, 'high_pct': 0.2}]",
    )


class ScenariosRequest(RunRequest):
    templates: dict[str, dict[str, float]] | None = Field(
        default=None,
        description="Scenario name → {field: multiplier}. None = built-in templates.",
    )


class RunResponse(BaseModel):
    result: dict[str, Any]
    balanced: bool
    narrative: str = ""


class NormalizeResponse(BaseModel):
    inputs: dict[str, Any]
    ui_inputs: dict[str, Any]


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

def _deep_merge(base: dict, overrides: dict) -> dict:
    """Recursively merge overrides into base dict."""
    for key, val in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(val, dict):
            _deep_merge(base[key], val)
        else:
            base[key] = val
    return base


def _validation_detail(exc: ValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]


def _build_inputs(req: RunRequest) -> EngineInputs:
    """Resolve a request into validated inputs, mapping errors to 422."""
    try:
        if req.ui_inputs is not None:
            ui = _deep_merge(dict(req.ui_inputs), req.overrides)
            return UIModelInputs.model_validate(ui).to_engine_inputs()
        base = dict(req.inputs) if req.inputs is not None else get_default_inputs()
        return EngineInputs.model_validate(_deep_merge(base, req.overrides))
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=_validation_detail(exc)) from exc


def _settings(req: RunRequest) -> EngineSettings:
    settings = EngineSettings.from_env()
    if req.invariant_policy is not None:
        settings = settings.model_copy(update={"invariant_policy": req.invariant_policy})
    return settings


def _run(req: RunRequest) -> FinancialModelResult:
    return run_model(_build_inputs(req), _settings(req))


# ═══════════════════════════════════════════════════════════════════════════
# Endpoints
# ═══════════════════════════════════════════════════════════════════════════

@app.get("/health")
def health_check():
    """Health check for deployment platforms."""
    return {"status": "ok"}


@app.get("/")
def root():
    """Service manifest: parameters, statements, formulas, endpoints."""
    return build_context(API_VERSION)


@app.get("/schema")
def get_schema():
    """Full JSON Schema for EngineInputs."""
    return get_inputs_schema()


@app.get("/inputs/defaults")
def get_defaults():
    """Complete example inputs. Use as a starting point for modifications."""
    return get_default_inputs()


@app.post("/model/normalize", response_model=NormalizeResponse)
def normalize(req: RunRequest):
    """Normalize inputs and echo both canonical and form-shaped versions."""
    inputs = _build_inputs(req)
    return NormalizeResponse(
        inputs=inputs.model_dump(mode="json"),
        ui_inputs=from_engine_to_ui(inputs),
    )


@app.post("/model/run", response_model=RunResponse)
def run(req: RunRequest):
    """Run the full model.

    Example minimal request:
    ```json
    {"overrides": {"purchase_share": 0.3, "interest_rate": 0.08}}
    ```
    """
    result = _run(req)
    return RunResponse(
        result=result.model_dump(mode="json"),
        balanced=result.balanced,
        narrative=generate_narrative(result),
    )


@app.post("/model/export/{statement}", response_class=PlainTextResponse)
def export(statement: str, req: RunRequest, include_metadata: bool = False):
    """Run the model and return one statement as CSV."""
    if statement not in STATEMENT_HEADERS:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown statement {statement!r}; expected one of {sorted(STATEMENT_HEADERS)}",
        )
    result = _run(req)
    return PlainTextResponse(
        export_statement(result, statement, include_metadata=include_metadata),
        media_type="text/csv",
    )


@app.post("/model/sensitivity")
def sensitivity(req: SensitivityRequest):
    """Tornado data: NPV at low/high for each swept input, largest swing first."""
    inputs = _build_inputs(req)

    sweeps = None
    if req.sweep_params:
        sweeps = [
            (sp.get("name", sp["field"]), sp["field"], sp.get("low_pct", -0.2), sp.get("high_pct", 0.2))
            for sp in req.sweep_params
        ]

    try:
        outcome = run_sensitivity(inputs, sweeps, _settings(req))
    except KeyError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=_validation_detail(exc)) from exc

    return {
        "base_npv": outcome.base_npv,
        "tornado_bars": [asdict(bar) for bar in outcome.bars],
        "interpretation": (
            "Sorted by absolute NPV impact (largest first). "
            "A wide spread between low and high NPV means the plan is sensitive to that input."
        ),
    }


@app.post("/model/scenarios")
def scenarios(req: ScenariosRequest):
    """Compare scenario templates (Conservative, Optimistic, High Volume) with the base case."""
    inputs = _build_inputs(req)
    try:
        outcomes = run_scenarios(inputs, req.templates, _settings(req))
    except KeyError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=_validation_detail(exc)) from exc
    return {"scenarios": [asdict(o) for o in outcomes]}


@app.post("/model/narrative")
def narrative(req: RunRequest):
    """Run the model and return only the narrative and headline metrics."""
    result = _run(req)
    return {
        "narrative": generate_narrative(result),
        "headline_metrics": {
            "npv": result.returns.npv,
            "irr": result.returns.irr,
            "payback_period": result.returns.payback_period,
            "min_dscr": result.metrics.min_dscr,
            "peak_funding_required": result.metrics.peak_funding_required,
            "balanced": result.balanced,
        },
    }


# ═══════════════════════════════════════════════════════════════════════════
# CLI entry point
# ═══════════════════════════════════════════════════════════════════════════

def main():
    """Run the API server."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "carbon_engine.api.server:app",
        host="0.0.0.0",
        port=8000,
    )


if __name__ == "__main__":
    main()
