"""Tests for the HTTP compute service.

Covers:
  - Manifest / schema / defaults endpoints
  - /model/run with engine-shaped, UI-shaped and overridden inputs
  - Error mapping: 422 for bad inputs, 500 for strict invariant failures
  - CSV export, sensitivity, scenarios, narrative
  - Deep merge utility and narrative generation
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from carbon_engine.api.context import _extract_params, build_context, get_default_inputs
from carbon_engine.api.narrative import format_irr, format_payback, generate_narrative
from carbon_engine.api.server import _deep_merge, app
from carbon_engine.config import EngineInputs


client = TestClient(app)


# ═══════════════════════════════════════════════════════════════════════════
# Context / schema
# ═══════════════════════════════════════════════════════════════════════════

class TestContext:
    def test_build_context(self):
        ctx = build_context("1.0")
        assert ctx.version == "1.0"
        assert len(ctx.key_formulas) >= 5
        assert "income_statement" in ctx.statements
        assert len(ctx.endpoints) >= 8

    def test_extract_params(self):
        params = {p.name: p for p in _extract_params(EngineInputs)}
        assert params["interest_rate"].constraints == {"ge": 0, "le": 1.0}
        assert params["debt_duration_years"].default == 1
        assert params["capex"].default == []

    def test_default_inputs_are_valid(self):
        inputs = EngineInputs.model_validate(get_default_inputs())
        assert inputs.horizon == 8

    def test_default_inputs_fresh_copy(self):
        a = get_default_inputs()
        a["years"].append(2099)
        assert len(get_default_inputs()["years"]) == 8


class TestDeepMerge:
    def test_nested(self):
        base = {"a": {"b": 1, "c": 2}, "d": 3}
        assert _deep_merge(base, {"a": {"b": 10}}) == {"a": {"b": 10, "c": 2}, "d": 3}

    def test_replaces_lists(self):
        assert _deep_merge({"x": [1, 2]}, {"x": [3]}) == {"x": [3]}


# ═══════════════════════════════════════════════════════════════════════════
# Endpoints
# ═══════════════════════════════════════════════════════════════════════════

class TestEndpoints:
    def test_health(self):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_root_manifest(self):
        body = client.get("/").json()
        assert body["name"] == "Carbon Credit Project Financial Engine"
        assert any(p["name"] == "years" for p in body["parameters"])

    def test_schema(self):
        body = client.get("/schema").json()
        assert "years" in body["properties"]
        assert "years" in body["required"]

    def test_defaults(self):
        body = client.get("/inputs/defaults").json()
        assert body["purchase_share"] == 0.40

    def test_run_defaults(self):
        resp = client.post("/model/run", json={})
        assert resp.status_code == 200
        body = resp.json()
        assert body["balanced"] is True
        assert len(body["result"]["income_statement"]) == 8
        assert "RETURNS" in body["narrative"]

    def test_run_with_overrides(self):
        base = client.post("/model/run", json={}).json()
        cheaper = client.post("/model/run", json={"overrides": {"interest_rate": 0.02}}).json()
        assert cheaper["result"]["inputs"]["interest_rate"] == 0.02
        assert cheaper["result"]["returns"]["npv"] > base["result"]["returns"]["npv"]

    def test_run_engine_inputs(self, simple_inputs):
        resp = client.post("/model/run", json={"inputs": simple_inputs.model_dump(mode="json")})
        assert resp.status_code == 200
        result = resp.json()["result"]
        assert result["returns"]["irr"] is None
        assert result["debt_schedule"][2]["dscr"] is None

    def test_run_ui_inputs(self):
        ui = {
            "years": [2025, 2026],
            "issue": [True, True],
            "credits_generated": ["1,000", "1,000"],
            "price_per_credit": ["$15", "$15"],
            "staff_costs": ["-2,000", "-2,000"],
            "cogs_rate": "10%",
            "initial_equity_t0": "$1,000",
            "opening_cash_y1": "1000",
        }
        resp = client.post("/model/run", json={"ui_inputs": ui})
        assert resp.status_code == 200
        inc = resp.json()["result"]["income_statement"]
        assert inc[0]["total_revenue"] == pytest.approx(15000)
        assert inc[0]["ebitda"] == pytest.approx(15000 * 0.9 - 2000)

    def test_length_mismatch_is_422(self):
        resp = client.post("/model/run", json={"overrides": {"capex": [1, 2]}})
        assert resp.status_code == 422
        assert "Length of capex" in resp.json()["detail"][0]["msg"]

    def test_bad_ui_rate_is_422(self):
        resp = client.post("/model/run", json={"ui_inputs": {"years": [2025], "cogs_rate": "300%"}})
        assert resp.status_code == 422

    def test_strict_invariant_failure_is_500(self):
        resp = client.post("/model/run", json={
            "overrides": {"opening_cash_y1": 0},
            "invariant_policy": "raise",
        })
        assert resp.status_code == 500
        failed = {c["name"] for c in resp.json()["failed_checks"]}
        assert "opening_balance" in failed

    def test_lenient_invariant_failure_is_reported(self):
        resp = client.post("/model/run", json={"overrides": {"opening_cash_y1": 0}})
        assert resp.status_code == 200
        assert resp.json()["balanced"] is False

    def test_normalize(self):
        resp = client.post("/model/normalize", json={
            "ui_inputs": {"years": [2025], "ar_rate": "5%", "capex": ["-$500"]},
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["inputs"]["ar_rate"] == pytest.approx(0.05)
        assert body["inputs"]["capex"] == [500.0]
        assert body["ui_inputs"]["ar_rate"].endswith("%")
        resp = client.post("/model/normalize", json={"ui_inputs": body["ui_inputs"]})
        assert resp.json()["inputs"]["ar_rate"] == pytest.approx(0.05)

    def test_normalize_echo_keeps_small_rates(self):
        body = client.post("/model/normalize", json={"overrides": {"interest_rate": 0.008}}).json()
        echoed = client.post("/model/normalize", json={"ui_inputs": body["ui_inputs"]}).json()
        assert echoed["inputs"]["interest_rate"] == pytest.approx(0.008)

    def test_export_csv(self):
        resp = client.post("/model/export/debt_schedule", json={})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        lines = resp.text.splitlines()
        assert lines[0].startswith("year,beginning_balance")
        assert lines[-1].endswith("N/A")

    def test_export_with_metadata(self):
        resp = client.post("/model/export/income_statement?include_metadata=true", json={})
        assert resp.text.startswith("# schema_version: 1.0")

    def test_export_unknown_statement(self):
        assert client.post("/model/export/dividends", json={}).status_code == 404

    def test_sensitivity(self):
        body = client.post("/model/sensitivity", json={}).json()
        assert len(body["tornado_bars"]) == 6
        swings = [b["delta_npv"] for b in body["tornado_bars"]]
        assert swings == sorted(swings, reverse=True)

    def test_sensitivity_custom_sweep(self):
        body = client.post("/model/sensitivity", json={
            "sweep_params": [{"name": "Price", "field": "price_per_credit", "low_pct": -0.1, "high_pct": 0.1}],
        }).json()
        assert [b["param_field"] for b in body["tornado_bars"]] == ["price_per_credit"]

    def test_sensitivity_unknown_field_is_422(self):
        resp = client.post("/model/sensitivity", json={"sweep_params": [{"field": "magic"}]})
        assert resp.status_code == 422

    def test_sensitivity_on_years_is_422(self):
        resp = client.post("/model/sensitivity", json={"sweep_params": [{"field": "years"}]})
        assert resp.status_code == 422
        assert "cannot be scaled" in resp.json()["detail"]

    def test_scenarios(self):
        body = client.post("/model/scenarios", json={}).json()
        names = [s["name"] for s in body["scenarios"]]
        assert names == ["Base", "Conservative", "Optimistic", "High Volume"]

    def test_narrative(self):
        body = client.post("/model/narrative", json={}).json()
        assert "PROJECT SUMMARY" in body["narrative"]
        assert set(body["headline_metrics"]) >= {"npv", "irr", "payback_period", "balanced"}


# ═══════════════════════════════════════════════════════════════════════════
# Narrative
# ═══════════════════════════════════════════════════════════════════════════

class TestNarrative:
    def test_sentinel_formatting(self):
        assert format_irr(None).startswith("N/A")
        assert format_irr(0.1234) == "12.3%"
        assert format_payback(None) == "> horizon"
        assert format_payback(2.5) == "2.5 years"

    def test_acceptance_narrative(self, simple_result):
        text = generate_narrative(simple_result)
        assert "> horizon" in text
        assert "additional funding" in text
        assert "Debt fully repaid by 2026" in text
        assert "identity checks passed" in text

    def test_pre_purchase_mentioned(self, ghana_result):
        text = generate_narrative(ghana_result)
        assert "$109.38/credit" in text
        assert "40% of volume" in text
