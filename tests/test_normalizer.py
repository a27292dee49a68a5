"""Tests for the input normalizer — loose UI values → canonical EngineInputs."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from carbon_engine.engine.normalizer import (
    UIModelInputs,
    from_engine_to_ui,
    normalize_flag,
    normalize_outflow,
    normalize_rate,
    parse_number_loose,
    to_engine_inputs,
)


class TestParseNumberLoose:
    @pytest.mark.parametrize("raw, expected", [
        ("$1,250", 1250.0),
        (" 1 250 ", 1250.0),
        ("-3.5", -3.5),
        (42, 42.0),
        (None, 0.0),
        ("", 0.0),
    ])
    def test_accepted_forms(self, raw, expected):
        assert parse_number_loose(raw) == expected

    def test_garbage_rejected(self):
        with pytest.raises(ValueError, match="Invalid number"):
            parse_number_loose("twelve")

    def test_nan_rejected(self):
        with pytest.raises(ValueError):
            parse_number_loose("nan")


class TestNormalizeRate:
    @pytest.mark.parametrize("raw", [5, "5", "5%", " 5 % ", 0.05, "0.05"])
    def test_five_percent_forms(self, raw):
        assert normalize_rate(raw) == pytest.approx(0.05)

    def test_explicit_percent_below_one(self):
        assert normalize_rate("0.5%") == pytest.approx(0.005)

    def test_bare_one_is_full_rate(self):
        assert normalize_rate(1) == 1.0

    def test_above_hundred_percent_rejected(self):
        with pytest.raises(ValueError, match="between 0 and 1"):
            normalize_rate(150)

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            normalize_rate(-0.1)


class TestFlagsAndOutflows:
    @pytest.mark.parametrize("raw, expected", [
        (True, 1), (False, 0), (1, 1), (0, 0), ("1", 1),
        ("true", 1), ("TRUE", 1), ("no", 0), (None, 0), ("", 0),
    ])
    def test_flag(self, raw, expected):
        assert normalize_flag(raw) == expected

    def test_outflow_sign_ignored(self):
        assert normalize_outflow("-$5,000") == 5000.0
        assert normalize_outflow(5000) == 5000.0


class TestUIModelInputs:
    def _ui(self, **overrides) -> dict:
        ui = {
            "years": [2025, 2026],
            "issue": [False, True],
            "credits_generated": ["1,000", "500"],
            "price_per_credit": ["$12", "$12.50"],
            "staff_costs": [-4000, "4,000"],
            "capex": ["-10000", 0],
            "depreciation": [2000, 2000],
            "cogs_rate": "10%",
            "income_tax_rate": 25,
            "interest_rate": "8",
            "debt_duration_years": "3.9",
            "opening_cash_y1": "$10,000",
            "initial_equity_t0": "10000",
        }
        ui.update(overrides)
        return ui

    def test_to_engine_inputs(self):
        inputs = to_engine_inputs(self._ui())
        assert inputs.issuance_flag == [0, 1]
        assert inputs.credits_generated == [1000.0, 500.0]
        assert inputs.price_per_credit == [12.0, 12.5]
        assert inputs.staff_costs == [4000.0, 4000.0]
        assert inputs.capex == [10000.0, 0.0]
        assert inputs.cogs_rate == pytest.approx(0.10)
        assert inputs.income_tax_rate == pytest.approx(0.25)
        assert inputs.interest_rate == pytest.approx(0.08)
        assert inputs.debt_duration_years == 3
        assert inputs.opening_cash_y1 == 10000.0

    def test_missing_arrays_default_to_zero(self):
        inputs = to_engine_inputs(self._ui())
        assert inputs.feasibility_costs == [0.0, 0.0]
        assert inputs.debt_draw == [0.0, 0.0]
        assert inputs.ar_rate == 0.0

    def test_length_mismatch_rejected(self):
        with pytest.raises(ValidationError, match="Length of price_per_credit"):
            UIModelInputs.model_validate(self._ui(price_per_credit=[12]))

    def test_bad_number_names_field(self):
        with pytest.raises(ValidationError) as exc_info:
            UIModelInputs.model_validate(self._ui(opening_cash_y1="lots"))
        assert exc_info.value.errors()[0]["loc"][0] == "opening_cash_y1"

    def test_bad_rate_rejected(self):
        with pytest.raises(ValidationError):
            to_engine_inputs(self._ui(cogs_rate="250%"))

    def test_accepts_model_instance(self):
        ui = UIModelInputs.model_validate(self._ui())
        assert to_engine_inputs(ui) == ui.to_engine_inputs()


class TestRoundTrip:
    RATE_FIELDS = ("interest_rate", "purchase_share", "ar_rate", "ap_rate",
                   "cogs_rate", "income_tax_rate", "discount_rate")

    def test_engine_to_ui_uses_percent(self, ghana_inputs):
        ui = from_engine_to_ui(ghana_inputs)
        assert ui["interest_rate"].endswith("%")
        assert normalize_rate(ui["interest_rate"]) == pytest.approx(0.09)
        assert normalize_rate(ui["purchase_share"]) == pytest.approx(0.40)
        assert ui["issue"] == [False, False, False, True, True, False, True, True]

    @pytest.mark.parametrize("rate", [0.0, 0.005, 0.008, 0.01, 0.012, 0.5, 1.0])
    def test_small_rates_survive(self, simple_inputs, rate):
        inputs = simple_inputs.model_copy(update={"interest_rate": rate, "discount_rate": rate})
        back = to_engine_inputs(from_engine_to_ui(inputs))
        assert back.interest_rate == pytest.approx(rate)
        assert back.discount_rate == pytest.approx(rate)

    @pytest.mark.parametrize("fixture", ["simple_inputs", "ghana_inputs"])
    def test_round_trip_preserves_inputs(self, request, fixture):
        inputs = request.getfixturevalue(fixture)
        back = to_engine_inputs(from_engine_to_ui(inputs))
        for name, value in inputs:
            if name in self.RATE_FIELDS:
                assert getattr(back, name) == pytest.approx(value), name
            else:
                assert getattr(back, name) == value, name

