"""Shared test fixtures — the acceptance scenario and the Ghana cookstove case."""

from __future__ import annotations

from pathlib import Path

import pytest

from carbon_engine.config import EngineInputs, EngineSettings, load_engine_inputs
from carbon_engine.engine.orchestrator import run_model
from carbon_engine.models.results import FinancialModelResult

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def strict() -> EngineSettings:
    return EngineSettings(invariant_policy="raise")


@pytest.fixture
def simple_inputs() -> EngineInputs:
    return load_engine_inputs(FIXTURES / "scenario_simple" / "engine_inputs.json")


@pytest.fixture
def ghana_inputs() -> EngineInputs:
    return load_engine_inputs(FIXTURES / "ghana_cookstoves" / "engine_inputs.json")


@pytest.fixture
def simple_result(simple_inputs: EngineInputs, strict: EngineSettings) -> FinancialModelResult:
    return run_model(simple_inputs, strict)


@pytest.fixture
def ghana_result(ghana_inputs: EngineInputs, strict: EngineSettings) -> FinancialModelResult:
    return run_model(ghana_inputs, strict)
