"""Orchestrator — one deterministic pass from inputs to audited statements.

Components run in dependency order:
  1. Carbon stream    — issuance, pre-purchase delivery, revenue split
  2. Debt schedule    — principal and interest (needs nothing else)
  3. PPE schedule     — depreciation limited to book value
  4. Income statement — revenue → net income
  5. DSCR             — attached once EBITDA is known
  6. Working capital  — AR / AP from the income statement
  7. Cash flow        — indirect method, cash rolled from opening_cash_y1
  8. Balance sheet    — cash taken from step 7
  9. FCFE & returns
 10. Identity checks  — logged or raised per ``EngineSettings.invariant_policy``

Entry point: ``run_model(inputs, settings=None)``.  The engine holds no
state between calls: identical inputs give identical results.
"""

from __future__ import annotations

import logging

from carbon_engine.config.inputs import EngineInputs
from carbon_engine.config.settings import EngineSettings
from carbon_engine.engine.carbon_stream import build_carbon_stream
from carbon_engine.errors import InvariantViolation
from carbon_engine.finance.balance_sheet import (
    build_balance_sheet,
    build_ppe_schedule,
    compute_working_capital,
)
from carbon_engine.finance.checks import run_identity_checks
from carbon_engine.finance.debt import build_debt_schedule, compute_dscr
from carbon_engine.finance.metrics import compute_metrics
from carbon_engine.finance.returns import build_free_cash_flow, build_returns_summary
from carbon_engine.finance.statements import build_cash_flow_statement, build_income_statement
from carbon_engine.models.results import FinancialModelResult, InvariantCheck

logger = logging.getLogger(__name__)


def run_model(inputs: EngineInputs, settings: EngineSettings | None = None) -> FinancialModelResult:
    """Compute the full statement set for one input schedule.

    Parameters
    ----------
    inputs : EngineInputs
        Validated input schedule.
    settings : EngineSettings | None
        Tolerances and invariant policy. None = defaults (policy 'log').

    Returns
    -------
    FinancialModelResult
        Statements, returns, metrics and the outcome of every identity check.

    Raises
    ------
    InvariantViolation
        If any identity fails and ``settings.invariant_policy == 'raise'``.
    """
    settings = settings or EngineSettings()
    logger.debug("Running model for %d-year horizon %s–%s",
                 inputs.horizon, inputs.years[0], inputs.years[-1])

    streams = build_carbon_stream(inputs)
    debt = build_debt_schedule(inputs)
    ppe = build_ppe_schedule(inputs)

    income = build_income_statement(inputs, streams, debt, ppe)
    debt = compute_dscr(debt, [row.ebitda for row in income])

    working_capital = compute_working_capital(inputs, income)
    cash_flow = build_cash_flow_statement(inputs, income, streams, debt, working_capital)
    balance = build_balance_sheet(inputs, income, cash_flow, streams, debt, ppe, working_capital)

    free_cash_flow = build_free_cash_flow(cash_flow)
    returns = build_returns_summary(inputs, free_cash_flow, cash_flow, streams, settings)
    metrics = compute_metrics(inputs, income, cash_flow, debt)

    checks = run_identity_checks(inputs, income, balance, cash_flow, debt, settings.tolerance)
    enforce_invariants(checks, settings)

    return FinancialModelResult(
        inputs=inputs,
        income_statement=income,
        balance_sheet=balance,
        cash_flow=cash_flow,
        debt_schedule=debt,
        carbon_stream=streams.rows,
        free_cash_flow=free_cash_flow,
        returns=returns,
        metrics=metrics,
        checks=checks,
    )


def enforce_invariants(checks: list[InvariantCheck], settings: EngineSettings) -> None:
    """Apply the invariant policy to a set of check outcomes."""
    failures = [c for c in checks if not c.passed]
    if not failures:
        return
    if settings.invariant_policy == "raise":
        raise InvariantViolation(failures)
    for c in failures:
        logger.warning(
            "Identity check %s failed in %d: expected %.2f, got %.2f (delta %.4f)",
            c.name, c.year, c.expected, c.actual, c.delta,
        )
