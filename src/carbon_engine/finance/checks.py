"""Accounting identity checks.

Every run is audited against the identities that must hold for a
consistent three-statement model:

  opening_balance     opening_cash_y1 + initial_ppe = initial_equity_t0
  equity_identity     Equity_t = Equity_{t−1} + NI_t + injection_t
  cash_identity       cash_end = cash_start + CFO + CFI + CFF
  cash_continuity     cash_start_t = cash_end_{t−1}  (opening_cash_y1 for t = 0)
  balance_sheet       total_assets = total_liabilities + total_equity
  revenue_components  total_revenue = spot_revenue + pre_purchase_revenue
  debt_roll_forward   ending = beginning + draw − principal
  issuance_limit      Σ issued ≤ Σ generated

Each check yields an ``InvariantCheck`` record; nothing here raises.
"""

from __future__ import annotations

from carbon_engine.config.inputs import EngineInputs
from carbon_engine.models.results import (
    BalanceSheetRow,
    CashFlowRow,
    DebtScheduleRow,
    IncomeStatementRow,
    InvariantCheck,
)


def _check(
    results: list[InvariantCheck],
    name: str,
    year: int,
    expected: float,
    actual: float,
    tolerance: float,
) -> None:
    delta = actual - expected
    results.append(InvariantCheck(
        name=name,
        year=year,
        expected=expected,
        actual=actual,
        delta=delta,
        passed=abs(delta) <= tolerance,
    ))


def run_identity_checks(
    inputs: EngineInputs,
    income: list[IncomeStatementRow],
    balance: list[BalanceSheetRow],
    cash_flow: list[CashFlowRow],
    debt: list[DebtScheduleRow],
    tolerance: float = 0.01,
) -> list[InvariantCheck]:
    """Run every identity for every year. Returns all outcomes, passed or not."""
    results: list[InvariantCheck] = []
    years = inputs.years

    _check(
        results, "opening_balance", years[0],
        inputs.initial_equity_t0,
        inputs.opening_cash_y1 + inputs.initial_ppe,
        tolerance,
    )

    prev_equity = inputs.initial_equity_t0
    prev_cash_end = inputs.opening_cash_y1
    cum_generated = 0.0
    cum_issued = 0.0

    for t, year in enumerate(years):
        inc, bs, cf, dr = income[t], balance[t], cash_flow[t], debt[t]

        _check(
            results, "equity_identity", year,
            prev_equity + inc.net_income + inputs.equity_injection[t],
            bs.total_equity,
            tolerance,
        )
        _check(
            results, "cash_identity", year,
            cf.cash_start + cf.operating_cash_flow + cf.investing_cash_flow + cf.financing_cash_flow,
            cf.cash_end,
            tolerance,
        )
        _check(results, "cash_continuity", year, prev_cash_end, cf.cash_start, tolerance)
        _check(
            results, "balance_sheet", year,
            bs.total_assets, bs.total_liabilities_equity,
            tolerance,
        )
        _check(
            results, "revenue_components", year,
            inc.spot_revenue + inc.pre_purchase_revenue, inc.total_revenue,
            tolerance,
        )
        _check(
            results, "debt_roll_forward", year,
            dr.beginning_balance + dr.draw - dr.principal_payment, dr.ending_balance,
            tolerance,
        )

        # One-sided: issuing less than generated is fine
        cum_generated += inc.credits_generated
        cum_issued += inc.credits_issued
        excess = max(cum_issued - cum_generated, 0.0)
        results.append(InvariantCheck(
            name="issuance_limit",
            year=year,
            expected=cum_generated,
            actual=cum_issued,
            delta=excess,
            passed=excess <= tolerance,
        ))

        prev_equity = bs.total_equity
        prev_cash_end = cf.cash_end

    return results
