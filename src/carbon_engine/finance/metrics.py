"""Headline KPIs — totals, margins, funding need, debt cover, unit economics."""

from __future__ import annotations

from carbon_engine.config.inputs import EngineInputs
from carbon_engine.models.results import (
    CashFlowRow,
    DebtScheduleRow,
    IncomeStatementRow,
    ModelMetrics,
    UnitEconomicsRow,
)


def _ratio(numerator: float, denominator: float) -> float | None:
    return numerator / denominator if denominator else None


def compute_unit_economics(
    inputs: EngineInputs,
    income: list[IncomeStatementRow],
) -> list[UnitEconomicsRow]:
    """Realised price vs. the price at which EBITDA breaks even, per year.

    Break-even revenue R* solves R*(1 − cogs_rate) = opex, so the break-even
    price is R* / credits_issued.  Years with no issuance have no per-credit
    figures.
    """
    rows: list[UnitEconomicsRow] = []
    margin = 1 - inputs.cogs_rate
    for inc in income:
        issued = inc.credits_issued
        realised = _ratio(inc.total_revenue, issued)
        break_even = _ratio(inc.total_opex / margin, issued) if margin > 0 else None
        spread = realised - break_even if realised is not None and break_even is not None else None
        rows.append(UnitEconomicsRow(
            year=inc.year,
            credits_issued=issued,
            average_realised_price=realised,
            break_even_price=break_even,
            safety_spread=spread,
        ))
    return rows


def _debt_free_year(debt: list[DebtScheduleRow]) -> int | None:
    last_draw = max((i for i, row in enumerate(debt) if row.draw > 0), default=None)
    if last_draw is None:
        return None
    for row in debt[last_draw:]:
        if row.ending_balance == 0:
            return row.year
    return None


def compute_metrics(
    inputs: EngineInputs,
    income: list[IncomeStatementRow],
    cash_flow: list[CashFlowRow],
    debt: list[DebtScheduleRow],
) -> ModelMetrics:
    """Aggregate KPIs over the horizon.

    ``debt`` must already carry DSCR values.
    """
    total_revenue = sum(r.total_revenue for r in income)
    total_ebitda = sum(r.ebitda for r in income)
    total_net_income = sum(r.net_income for r in income)

    min_cash_row = min(cash_flow, key=lambda r: r.cash_end)
    finite = [(r.dscr, r.year) for r in debt if r.dscr is not None]
    min_dscr, min_dscr_year = min(finite) if finite else (None, None)

    return ModelMetrics(
        total_credits_generated=sum(inputs.credits_generated),
        total_credits_issued=sum(r.credits_issued for r in income),
        total_revenue=total_revenue,
        total_ebitda=total_ebitda,
        total_net_income=total_net_income,
        total_capex=sum(inputs.capex),
        ebitda_margin=_ratio(total_ebitda, total_revenue),
        net_margin=_ratio(total_net_income, total_revenue),
        peak_funding_required=max(0.0, -min_cash_row.cash_end),
        min_cash=min_cash_row.cash_end,
        min_cash_year=min_cash_row.year,
        total_debt_drawn=sum(r.draw for r in debt),
        total_interest_paid=sum(r.interest_expense for r in debt),
        min_dscr=min_dscr,
        min_dscr_year=min_dscr_year,
        debt_free_year=_debt_free_year(debt),
        unit_economics=compute_unit_economics(inputs, income),
    )
