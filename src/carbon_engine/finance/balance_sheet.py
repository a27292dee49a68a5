"""Balance sheet & working capital.

  AR_t  = ar_rate × total_revenue_t
  AP_t  = ap_rate × total_opex_t
  PPE_t = PPE_{t−1} + capex_t − depreciation_t        PPE_{−1} = initial_ppe
  Equity_t = initial_equity_t0 + Σ injections + Σ net income

Cash is not derived here: it is carried over from the cash flow statement,
so ``balance_check`` is a genuine test of the statements' consistency.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from carbon_engine.config.inputs import EngineInputs
from carbon_engine.engine.carbon_stream import RevenueStreams
from carbon_engine.models.results import (
    BalanceSheetRow,
    CashFlowRow,
    DebtScheduleRow,
    IncomeStatementRow,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PPESchedule:
    """Fixed-asset roll-forward with depreciation limited to book value."""

    depreciation: list[float]
    gross: list[float]
    accumulated: list[float]
    net: list[float]


@dataclass(frozen=True)
class WorkingCapital:
    accounts_receivable: list[float]
    accounts_payable: list[float]

    def net(self, i: int) -> float:
        """AR − AP at year offset ``i``; zero before the first year."""
        if i < 0:
            return 0.0
        return self.accounts_receivable[i] - self.accounts_payable[i]


def build_ppe_schedule(inputs: EngineInputs) -> PPESchedule:
    """Roll PPE forward, capping each year's depreciation at the book value."""
    depreciation: list[float] = []
    gross: list[float] = []
    accumulated: list[float] = []
    net: list[float] = []

    gross_total = inputs.initial_ppe
    acc_total = 0.0
    book = inputs.initial_ppe
    for t in range(inputs.horizon):
        gross_total += inputs.capex[t]
        available = book + inputs.capex[t]
        scheduled = inputs.depreciation[t]
        dep = min(scheduled, available)
        if dep < scheduled:
            logger.warning(
                "Depreciation in %d capped at book value %.2f (scheduled %.2f)",
                inputs.years[t], available, scheduled,
            )
        acc_total += dep
        book = available - dep

        depreciation.append(dep)
        gross.append(gross_total)
        accumulated.append(acc_total)
        net.append(book)

    return PPESchedule(depreciation=depreciation, gross=gross, accumulated=accumulated, net=net)


def compute_working_capital(
    inputs: EngineInputs,
    income: list[IncomeStatementRow],
) -> WorkingCapital:
    return WorkingCapital(
        accounts_receivable=[inputs.ar_rate * row.total_revenue for row in income],
        accounts_payable=[inputs.ap_rate * row.total_opex for row in income],
    )


def build_balance_sheet(
    inputs: EngineInputs,
    income: list[IncomeStatementRow],
    cash_flow: list[CashFlowRow],
    streams: RevenueStreams,
    debt: list[DebtScheduleRow],
    ppe: PPESchedule,
    working_capital: WorkingCapital,
) -> list[BalanceSheetRow]:
    """Assemble year-end balance sheets.

    Parameters
    ----------
    inputs : EngineInputs
        Validated input schedule.
    income : list[IncomeStatementRow]
        For net income (retained earnings).
    cash_flow : list[CashFlowRow]
        Source of year-end cash.
    streams : RevenueStreams
        Source of unearned revenue.
    debt : list[DebtScheduleRow]
        Source of the debt balance.
    ppe, working_capital
        Pre-computed asset and working capital schedules.
    """
    rows: list[BalanceSheetRow] = []
    retained = 0.0
    contributed = inputs.initial_equity_t0

    for t in range(inputs.horizon):
        retained += income[t].net_income
        contributed += inputs.equity_injection[t]

        cash = cash_flow[t].cash_end
        ar = working_capital.accounts_receivable[t]
        total_assets = cash + ar + ppe.net[t]

        ap = working_capital.accounts_payable[t]
        unearned = streams.unearned_end[t]
        debt_balance = debt[t].ending_balance
        total_liabilities = ap + unearned + debt_balance

        total_equity = contributed + retained
        tle = total_liabilities + total_equity

        rows.append(BalanceSheetRow(
            year=inputs.years[t],
            cash=cash,
            accounts_receivable=ar,
            ppe_gross=ppe.gross[t],
            accumulated_depreciation=ppe.accumulated[t],
            ppe_net=ppe.net[t],
            total_assets=total_assets,
            accounts_payable=ap,
            unearned_revenue=unearned,
            debt_balance=debt_balance,
            total_liabilities=total_liabilities,
            retained_earnings=retained,
            contributed_capital=contributed,
            total_equity=total_equity,
            total_liabilities_equity=tle,
            balance_check=total_assets - tle,
        ))

    return rows
