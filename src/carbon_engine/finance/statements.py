"""Financial statements — income statement and cash flow statement.

  Income statement: Revenue → Gross profit → EBITDA → EBIT → EBT → Net income
  Cash flow (indirect): Operating + Investing + Financing = Δ cash

Expenses on the income statement are positive magnitudes; on the cash
flow statement outflows carry a negative sign.
"""

from __future__ import annotations

from carbon_engine.config.inputs import EngineInputs
from carbon_engine.engine.carbon_stream import RevenueStreams
from carbon_engine.finance.balance_sheet import PPESchedule, WorkingCapital
from carbon_engine.models.results import CashFlowRow, DebtScheduleRow, IncomeStatementRow


def build_income_statement(
    inputs: EngineInputs,
    streams: RevenueStreams,
    debt: list[DebtScheduleRow],
    ppe: PPESchedule,
) -> list[IncomeStatementRow]:
    """Build the annual income statement.

    COGS is a fraction of total revenue; tax is charged on positive EBT
    only, with no loss carry-forward.
    """
    rows: list[IncomeStatementRow] = []

    for t in range(inputs.horizon):
        revenue = streams.total_revenue[t]
        cogs = inputs.cogs_rate * revenue
        gross_profit = revenue - cogs

        opex = inputs.total_opex(t)
        ebitda = gross_profit - opex
        dep = ppe.depreciation[t]
        ebit = ebitda - dep
        interest = debt[t].interest_expense
        ebt = ebit - interest
        tax = max(ebt, 0.0) * inputs.income_tax_rate

        rows.append(IncomeStatementRow(
            year=inputs.years[t],
            credits_generated=inputs.credits_generated[t],
            credits_issued=streams.credits_issued[t],
            price_per_credit=inputs.price_per_credit[t],
            purchased_credits=streams.delivered_credits[t],
            implied_purchase_price=streams.implied_price or 0.0,
            spot_revenue=streams.spot_revenue[t],
            pre_purchase_revenue=streams.pre_purchase_revenue[t],
            total_revenue=revenue,
            cogs=cogs,
            gross_profit=gross_profit,
            feasibility_costs=inputs.feasibility_costs[t],
            pdd_costs=inputs.pdd_costs[t],
            mrv_costs=inputs.mrv_costs[t],
            staff_costs=inputs.staff_costs[t],
            total_opex=opex,
            ebitda=ebitda,
            depreciation=dep,
            ebit=ebit,
            interest_expense=interest,
            earnings_before_tax=ebt,
            income_tax=tax,
            net_income=ebt - tax,
        ))

    return rows


def build_cash_flow_statement(
    inputs: EngineInputs,
    income: list[IncomeStatementRow],
    streams: RevenueStreams,
    debt: list[DebtScheduleRow],
    working_capital: WorkingCapital,
) -> list[CashFlowRow]:
    """Reconcile net income to cash, year by year.

    The pre-purchase movement (cash received − revenue released) sits in
    financing, once.  Opening AR and AP are zero.
    """
    rows: list[CashFlowRow] = []
    cash = inputs.opening_cash_y1
    ar_prev = 0.0
    ap_prev = 0.0

    for t in range(inputs.horizon):
        ni = income[t].net_income
        dep = income[t].depreciation
        ar = working_capital.accounts_receivable[t]
        ap = working_capital.accounts_payable[t]
        decrease_in_ar = -(ar - ar_prev)
        increase_in_ap = ap - ap_prev
        operating = ni + dep + decrease_in_ar + increase_in_ap

        capex = -inputs.capex[t]
        investing = capex

        draw = debt[t].draw
        repayment = -debt[t].principal_payment
        unearned_change = streams.change_in_unearned(t)
        injection = inputs.equity_injection[t]
        financing = injection + draw + repayment + unearned_change

        net_change = operating + investing + financing
        cash_start = cash
        cash = cash_start + net_change

        rows.append(CashFlowRow(
            year=inputs.years[t],
            net_income=ni,
            depreciation=dep,
            decrease_in_ar=decrease_in_ar,
            increase_in_ap=increase_in_ap,
            operating_cash_flow=operating,
            capex=capex,
            investing_cash_flow=investing,
            debt_financing=draw,
            debt_repayments=repayment,
            change_unearned_revenue=unearned_change,
            equity_injection=injection,
            financing_cash_flow=financing,
            cash_start=cash_start,
            net_change_cash=net_change,
            cash_end=cash,
        ))
        ar_prev, ap_prev = ar, ap

    return rows
