"""Tests for the income statement, cash flow statement and balance sheet.

The acceptance scenario is a three-year project with one issuance event,
a spot-priced pre-purchase, a two-year loan and loss-making operations.
"""

from __future__ import annotations

import pytest

from carbon_engine.config import EngineInputs
from carbon_engine.engine.carbon_stream import build_carbon_stream
from carbon_engine.finance.balance_sheet import build_ppe_schedule, compute_working_capital
from carbon_engine.finance.debt import build_debt_schedule
from carbon_engine.finance.statements import build_income_statement


def _col(rows, name):
    return [getattr(r, name) for r in rows]


# ═══════════════════════════════════════════════════════════════════════════
# Income statement
# ═══════════════════════════════════════════════════════════════════════════

class TestIncomeStatement:
    def test_revenue_lines(self, simple_result):
        inc = simple_result.income_statement
        assert _col(inc, "credits_issued") == pytest.approx([0, 1000, 0])
        assert _col(inc, "spot_revenue") == pytest.approx([0, 8000, 0])
        assert _col(inc, "pre_purchase_revenue") == pytest.approx([0, 2000, 0])
        assert _col(inc, "total_revenue") == pytest.approx([0, 10000, 0])

    def test_cogs_and_gross_profit(self, simple_result):
        inc = simple_result.income_statement
        assert _col(inc, "cogs") == pytest.approx([0, 1000, 0])
        assert _col(inc, "gross_profit") == pytest.approx([0, 9000, 0])

    def test_opex_and_ebitda(self, simple_result):
        inc = simple_result.income_statement
        assert _col(inc, "total_opex") == pytest.approx([17000, 11000, 10000])
        assert _col(inc, "ebitda") == pytest.approx([-17000, -2000, -10000])

    def test_below_ebitda(self, simple_result):
        inc = simple_result.income_statement
        assert _col(inc, "depreciation") == pytest.approx([3000, 3000, 3000])
        assert _col(inc, "interest_expense") == pytest.approx([0, 523.81, 0], abs=0.01)
        assert _col(inc, "earnings_before_tax") == pytest.approx([-20000, -5523.81, -13000], abs=0.01)
        assert _col(inc, "net_income") == pytest.approx([-20000, -5523.81, -13000], abs=0.01)

    def test_no_tax_on_losses(self, simple_result):
        assert _col(simple_result.income_statement, "income_tax") == [0, 0, 0]

    def test_tax_on_profit(self):
        inputs = EngineInputs(
            years=[2025],
            credits_generated=[1000],
            price_per_credit=[20],
            staff_costs=[5000],
            income_tax_rate=0.25,
        )
        streams = build_carbon_stream(inputs)
        inc = build_income_statement(
            inputs, streams, build_debt_schedule(inputs), build_ppe_schedule(inputs),
        )
        assert inc[0].earnings_before_tax == pytest.approx(15000)
        assert inc[0].income_tax == pytest.approx(3750)
        assert inc[0].net_income == pytest.approx(11250)

    def test_ghana_year_with_pre_purchase(self, ghana_result):
        row = ghana_result.income_statement[3]
        assert row.year == 2028
        assert row.purchased_credits == pytest.approx(6400)
        assert row.implied_purchase_price == pytest.approx(109.375)
        assert row.total_revenue == pytest.approx(1760000 + 700000)
        assert row.cogs == pytest.approx(0.15 * 2460000)


# ═══════════════════════════════════════════════════════════════════════════
# Cash flow statement
# ═══════════════════════════════════════════════════════════════════════════

class TestCashFlowStatement:
    def test_operating(self, simple_result):
        cf = simple_result.cash_flow
        assert _col(cf, "decrease_in_ar") == pytest.approx([0, -500, 500])
        assert _col(cf, "increase_in_ap") == pytest.approx([1700, -600, -100])
        assert _col(cf, "operating_cash_flow") == pytest.approx([-15300, -3623.81, -9600], abs=0.01)

    def test_investing(self, simple_result):
        cf = simple_result.cash_flow
        assert _col(cf, "capex") == pytest.approx([-20000, 0, 0])
        assert _col(cf, "investing_cash_flow") == pytest.approx([-20000, 0, 0])

    def test_financing(self, simple_result):
        cf = simple_result.cash_flow
        assert _col(cf, "debt_financing") == pytest.approx([10000, 0, 0])
        assert _col(cf, "debt_repayments") == pytest.approx([-4761.90, -5238.10, 0], abs=0.01)
        # 2,000 received and released in the same year
        assert _col(cf, "change_unearned_revenue") == pytest.approx([0, 0, 0])
        assert _col(cf, "financing_cash_flow") == pytest.approx([5238.10, -5238.10, 0], abs=0.01)

    def test_cash_roll(self, simple_result):
        cf = simple_result.cash_flow
        assert cf[0].cash_start == 5000
        assert _col(cf, "cash_end") == pytest.approx([-25061.90, -33923.81, -43523.81], abs=0.01)
        assert cf[1].cash_start == cf[0].cash_end
        assert cf[2].cash_start == cf[1].cash_end

    def test_unearned_movement_in_financing(self, ghana_result):
        cf = ghana_result.cash_flow
        assert cf[2].change_unearned_revenue == pytest.approx(350000)
        assert cf[3].change_unearned_revenue == pytest.approx(-350000)
        assert cf[1].equity_injection == 100000


# ═══════════════════════════════════════════════════════════════════════════
# Balance sheet
# ═══════════════════════════════════════════════════════════════════════════

class TestBalanceSheet:
    def test_working_capital(self, simple_result):
        bs = simple_result.balance_sheet
        assert _col(bs, "accounts_receivable") == pytest.approx([0, 500, 0])
        assert _col(bs, "accounts_payable") == pytest.approx([1700, 1100, 1000])

    def test_ppe(self, simple_result):
        bs = simple_result.balance_sheet
        assert _col(bs, "ppe_net") == pytest.approx([17000, 14000, 11000])
        assert _col(bs, "ppe_gross") == pytest.approx([20000, 20000, 20000])
        assert _col(bs, "accumulated_depreciation") == pytest.approx([3000, 6000, 9000])

    def test_equity(self, simple_result):
        bs = simple_result.balance_sheet
        assert bs[0].contributed_capital == 5000
        assert bs[0].retained_earnings == pytest.approx(-20000)
        assert bs[0].total_equity == pytest.approx(-15000)

    def test_unearned_and_debt(self, simple_result):
        bs = simple_result.balance_sheet
        assert _col(bs, "unearned_revenue") == pytest.approx([0, 0, 0])
        assert _col(bs, "debt_balance") == pytest.approx([5238.10, 0, 0], abs=0.01)

    @pytest.mark.parametrize("fixture", ["simple_result", "ghana_result"])
    def test_balances(self, fixture, request):
        for row in request.getfixturevalue(fixture).balance_sheet:
            assert abs(row.balance_check) <= 0.01
            assert row.total_assets == pytest.approx(row.total_liabilities_equity, abs=0.01)

    def test_ghana_unearned_and_capital(self, ghana_result):
        bs = ghana_result.balance_sheet
        assert bs[2].unearned_revenue == pytest.approx(350000)
        assert bs[3].unearned_revenue == pytest.approx(0)
        assert bs[0].contributed_capital == 400000
        assert all(row.contributed_capital == 500000 for row in bs[1:])


class TestPPESchedule:
    def test_depreciation_capped_at_book_value(self, caplog):
        inputs = EngineInputs(years=[2025, 2026], capex=[100, 0], depreciation=[60, 60])
        ppe = build_ppe_schedule(inputs)
        assert ppe.depreciation == [60, 40]
        assert ppe.net == [40, 0]
        assert "capped at book value" in caplog.text

    def test_initial_ppe_is_depreciable(self):
        inputs = EngineInputs(years=[2025], initial_ppe=500, depreciation=[100])
        ppe = build_ppe_schedule(inputs)
        assert ppe.net == [400]
        assert ppe.gross == [500]

    def test_working_capital_net(self, simple_inputs, simple_result):
        wc = compute_working_capital(simple_inputs, simple_result.income_statement)
        assert wc.net(-1) == 0
        assert wc.net(0) == pytest.approx(-1700)
        assert wc.net(1) == pytest.approx(-600)
