"""Result types — the contract between engine, finance, export, and API.

All statement rows are plain per-year records keyed by calendar ``year``.
Amounts are unrounded; rounding happens only at export time.  Numeric
sentinels are ``None``: a DSCR with no debt service, an IRR that does not
converge, a payback that never happens within the horizon.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from carbon_engine.config.inputs import EngineInputs


SCHEMA_VERSION = "1.0"


# ═══════════════════════════════════════════════════════════════════════════
# Statement rows
# ═══════════════════════════════════════════════════════════════════════════

class IncomeStatementRow(BaseModel):
    """One year of the income statement. Expenses are positive magnitudes."""

    year: int

    # --- Volumes & prices ---
    credits_generated: float
    credits_issued: float
    price_per_credit: float
    purchased_credits: float
    """Credits delivered to the pre-purchase buyer this year."""
    implied_purchase_price: float
    """Locked pre-purchase price (0 when there is no pre-purchase agreement)."""

    # --- Revenue ---
    spot_revenue: float
    pre_purchase_revenue: float
    total_revenue: float
    cogs: float
    gross_profit: float

    # --- Operating expenses ---
    feasibility_costs: float
    pdd_costs: float
    mrv_costs: float
    staff_costs: float
    total_opex: float

    # --- Below EBITDA ---
    ebitda: float
    depreciation: float
    ebit: float
    interest_expense: float
    earnings_before_tax: float
    income_tax: float
    net_income: float


class BalanceSheetRow(BaseModel):
    """Year-end balance sheet."""

    year: int

    # --- Assets ---
    cash: float
    accounts_receivable: float
    ppe_gross: float
    accumulated_depreciation: float
    ppe_net: float
    total_assets: float

    # --- Liabilities ---
    accounts_payable: float
    unearned_revenue: float
    """Pre-purchase cash received but not yet earned through delivery."""
    debt_balance: float
    total_liabilities: float

    # --- Equity ---
    retained_earnings: float
    """Cumulative net income (no dividends are modelled)."""
    contributed_capital: float
    """initial_equity_t0 + cumulative equity injections."""
    total_equity: float

    total_liabilities_equity: float
    balance_check: float
    """total_assets − total_liabilities_equity. Zero when the sheet balances."""


class CashFlowRow(BaseModel):
    """Indirect-method cash flow statement. Outflows are negative."""

    year: int

    # --- Operating ---
    net_income: float
    depreciation: float
    decrease_in_ar: float
    """−ΔAR: a rise in receivables is a use of cash."""
    increase_in_ap: float
    operating_cash_flow: float

    # --- Investing ---
    capex: float
    investing_cash_flow: float

    # --- Financing ---
    debt_financing: float
    debt_repayments: float
    change_unearned_revenue: float
    """Pre-purchase cash received minus pre-purchase revenue recognised."""
    equity_injection: float
    financing_cash_flow: float

    # --- Cash roll ---
    cash_start: float
    net_change_cash: float
    cash_end: float


class DebtScheduleRow(BaseModel):
    """One year of the amortisation schedule."""

    year: int
    beginning_balance: float
    draw: float
    principal_payment: float
    ending_balance: float
    interest_expense: float
    """beginning_balance × interest_rate."""
    debt_service: float
    """principal_payment + interest_expense."""
    dscr: float | None = None
    """EBITDA ÷ debt_service. None (rendered N/A) when there is no debt service."""


class CarbonStreamRow(BaseModel):
    """Pre-purchase agreement stream for one year."""

    year: int
    percentage_credits_purchased: float
    number_of_credits: float
    """Credits generated this year."""
    purchase_amount: float
    """Advance cash received this year (0 when the agreement is inert)."""
    purchased_credits: float
    """Credits contracted by this year's purchase amount at the locked price."""
    purchased_credits_delivered: float
    implied_purchase_price: float
    pre_purchase_revenue: float
    unearned_revenue_start: float
    unearned_revenue_end: float
    investor_cash_flow: float
    """Buyer's view: −purchase_amount + delivered × spot price."""


class FreeCashFlowRow(BaseModel):
    """Free cash flow to equity for one year."""

    year: int
    net_income: float
    depreciation_addback: float
    change_net_working_capital: float
    """Δ(AR − AP). Subtracted from FCFE."""
    capex: float
    """Negative: cash spent on PPE."""
    net_borrowing: float
    """debt draw − principal repaid."""
    fcf_to_equity: float


# ═══════════════════════════════════════════════════════════════════════════
# Summaries
# ═══════════════════════════════════════════════════════════════════════════

class ReturnsSummary(BaseModel):
    """Equity returns on [−initial_equity_t0, FCFE₁ … FCFEₙ]."""

    discount_rate: float
    initial_investment: float
    npv: float
    irr: float | None = None
    """None when no rate in the search bracket zeroes NPV."""
    payback_period: float | None = None
    """Years from t0 until cumulative cash flow turns non-negative. None = beyond horizon."""
    discounted_payback_period: float | None = None

    # --- Supplementary perspectives ---
    project_npv: float
    """NPV of operating + investing cash flow (unlevered, before financing)."""
    project_irr: float | None = None
    investor_irr: float | None = None
    """IRR of the pre-purchase buyer's cash flow."""


class UnitEconomicsRow(BaseModel):
    """Per-credit economics for one year."""

    year: int
    credits_issued: float
    average_realised_price: float | None = None
    """total_revenue ÷ credits_issued. None when nothing is issued."""
    break_even_price: float | None = None
    """Price per issued credit at which EBITDA is zero."""
    safety_spread: float | None = None
    """average_realised_price − break_even_price."""


class ModelMetrics(BaseModel):
    """Headline KPIs derived from the statements."""

    # --- Totals ---
    total_credits_generated: float
    total_credits_issued: float
    total_revenue: float
    total_ebitda: float
    total_net_income: float
    total_capex: float

    # --- Margins ---
    ebitda_margin: float | None = None
    net_margin: float | None = None

    # --- Funding ---
    peak_funding_required: float
    """max(0, −min year-end cash): external cash the plan needs beyond its own sources."""
    min_cash: float
    min_cash_year: int

    # --- Debt ---
    total_debt_drawn: float
    total_interest_paid: float
    min_dscr: float | None = None
    min_dscr_year: int | None = None
    debt_free_year: int | None = None
    """First year after the last draw in which the debt balance reaches zero."""

    unit_economics: list[UnitEconomicsRow] = Field(default_factory=list)


class InvariantCheck(BaseModel):
    """Outcome of one accounting identity check for one year."""

    name: str
    year: int
    expected: float
    actual: float
    delta: float
    passed: bool


# ═══════════════════════════════════════════════════════════════════════════
# Top-level result
# ═══════════════════════════════════════════════════════════════════════════

class FinancialModelResult(BaseModel):
    """Complete output of one engine run."""

    schema_version: str = SCHEMA_VERSION
    inputs: EngineInputs

    income_statement: list[IncomeStatementRow]
    balance_sheet: list[BalanceSheetRow]
    cash_flow: list[CashFlowRow]
    debt_schedule: list[DebtScheduleRow]
    carbon_stream: list[CarbonStreamRow]
    free_cash_flow: list[FreeCashFlowRow]

    returns: ReturnsSummary
    metrics: ModelMetrics
    checks: list[InvariantCheck] = Field(default_factory=list)

    @property
    def failed_checks(self) -> list[InvariantCheck]:
        return [c for c in self.checks if not c.passed]

    @property
    def balanced(self) -> bool:
        """True when every identity check passed."""
        return not self.failed_checks
