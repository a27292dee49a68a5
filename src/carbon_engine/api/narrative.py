"""Narrative generator — plain-English reading of a model result.

Converts a ``FinancialModelResult`` into a sectioned text block covering
the revenue profile, returns, funding and debt, and the identity audit.
"""

from __future__ import annotations

from carbon_engine.models.results import FinancialModelResult


def format_money(value: float) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.0f}"


def format_irr(irr: float | None) -> str:
    return "N/A (no sign change)" if irr is None else f"{irr:.1%}"


def format_payback(years: float | None) -> str:
    return "> horizon" if years is None else f"{years:.1f} years"


def format_dscr(dscr: float | None) -> str:
    return "N/A" if dscr is None else f"{dscr:.2f}x"


def _header(title: str) -> list[str]:
    return ["=" * 60, title, "=" * 60]


def generate_narrative(result: FinancialModelResult) -> str:
    """Generate a plain-English narrative from a model result.

    Returns a structured text block covering:
      1. Project summary
      2. Returns
      3. Funding & debt
      4. Accounting checks
    """
    inputs = result.inputs
    m = result.metrics
    r = result.returns
    first, last = inputs.years[0], inputs.years[-1]

    sections: list[str] = []

    # ── 1. Project summary ──
    sections += _header("PROJECT SUMMARY")
    sections.append(
        f"Horizon {first}–{last} ({inputs.horizon} years). "
        f"{m.total_credits_generated:,.0f} credits generated, "
        f"{m.total_credits_issued:,.0f} issued."
    )
    sections.append(f"Total revenue: {format_money(m.total_revenue)}")
    pre = sum(row.pre_purchase_revenue for row in result.income_statement)
    if pre > 0:
        price = result.carbon_stream[0].implied_purchase_price
        sections.append(
            f"  of which pre-purchase: {format_money(pre)} at a locked "
            f"${price:,.2f}/credit ({inputs.purchase_share:.0%} of volume)"
        )
    sections.append(f"Total EBITDA: {format_money(m.total_ebitda)}")
    if m.ebitda_margin is not None:
        sections.append(f"EBITDA margin: {m.ebitda_margin:.1%}")
    sections.append(f"Total net income: {format_money(m.total_net_income)}")
    sections.append("")

    # ── 2. Returns ──
    sections += _header("RETURNS (EQUITY)")
    sections.append(f"Initial equity (t0): {format_money(r.initial_investment)}")
    sections.append(f"NPV @ {r.discount_rate:.1%}: {format_money(r.npv)}")
    sections.append(f"IRR: {format_irr(r.irr)}")
    sections.append(f"Payback: {format_payback(r.payback_period)}")
    sections.append(f"Discounted payback: {format_payback(r.discounted_payback_period)}")
    if r.npv >= 0:
        sections.append("VERDICT: Equity NPV is non-negative at the chosen discount rate.")
    else:
        sections.append("VERDICT: Equity NPV is negative; the plan does not earn its cost of capital.")
    sections.append("")

    # ── 3. Funding & debt ──
    sections += _header("FUNDING & DEBT")
    sections.append(f"Lowest year-end cash: {format_money(m.min_cash)} in {m.min_cash_year}")
    if m.peak_funding_required > 0:
        sections.append(
            f"WARNING: cash goes negative; {format_money(m.peak_funding_required)} "
            "of additional funding is required."
        )
    if m.total_debt_drawn > 0:
        sections.append(f"Debt drawn: {format_money(m.total_debt_drawn)}, "
                        f"interest paid: {format_money(m.total_interest_paid)}")
        if m.min_dscr is not None:
            sections.append(f"Minimum DSCR: {format_dscr(m.min_dscr)} in {m.min_dscr_year}")
            if m.min_dscr < 1:
                sections.append("  EBITDA does not cover debt service in that year.")
        if m.debt_free_year is not None:
            sections.append(f"Debt fully repaid by {m.debt_free_year}")
        else:
            sections.append("Debt is still outstanding at horizon end.")
    else:
        sections.append("No debt financing.")
    sections.append("")

    # ── 4. Accounting checks ──
    sections += _header("ACCOUNTING CHECKS")
    failed = result.failed_checks
    if not failed:
        sections.append(f"All {len(result.checks)} identity checks passed.")
    else:
        sections.append(f"{len(failed)} of {len(result.checks)} identity checks FAILED:")
        for c in failed[:10]:
            sections.append(
                f"  - {c.name} ({c.year}): expected {c.expected:,.2f}, got {c.actual:,.2f}"
            )

    return "\n".join(sections)
