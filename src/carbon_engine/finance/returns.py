"""Returns — FCFE, NPV, IRR, payback.

Equity cash flows are ``[−initial_equity_t0, FCFE₁, …, FCFEₙ]`` with the
t0 outflow at time 0 and year i's FCFE at time i+1.

Key formulas:
  FCFE_t  = NI + D − Δ(AR − AP) − capex + (draw − principal)
  NPV     = −E₀ + Σ FCFE_t / (1 + r)^(t+1)
  IRR     = rate where NPV = 0  (bisection on [irr_low, irr_high])
  Payback = years until cumulative cash flow first turns non-negative,
            interpolated linearly within the crossing year
"""

from __future__ import annotations

import numpy as np

from carbon_engine.config.inputs import EngineInputs
from carbon_engine.config.settings import EngineSettings
from carbon_engine.engine.carbon_stream import RevenueStreams
from carbon_engine.models.results import CashFlowRow, FreeCashFlowRow, ReturnsSummary


def build_free_cash_flow(cash_flow: list[CashFlowRow]) -> list[FreeCashFlowRow]:
    """Derive FCFE from the cash flow statement.

    Working capital movement is read back from the AR/AP lines, so FCFE
    always equals operating + investing + net borrowing.
    """
    rows: list[FreeCashFlowRow] = []
    for cf in cash_flow:
        change_nwc = -(cf.decrease_in_ar + cf.increase_in_ap)
        net_borrowing = cf.debt_financing + cf.debt_repayments
        rows.append(FreeCashFlowRow(
            year=cf.year,
            net_income=cf.net_income,
            depreciation_addback=cf.depreciation,
            change_net_working_capital=change_nwc,
            capex=cf.capex,
            net_borrowing=net_borrowing,
            fcf_to_equity=cf.net_income + cf.depreciation - change_nwc + cf.capex + net_borrowing,
        ))
    return rows


def compute_npv(cash_flows: list[float], rate: float, initial_investment: float = 0.0) -> float:
    """Net present value with the first cash flow one period out.

    Parameters
    ----------
    cash_flows : list[float]
        Yearly cash flows. Index 0 = end of year 1.
    rate : float
        Annual discount rate (e.g. 0.12 for 12%).
    initial_investment : float
        Outflow at t0, undiscounted.

    Returns
    -------
    float
        NPV = −initial_investment + Σ CF_t / (1 + r)^(t+1)
    """
    if not cash_flows:
        return -initial_investment
    flows = np.asarray(cash_flows, dtype=float)
    periods = np.arange(1, len(flows) + 1)
    return float(np.sum(flows / (1 + rate) ** periods)) - initial_investment


def _present_value(cash_flows: list[float], rate: float) -> float:
    """PV with the first cash flow at t = 0."""
    flows = np.asarray(cash_flows, dtype=float)
    periods = np.arange(len(flows))
    return float(np.sum(flows / (1 + rate) ** periods))


def compute_irr(
    cash_flows: list[float],
    low: float = -0.99,
    high: float = 10.0,
    max_iter: int = 200,
    tol: float = 1e-7,
) -> float | None:
    """Internal rate of return via bisection; index 0 is t = 0.

    Returns None if:
      - fewer than two cash flows
      - all cash flows share one sign
      - NPV does not change sign across [low, high]
    """
    if len(cash_flows) < 2:
        return None
    if not (any(cf > 0 for cf in cash_flows) and any(cf < 0 for cf in cash_flows)):
        return None

    npv_low = _present_value(cash_flows, low)
    npv_high = _present_value(cash_flows, high)
    if npv_low == 0:
        return low
    if npv_high == 0:
        return high
    if npv_low * npv_high > 0:
        return None

    for _ in range(max_iter):
        mid = (low + high) / 2
        npv_mid = _present_value(cash_flows, mid)
        if abs(npv_mid) < tol or (high - low) / 2 < tol:
            return mid
        if npv_low * npv_mid < 0:
            high = mid
        else:
            low, npv_low = mid, npv_mid

    return (low + high) / 2


def compute_payback(cash_flows: list[float]) -> float | None:
    """Years until cumulative cash flow (index 0 = t0) first turns non-negative.

    0.0 if it is already non-negative at t0; None if it never recovers.
    """
    if not cash_flows:
        return None
    cumulative = np.cumsum(np.asarray(cash_flows, dtype=float))
    recovered = np.nonzero(cumulative >= 0)[0]
    if recovered.size == 0:
        return None

    t = int(recovered[0])
    if t == 0:
        return 0.0
    shortfall = -float(cumulative[t - 1])
    return (t - 1) + shortfall / cash_flows[t]


def compute_discounted_payback(cash_flows: list[float], rate: float) -> float | None:
    """Payback on cash flows discounted to t0 (index 0 = t0)."""
    if not cash_flows:
        return None
    flows = np.asarray(cash_flows, dtype=float)
    discounted = flows / (1 + rate) ** np.arange(len(flows))
    return compute_payback(discounted.tolist())


def build_returns_summary(
    inputs: EngineInputs,
    free_cash_flow: list[FreeCashFlowRow],
    cash_flow: list[CashFlowRow],
    streams: RevenueStreams,
    settings: EngineSettings | None = None,
) -> ReturnsSummary:
    """Equity, project and investor return metrics for one run."""
    settings = settings or EngineSettings()
    rate = inputs.discount_rate
    t0 = inputs.initial_equity_t0
    irr_kwargs = dict(
        low=settings.irr_low,
        high=settings.irr_high,
        max_iter=settings.irr_max_iter,
        tol=settings.irr_tol,
    )

    fcfe = [row.fcf_to_equity for row in free_cash_flow]
    equity_flows = [-t0, *fcfe]

    project_flows = [cf.operating_cash_flow + cf.investing_cash_flow for cf in cash_flow]
    investor_flows = [row.investor_cash_flow for row in streams.rows]

    return ReturnsSummary(
        discount_rate=rate,
        initial_investment=t0,
        npv=compute_npv(fcfe, rate, initial_investment=t0),
        irr=compute_irr(equity_flows, **irr_kwargs),
        payback_period=compute_payback(equity_flows),
        discounted_payback_period=compute_discounted_payback(equity_flows, rate),
        project_npv=compute_npv(project_flows, rate),
        project_irr=compute_irr(project_flows, **irr_kwargs),
        investor_irr=compute_irr(investor_flows, **irr_kwargs),
    )
