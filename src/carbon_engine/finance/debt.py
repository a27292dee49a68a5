"""Debt schedule & DSCR.

Each draw is its own tranche, amortised over ``debt_duration_years`` level
payments starting in the draw year.  The year's principal is the sum of
every live tranche's PPMT, capped so the balance never goes negative.

Key formulas:
  PMT        = A × r / (1 − (1+r)^−n)              (A / n when r = 0)
  PPMT(per)  = PMT − r × balance_before(per)
  principal_t = min(Σ_tranches PPMT(t − d + 1), beginning_t + draw_t)
  interest_t  = beginning_t × r
  DSCR_t      = EBITDA_t / (principal_t + interest_t)
"""

from __future__ import annotations

from carbon_engine.config.inputs import EngineInputs
from carbon_engine.models.results import DebtScheduleRow

# Balances below this are treated as fully repaid
_ZERO_BALANCE = 1e-6


def ppmt(rate: float, per: int, nper: int, pv: float) -> float:
    """Principal part of payment ``per`` (1-based) on a level-payment loan.

    Mirrors the spreadsheet PPMT function but returns a positive amount.
    Returns 0 for periods outside 1..nper.
    """
    if per < 1 or per > nper or pv == 0:
        return 0.0
    if rate == 0:
        return pv / nper

    payment = pv * rate / (1 - (1 + rate) ** -nper)
    growth = (1 + rate) ** (per - 1)
    balance_before = pv * growth - payment * (growth - 1) / rate
    return payment - balance_before * rate


def build_debt_schedule(inputs: EngineInputs) -> list[DebtScheduleRow]:
    """Generate the year-by-year amortisation schedule.

    DSCR is left unset; attach it with :func:`compute_dscr` once EBITDA
    is known.
    """
    rate = inputs.interest_rate
    duration = inputs.debt_duration_years
    draws = inputs.debt_draw

    rows: list[DebtScheduleRow] = []
    balance = 0.0

    for t in range(inputs.horizon):
        beginning = balance
        draw = draws[t]

        scheduled = sum(
            ppmt(rate, t - d + 1, duration, draws[d])
            for d in range(t + 1)
            if draws[d] > 0
        )
        principal = min(scheduled, beginning + draw)
        ending = beginning + draw - principal
        if ending < _ZERO_BALANCE:
            ending = 0.0
        interest = beginning * rate

        rows.append(DebtScheduleRow(
            year=inputs.years[t],
            beginning_balance=beginning,
            draw=draw,
            principal_payment=principal,
            ending_balance=ending,
            interest_expense=interest,
            debt_service=principal + interest,
        ))
        balance = ending

    return rows


def compute_dscr(rows: list[DebtScheduleRow], ebitda: list[float]) -> list[DebtScheduleRow]:
    """Attach DSCR = EBITDA / debt service to each schedule row.

    Years with no debt service get ``None``.
    """
    out: list[DebtScheduleRow] = []
    for row, e in zip(rows, ebitda):
        dscr = e / row.debt_service if row.debt_service > _ZERO_BALANCE else None
        out.append(row.model_copy(update={"dscr": dscr}))
    return out
