"""Revenue & carbon stream — issuance, pre-purchase delivery, revenue split.

Key formulas:
  issued_t   = (Σ generated[0..t] − Σ issued[0..t−1]) × flag_t
  P          = purchase_amount_f / (share × generated_f)      f = first purchase year
  release_t  = min(U_{t−1} + purchase_t, share × issued_t × P)
  delivered_t = release_t / P
  spot_t     = (issued_t − delivered_t) × price_t
  U_t        = U_{t−1} + purchase_t − release_t               (unearned revenue)

The implied price P is locked at the first purchase year and reused for
every later purchase and delivery.  When the first-year volume is zero the
year's spot price stands in for P.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from carbon_engine.config.inputs import EngineInputs
from carbon_engine.models.results import CarbonStreamRow

logger = logging.getLogger(__name__)


@dataclass
class RevenueStreams:
    """Per-year revenue arrays shared by the statement builders."""

    credits_issued: list[float]
    delivered_credits: list[float]
    spot_revenue: list[float]
    pre_purchase_revenue: list[float]
    total_revenue: list[float]
    purchase_received: list[float]
    """Effective advance cash per year (zeros when the agreement is inert)."""
    unearned_start: list[float]
    unearned_end: list[float]
    implied_price: float | None = None
    rows: list[CarbonStreamRow] = field(default_factory=list)

    def change_in_unearned(self, i: int) -> float:
        return self.unearned_end[i] - self.unearned_start[i]


def compute_credits_issued(inputs: EngineInputs) -> list[float]:
    """Issued credits per year.

    An explicit ``credits_issued`` schedule wins.  Otherwise each flagged
    year releases the entire generated-but-unissued backlog.
    """
    if inputs.credits_issued is not None:
        return [float(v) for v in inputs.credits_issued]

    cum_generated = np.cumsum(np.asarray(inputs.credits_generated, dtype=float))
    issued: list[float] = []
    cum_issued = 0.0
    for i, flag in enumerate(inputs.issuance_flag):
        backlog = max(float(cum_generated[i]) - cum_issued, 0.0)
        amount = backlog * flag
        issued.append(amount)
        cum_issued += amount
    return issued


def derive_implied_price(inputs: EngineInputs) -> float | None:
    """Locked pre-purchase price, or None when no agreement is in force."""
    first = inputs.first_purchase_index()
    if first is None or inputs.purchase_share == 0:
        return None

    volume = inputs.purchase_share * inputs.credits_generated[first]
    if volume > 0:
        return inputs.purchase_amount[first] / volume
    # EngineInputs guarantees a nonzero spot price here
    return inputs.price_per_credit[first]


def build_carbon_stream(inputs: EngineInputs) -> RevenueStreams:
    """Compute issuance, pre-purchase delivery and the revenue split.

    Parameters
    ----------
    inputs : EngineInputs
        Validated input schedule.

    Returns
    -------
    RevenueStreams
        Per-year arrays plus the ``CarbonStreamRow`` table.
    """
    n = inputs.horizon
    share = inputs.purchase_share
    issued = compute_credits_issued(inputs)
    price = derive_implied_price(inputs)

    if price is None and any(a > 0 for a in inputs.purchase_amount):
        logger.warning(
            "purchase_share is 0: ignoring %d nonzero purchase amount(s)",
            sum(1 for a in inputs.purchase_amount if a > 0),
        )
    active = price is not None

    delivered_all: list[float] = []
    spot_all: list[float] = []
    pre_all: list[float] = []
    total_all: list[float] = []
    purchase_all: list[float] = []
    u_start_all: list[float] = []
    u_end_all: list[float] = []
    rows: list[CarbonStreamRow] = []

    unearned = 0.0
    for t in range(n):
        spot_price = inputs.price_per_credit[t]
        purchase = inputs.purchase_amount[t] if active else 0.0
        unearned_start = unearned

        if active:
            deliverable_value = share * issued[t] * price
            release = min(unearned_start + purchase, deliverable_value)
            delivered = release / price
            contracted = purchase / price
        else:
            release = delivered = contracted = 0.0

        unearned = unearned_start + purchase - release
        spot = max(issued[t] - delivered, 0.0) * spot_price

        delivered_all.append(delivered)
        spot_all.append(spot)
        pre_all.append(release)
        total_all.append(spot + release)
        purchase_all.append(purchase)
        u_start_all.append(unearned_start)
        u_end_all.append(unearned)

        rows.append(CarbonStreamRow(
            year=inputs.years[t],
            percentage_credits_purchased=share,
            number_of_credits=inputs.credits_generated[t],
            purchase_amount=purchase,
            purchased_credits=contracted,
            purchased_credits_delivered=delivered,
            implied_purchase_price=price or 0.0,
            pre_purchase_revenue=release,
            unearned_revenue_start=unearned_start,
            unearned_revenue_end=unearned,
            investor_cash_flow=-purchase + delivered * spot_price,
        ))

    if active and unearned > 0:
        logger.info(
            "%.2f of pre-purchase cash remains undelivered at horizon end", unearned,
        )

    return RevenueStreams(
        credits_issued=issued,
        delivered_credits=delivered_all,
        spot_revenue=spot_all,
        pre_purchase_revenue=pre_all,
        total_revenue=total_all,
        purchase_received=purchase_all,
        unearned_start=u_start_all,
        unearned_end=u_end_all,
        implied_price=price,
        rows=rows,
    )
