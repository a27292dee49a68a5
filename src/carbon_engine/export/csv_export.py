"""CSV export — fixed column contracts for each statement.

Column order per statement is part of the contract: parity tooling and
spreadsheet consumers read these files positionally.  Numbers are written
with two decimals; ``None`` sentinels are written as ``N/A``.

  statement_to_csv     rows → CSV text
  parse_statement_csv  CSV text → list of dicts (``N/A`` → None)
  export_statement     one statement of a result, optional metadata preamble
  export_bundle        every statement of a result, keyed by statement name
"""

from __future__ import annotations

import csv
import io
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel

from carbon_engine.models.results import FinancialModelResult


STATEMENT_HEADERS: dict[str, tuple[str, ...]] = {
    "income_statement": (
        "year", "credits_generated", "credits_issued", "price_per_credit",
        "purchased_credits", "implied_purchase_price",
        "spot_revenue", "pre_purchase_revenue", "total_revenue",
        "cogs", "gross_profit",
        "feasibility_costs", "pdd_costs", "mrv_costs", "staff_costs", "total_opex",
        "ebitda", "depreciation", "ebit", "interest_expense",
        "earnings_before_tax", "income_tax", "net_income",
    ),
    "balance_sheet": (
        "year", "cash", "accounts_receivable", "ppe_net", "total_assets",
        "accounts_payable", "unearned_revenue", "debt_balance", "total_liabilities",
        "retained_earnings", "contributed_capital", "total_equity",
        "total_liabilities_equity", "balance_check",
    ),
    "cash_flow": (
        "year", "net_income", "depreciation", "decrease_in_ar", "increase_in_ap",
        "operating_cash_flow", "capex", "investing_cash_flow",
        "debt_financing", "debt_repayments", "change_unearned_revenue",
        "equity_injection", "financing_cash_flow",
        "cash_start", "net_change_cash", "cash_end",
    ),
    "debt_schedule": (
        "year", "beginning_balance", "draw", "principal_payment",
        "ending_balance", "interest_expense", "dscr",
    ),
    "carbon_stream": (
        "year", "percentage_credits_purchased", "number_of_credits",
        "purchase_amount", "purchased_credits", "implied_purchase_price",
    ),
    "free_cash_flow": (
        "year", "net_income", "depreciation_addback", "change_net_working_capital",
        "capex", "net_borrowing", "fcf_to_equity",
    ),
}

NOT_AVAILABLE = "N/A"
METADATA_PREFIX = "#"


def _format_value(value: Any) -> str:
    if value is None:
        return NOT_AVAILABLE
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    number = round(float(value), 2)
    if number == 0:
        number = 0.0  # no "-0.00"
    return f"{number:.2f}"


def _parse_value(header: str, text: str) -> int | float | None:
    text = text.strip()
    if text in (NOT_AVAILABLE, ""):
        return None
    if header == "year":
        return int(text)
    return float(text)


def statement_rows(result: FinancialModelResult, statement: str) -> list[BaseModel]:
    if statement not in STATEMENT_HEADERS:
        raise KeyError(
            f"Unknown statement {statement!r}; expected one of {sorted(STATEMENT_HEADERS)}"
        )
    return getattr(result, statement)


def statement_to_csv(rows: Iterable[BaseModel], statement: str) -> str:
    """Render statement rows with the fixed column set for ``statement``."""
    headers = STATEMENT_HEADERS[statement]
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_format_value(getattr(row, h)) for h in headers])
    return buf.getvalue()


def parse_statement_csv(source: str | Path | io.StringIO) -> list[dict[str, int | float | None]]:
    """Parse exported CSV back into typed dicts.

    Metadata lines (``#`` prefix) are skipped.  ``year`` becomes ``int``;
    every other column becomes ``float`` or ``None``.
    """
    if isinstance(source, io.StringIO):
        text = source.getvalue()
    elif isinstance(source, Path):
        text = source.read_text(encoding="utf-8")
    else:
        text = source
    lines = [line for line in text.splitlines() if not line.startswith(METADATA_PREFIX)]
    reader = csv.DictReader(lines)
    return [
        {header: _parse_value(header, value) for header, value in row.items()}
        for row in reader
    ]


def export_statement(
    result: FinancialModelResult,
    statement: str,
    include_metadata: bool = False,
    exported_at: datetime | None = None,
) -> str:
    """Export one statement, optionally preceded by a ``#`` metadata block.

    The metadata block records the schema version, the export time and the
    inputs that produced the result, so an exported file is reproducible.
    """
    body = statement_to_csv(statement_rows(result, statement), statement)
    if not include_metadata:
        return body

    exported_at = exported_at or datetime.now(timezone.utc)
    inputs_json = json.dumps(result.inputs.model_dump(mode="json"), separators=(",", ":"))
    preamble = [
        f"{METADATA_PREFIX} schema_version: {result.schema_version}",
        f"{METADATA_PREFIX} statement: {statement}",
        f"{METADATA_PREFIX} exported_at: {exported_at.isoformat()}",
        f"{METADATA_PREFIX} inputs: {inputs_json}",
    ]
    return "\n".join(preamble) + "\n" + body


def export_bundle(result: FinancialModelResult) -> dict[str, str]:
    """CSV text for every statement, keyed by statement name."""
    return {name: export_statement(result, name) for name in STATEMENT_HEADERS}


def write_bundle(result: FinancialModelResult, directory: str | Path) -> list[Path]:
    """Write ``<statement>.csv`` files into ``directory``; returns the paths."""
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    paths: list[Path] = []
    for name, text in export_bundle(result).items():
        path = out_dir / f"{name}.csv"
        path.write_text(text, encoding="utf-8")
        paths.append(path)
    return paths
