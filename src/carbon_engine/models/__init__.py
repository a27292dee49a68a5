"""Result models — engine output contracts."""

from carbon_engine.models.results import (
    BalanceSheetRow,
    CarbonStreamRow,
    CashFlowRow,
    DebtScheduleRow,
    FinancialModelResult,
    FreeCashFlowRow,
    IncomeStatementRow,
    InvariantCheck,
    ModelMetrics,
    ReturnsSummary,
    UnitEconomicsRow,
)

__all__ = [
    "BalanceSheetRow",
    "CarbonStreamRow",
    "CashFlowRow",
    "DebtScheduleRow",
    "FinancialModelResult",
    "FreeCashFlowRow",
    "IncomeStatementRow",
    "InvariantCheck",
    "ModelMetrics",
    "ReturnsSummary",
    "UnitEconomicsRow",
]
