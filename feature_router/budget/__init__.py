"""Budget tracking: period windows, append-only spend ledger and the budget gate."""

from .gate import BudgetCheck, BudgetGate, PeriodUsage
from .ledger import BudgetLedger, InMemoryBudgetLedger, SQLBudgetLedger, UsageEntry
from .periods import period_bounds, period_start

__all__ = [
    "BudgetCheck",
    "BudgetGate",
    "PeriodUsage",
    "BudgetLedger",
    "InMemoryBudgetLedger",
    "SQLBudgetLedger",
    "UsageEntry",
    "period_bounds",
    "period_start",
]
