"""Router package exports."""
from . import advisor_payouts, invoices, ledger, payables, receivables

__all__ = [
    "advisor_payouts",
    "invoices",
    "ledger",
    "payables",
    "receivables",
]
