"""
Expense Module (``review_modules.expenses``).

Expense reimbursement requests moving through leader, treasury and
finance stages.
"""

from review_modules.expenses.models import ExpenseRequest, ExpenseStatus
from review_modules.expenses.workflows import EXPENSE_MACHINE, EXPENSE_WORKFLOW

__all__ = [
    "EXPENSE_MACHINE",
    "EXPENSE_WORKFLOW",
    "ExpenseRequest",
    "ExpenseStatus",
]
