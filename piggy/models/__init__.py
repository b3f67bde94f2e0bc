"""
Data Models Package

This package contains all Pydantic models used in Piggy Budget.
All data flowing between the stores, the ledger and reports conforms
to these schemas.
"""

from piggy.models.expense import (
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseOrigin,
    ExpensePatch,
    PaymentMethod,
    User,
    parse_amount,
    record_amount,
    parse_expense_records,
    parse_timestamp,
    utc_now,
)
from piggy.models.report import (
    AggregateReport,
    CategoryTotal,
    PaymentMethodSection,
    ReportWindow,
)
from piggy.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "Expense",
    "ExpenseCategory",
    "ExpenseDraft",
    "ExpenseOrigin",
    "ExpensePatch",
    "PaymentMethod",
    "User",
    "parse_amount",
    "record_amount",
    "parse_expense_records",
    "parse_timestamp",
    "utc_now",
    # Report models
    "AggregateReport",
    "CategoryTotal",
    "PaymentMethodSection",
    "ReportWindow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
