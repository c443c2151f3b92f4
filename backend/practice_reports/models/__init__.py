from practice_reports.models.employee import Employee
from practice_reports.models.enums import (
    AdjustmentKind,
    AggregationMode,
    DebtorEntryKind,
    FilterMode,
    TransactionBucket,
)
from practice_reports.models.ledger import DebtorTransaction, ServiceLineExternal, WipTransaction
from practice_reports.models.user import User

__all__ = [
    "AdjustmentKind",
    "AggregationMode",
    "DebtorEntryKind",
    "DebtorTransaction",
    "Employee",
    "FilterMode",
    "ServiceLineExternal",
    "TransactionBucket",
    "User",
    "WipTransaction",
]
