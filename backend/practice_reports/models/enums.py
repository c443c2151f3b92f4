import enum


class FilterMode(str, enum.Enum):
    partner = "PARTNER"
    manager = "MANAGER"


class TransactionBucket(str, enum.Enum):
    time = "time"
    disbursement = "disbursement"
    fee = "fee"
    adjustment = "adjustment"
    provision = "provision"


class AdjustmentKind(str, enum.Enum):
    time = "time"
    disbursement = "disbursement"
    unclassified = "unclassified"


class AggregationMode(str, enum.Enum):
    cumulative = "cumulative"
    incremental = "incremental"


class DebtorEntryKind(str, enum.Enum):
    all = "all"
    receipts = "receipts"
    non_receipts = "non_receipts"


RECEIPT_ENTRY_TYPE = "Receipt"
