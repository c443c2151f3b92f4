from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from practice_reports.models.enums import AdjustmentKind, TransactionBucket


PROVISION_CODES = frozenset({"P", "PRV", "PROV", "PROVISION"})
FEE_CODES = frozenset({"F", "FEE", "FEES"})
ADJUSTMENT_CODES = frozenset({"ADJ", "ADJUSTMENT"})
TIME_CODES = frozenset({"T", "TIME"})
TIME_PREFIXES = ("T",)
DISBURSEMENT_PREFIXES = ("D",)

TIME_MARKERS = ("TIME",)
DISBURSEMENT_MARKERS = ("DISBURSEMENT", "DISB")


@dataclass(frozen=True)
class LedgerTransaction:
    amount: Decimal
    type_code: str
    sub_type_descriptor: str | None
    transaction_date: date
    owner_code: str
    cost: Decimal | None = None
    staff_category: str | None = None


@dataclass(frozen=True)
class Category:
    bucket: TransactionBucket
    adjustment_kind: AdjustmentKind | None = None

    @property
    def amount_field(self) -> str | None:
        """Name of the ``CategorizedAmounts`` field this category feeds, if any."""
        if self.bucket == TransactionBucket.adjustment:
            if self.adjustment_kind == AdjustmentKind.time:
                return "time_adjustments"
            if self.adjustment_kind == AdjustmentKind.disbursement:
                return "disbursement_adjustments"
            return None
        return _BUCKET_FIELDS[self.bucket]

    @property
    def is_unclassified(self) -> bool:
        return self.adjustment_kind == AdjustmentKind.unclassified


_BUCKET_FIELDS = {
    TransactionBucket.time: "time",
    TransactionBucket.disbursement: "disbursements",
    TransactionBucket.fee: "fees",
    TransactionBucket.provision: "provision",
}


@dataclass
class CategorizedAmounts:
    time: Decimal = field(default_factory=Decimal)
    time_adjustments: Decimal = field(default_factory=Decimal)
    disbursements: Decimal = field(default_factory=Decimal)
    disbursement_adjustments: Decimal = field(default_factory=Decimal)
    fees: Decimal = field(default_factory=Decimal)
    provision: Decimal = field(default_factory=Decimal)
    cost: Decimal = field(default_factory=Decimal)

    def add(
        self,
        transaction: LedgerTransaction,
        *,
        cost_excluded_categories: frozenset[str] = frozenset(),
    ) -> None:
        category = categorize(transaction.type_code, transaction.sub_type_descriptor)
        target = category.amount_field
        if target is None:
            # Adjustments without a TIME/DISBURSEMENT marker are dropped entirely.
            return
        setattr(self, target, getattr(self, target) + transaction.amount)
        if (
            transaction.cost is not None
            and category.bucket != TransactionBucket.provision
            and transaction.staff_category not in cost_excluded_categories
        ):
            self.cost += transaction.cost

    def merge(self, other: CategorizedAmounts) -> None:
        self.time += other.time
        self.time_adjustments += other.time_adjustments
        self.disbursements += other.disbursements
        self.disbursement_adjustments += other.disbursement_adjustments
        self.fees += other.fees
        self.provision += other.provision
        self.cost += other.cost

    def copy(self) -> CategorizedAmounts:
        clone = CategorizedAmounts()
        clone.merge(self)
        return clone

    def bucket_total(self) -> Decimal:
        return (
            self.time
            + self.time_adjustments
            + self.disbursements
            + self.disbursement_adjustments
            + self.fees
            + self.provision
        )


def _classify_adjustment(sub_type_descriptor: str | None) -> AdjustmentKind:
    descriptor = (sub_type_descriptor or "").upper()
    if any(marker in descriptor for marker in TIME_MARKERS):
        return AdjustmentKind.time
    if any(marker in descriptor for marker in DISBURSEMENT_MARKERS):
        return AdjustmentKind.disbursement
    return AdjustmentKind.unclassified


def categorize(type_code: str | None, sub_type_descriptor: str | None = None) -> Category:
    """Classify a WIP type code, first matching rule wins. Never raises."""
    code = (type_code or "").strip().upper()
    if code in PROVISION_CODES:
        return Category(TransactionBucket.provision)
    if code in FEE_CODES:
        return Category(TransactionBucket.fee)
    if code in ADJUSTMENT_CODES:
        return Category(TransactionBucket.adjustment, _classify_adjustment(sub_type_descriptor))
    if code in TIME_CODES or code.startswith(TIME_PREFIXES):
        return Category(TransactionBucket.time)
    if code.startswith(DISBURSEMENT_PREFIXES):
        return Category(TransactionBucket.disbursement)
    return Category(TransactionBucket.time)
