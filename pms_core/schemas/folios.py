from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator, model_validator

from pms_core.enums import (
    BalanceStatus,
    FolioStatus,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
)
from pms_core.normalizers.statuses import normalize_status
from pms_core.schemas.base import RequestModel, SnapshotModel

# =============================================================================
# Requests
# =============================================================================


class PostTransactionRequest(RequestModel):
    """
    Schema for posting one ledger entry. `amount` is signed: pass payments
    and transfer-outs as negative values.
    """

    folio_id: int = Field(..., gt=0)
    transaction_type: TransactionType
    category: TransactionCategory
    amount: Decimal
    description: Optional[str] = Field(None, max_length=255)
    quantity: int = Field(1, ge=1)
    tax_amount: Decimal = Decimal("0")
    service_charge_amount: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    service_date: Optional[date] = None
    reservation_room_id: Optional[int] = None
    actor_id: int

    @field_validator("transaction_type", mode="before")
    @classmethod
    def coerce_type(cls, value: object) -> TransactionType:
        return normalize_status(value, TransactionType)

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, value: object) -> TransactionCategory:
        return normalize_status(value, TransactionCategory)


class VoidTransactionRequest(RequestModel):
    transaction_id: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1)
    reverse: bool = Field(True, description="Append an equal-and-opposite void entry")
    actor_id: int


class RecordPaymentRequest(RequestModel):
    """Payment against a reservation; a folio is opened if none is open yet."""

    reservation_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0)
    folio_id: Optional[int] = None
    description: Optional[str] = None
    actor_id: int


class TransferChargesRequest(RequestModel):
    from_folio_id: int = Field(..., gt=0)
    to_folio_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1)
    actor_id: int

    @model_validator(mode="after")
    def check_distinct_folios(self) -> "TransferChargesRequest":
        if self.from_folio_id == self.to_folio_id:
            raise ValueError("from_folio_id and to_folio_id must differ")
        return self


class CloseFolioRequest(RequestModel):
    folio_id: int = Field(..., gt=0)
    actor_id: int


class SettleFolioRequest(RequestModel):
    """Settlement payment; the folio closes once its balance reaches zero."""

    folio_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = Field(None, max_length=255)
    actor_id: int


class SplitFolioRequest(RequestModel):
    source_folio_id: int = Field(..., gt=0)
    destination_folio_id: int = Field(..., gt=0)
    transaction_ids: list[int] = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=120)
    actor_id: int

    @model_validator(mode="after")
    def check_distinct_folios(self) -> "SplitFolioRequest":
        if self.source_folio_id == self.destination_folio_id:
            raise ValueError("source_folio_id and destination_folio_id must differ")
        return self


# =============================================================================
# Snapshots
# =============================================================================


class BalanceSummary(SnapshotModel):
    """Aggregated ledger figures, rounded to 2 decimal places."""

    total_charges: Decimal
    total_payments: Decimal
    total_adjustments: Decimal
    total_taxes: Decimal
    total_service_charges: Decimal
    total_discounts: Decimal
    outstanding_balance: Decimal
    total_charges_with_taxes: Decimal
    balance_status: BalanceStatus


class TransactionSnapshot(SnapshotModel):
    id: int
    folio_id: int
    reservation_id: Optional[int]
    reservation_room_id: Optional[int]
    transaction_number: int
    transaction_type: TransactionType
    category: TransactionCategory
    description: Optional[str]
    amount: Decimal
    tax_amount: Decimal
    service_charge_amount: Decimal
    discount_amount: Decimal
    status: TransactionStatus
    posting_date: date
    service_date: Optional[date]
    original_transaction_id: Optional[int]
    void_reason: Optional[str]

    @field_validator("transaction_type", mode="before")
    @classmethod
    def coerce_type(cls, value: object) -> TransactionType:
        return normalize_status(value, TransactionType)

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, value: object) -> TransactionCategory:
        return normalize_status(value, TransactionCategory)

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, value: object) -> TransactionStatus:
        return normalize_status(value, TransactionStatus)


class FolioSnapshot(SnapshotModel):
    id: int
    reservation_id: Optional[int]
    reservation_room_id: Optional[int]
    folio_number: str
    status: FolioStatus
    currency: str
    total_charges: Decimal
    total_payments: Decimal
    total_adjustments: Decimal
    total_taxes: Decimal
    total_service_charges: Decimal
    total_discounts: Decimal
    balance: Decimal
    closed_at: Optional[datetime]
    close_reason: Optional[str] = None
    voided_at: Optional[datetime]
    transactions: list[TransactionSnapshot] = []

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, value: object) -> FolioStatus:
        return normalize_status(value, FolioStatus)
