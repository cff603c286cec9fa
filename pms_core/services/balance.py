"""
Folio balance engine.

`compute_balance` is a pure aggregation over folio transactions: it never
touches the session and gives the same totals for any ordering of its input.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from pms_core.enums import BalanceStatus, TransactionCategory, TransactionType
from pms_core.models.folios import Folio, FolioTransaction

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_money(value: object) -> Decimal:
    """Round to cents, half up."""
    if value is None:
        return ZERO.quantize(CENT)
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Balance:
    total_charges: Decimal
    total_payments: Decimal
    total_adjustments: Decimal
    total_taxes: Decimal
    total_service_charges: Decimal
    total_discounts: Decimal
    outstanding_balance: Decimal
    total_charges_with_taxes: Decimal
    balance_status: BalanceStatus

    def as_dict(self) -> dict[str, object]:
        return {
            "total_charges": self.total_charges,
            "total_payments": self.total_payments,
            "total_adjustments": self.total_adjustments,
            "total_taxes": self.total_taxes,
            "total_service_charges": self.total_service_charges,
            "total_discounts": self.total_discounts,
            "outstanding_balance": self.outstanding_balance,
            "total_charges_with_taxes": self.total_charges_with_taxes,
            "balance_status": self.balance_status,
        }


def _dec(value: object) -> Decimal:
    return ZERO if value is None else Decimal(str(value))


def compute_transactions_balance(transactions: Iterable[FolioTransaction]) -> Balance:
    """
    Aggregate a flat list of transactions into balance totals.

    Voided and cancelled rows are skipped. Payments are stored negative and
    counted by magnitude; refunds reduce payments. Reversal rows (type
    `void`) only mirror an already-excluded original and add nothing. Tax
    and service-charge sub-amounts are added for every live row whatever its
    type.

    Args:
        transactions: Ledger rows from one or more folios

    Returns:
        Balance: Totals rounded to cents
    """
    charges = payments = adjustments = taxes = service = discounts = ZERO

    for txn in transactions:
        if not txn.is_active:
            continue

        amount = _dec(txn.amount)
        kind = txn.transaction_type

        if kind in (TransactionType.CHARGE, TransactionType.ROOM_POSTING):
            charges += amount
        elif kind == TransactionType.TRANSFER:
            if txn.category == TransactionCategory.TRANSFER_IN:
                charges += amount
            elif txn.category == TransactionCategory.TRANSFER_OUT:
                payments += abs(amount)
        elif kind == TransactionType.PAYMENT:
            payments += abs(amount)
        elif kind == TransactionType.REFUND:
            payments -= abs(amount)
        elif kind == TransactionType.ADJUSTMENT:
            adjustments += amount
        elif kind == TransactionType.TAX:
            taxes += amount
        elif kind == TransactionType.DISCOUNT:
            discounts += abs(amount)
            charges -= abs(amount)

        taxes += _dec(txn.tax_amount)
        service += _dec(txn.service_charge_amount)

    outstanding = to_money(charges + taxes + service - payments + adjustments)
    if outstanding > 0:
        status = BalanceStatus.OUTSTANDING
    elif outstanding < 0:
        status = BalanceStatus.CREDIT
    else:
        status = BalanceStatus.SETTLED

    return Balance(
        total_charges=to_money(charges),
        total_payments=to_money(payments),
        total_adjustments=to_money(adjustments),
        total_taxes=to_money(taxes),
        total_service_charges=to_money(service),
        total_discounts=to_money(discounts),
        outstanding_balance=outstanding,
        total_charges_with_taxes=to_money(charges + taxes),
        balance_status=status,
    )


def compute_balance(folios: Iterable[Folio]) -> Balance:
    """Aggregate every transaction across `folios`."""
    return compute_transactions_balance(txn for folio in folios for txn in folio.transactions)
