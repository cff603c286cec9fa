"""
Unit tests for the folio balance engine.
"""

from __future__ import annotations

import itertools
from decimal import Decimal

import pytest

import pms_core.models.registry  # noqa: F401
from pms_core.enums import BalanceStatus, TransactionCategory, TransactionStatus, TransactionType
from pms_core.models.folios import Folio, FolioTransaction
from pms_core.services.balance import compute_balance, compute_transactions_balance, to_money


def txn(
    transaction_type: TransactionType,
    amount: str,
    category: TransactionCategory = TransactionCategory.MISCELLANEOUS,
    status: TransactionStatus = TransactionStatus.POSTED,
    tax: str = "0",
    service: str = "0",
) -> FolioTransaction:
    return FolioTransaction(
        transaction_type=transaction_type.value,
        category=category.value,
        amount=Decimal(amount),
        tax_amount=Decimal(tax),
        service_charge_amount=Decimal(service),
        status=status.value,
    )


@pytest.mark.unit
def test_charge_with_tax_settled_by_exact_payment() -> None:
    """Test that a 100 charge with 10 tax and a -110 payment is settled."""
    balance = compute_transactions_balance(
        [
            txn(TransactionType.CHARGE, "100", tax="10"),
            txn(TransactionType.PAYMENT, "-110", TransactionCategory.PAYMENT),
        ]
    )

    assert balance.total_charges == Decimal("100.00")
    assert balance.total_taxes == Decimal("10.00")
    assert balance.total_payments == Decimal("110.00")
    assert balance.outstanding_balance == Decimal("0.00")
    assert balance.balance_status == BalanceStatus.SETTLED


@pytest.mark.unit
def test_balance_is_order_independent() -> None:
    """Test that every permutation of the ledger yields identical totals."""
    rows = [
        txn(TransactionType.ROOM_POSTING, "120.10", TransactionCategory.ROOM, tax="12.01"),
        txn(TransactionType.CHARGE, "19.99", service="2.00"),
        txn(TransactionType.PAYMENT, "-50", TransactionCategory.PAYMENT),
        txn(TransactionType.DISCOUNT, "-5", TransactionCategory.DISCOUNT),
        txn(TransactionType.ADJUSTMENT, "3.333"),
    ]

    results = {compute_transactions_balance(order) for order in itertools.permutations(rows)}

    assert len(results) == 1


@pytest.mark.unit
def test_voided_and_cancelled_rows_are_excluded() -> None:
    """Test that voided and cancelled transactions contribute nothing."""
    balance = compute_transactions_balance(
        [
            txn(TransactionType.CHARGE, "80"),
            txn(TransactionType.CHARGE, "40", status=TransactionStatus.VOIDED, tax="4"),
            txn(TransactionType.CHARGE, "25", status=TransactionStatus.CANCELLED),
        ]
    )

    assert balance.total_charges == Decimal("80.00")
    assert balance.total_taxes == Decimal("0.00")
    assert balance.outstanding_balance == Decimal("80.00")


@pytest.mark.unit
def test_reversal_rows_add_nothing() -> None:
    """Test that a voided charge plus its reversal nets to zero."""
    balance = compute_transactions_balance(
        [
            txn(TransactionType.CHARGE, "50", status=TransactionStatus.VOIDED),
            txn(TransactionType.VOID, "-50", TransactionCategory.VOID),
        ]
    )

    assert balance.total_charges == Decimal("0.00")
    assert balance.outstanding_balance == Decimal("0.00")
    assert balance.balance_status == BalanceStatus.SETTLED


@pytest.mark.unit
def test_discount_reduces_charges_and_is_reported() -> None:
    """Test that discounts count by magnitude and are taken off charges."""
    balance = compute_transactions_balance(
        [
            txn(TransactionType.CHARGE, "200"),
            txn(TransactionType.DISCOUNT, "-30", TransactionCategory.DISCOUNT),
        ]
    )

    assert balance.total_discounts == Decimal("30.00")
    assert balance.total_charges == Decimal("170.00")
    assert balance.outstanding_balance == Decimal("170.00")


@pytest.mark.unit
def test_transfers_move_amounts_between_charges_and_payments() -> None:
    """Test that transfer_in adds to charges and transfer_out counts as payment."""
    incoming = compute_transactions_balance(
        [txn(TransactionType.TRANSFER, "60", TransactionCategory.TRANSFER_IN)]
    )
    outgoing = compute_transactions_balance(
        [
            txn(TransactionType.CHARGE, "60"),
            txn(TransactionType.TRANSFER, "-60", TransactionCategory.TRANSFER_OUT),
        ]
    )

    assert incoming.total_charges == Decimal("60.00")
    assert incoming.outstanding_balance == Decimal("60.00")
    assert outgoing.total_payments == Decimal("60.00")
    assert outgoing.outstanding_balance == Decimal("0.00")


@pytest.mark.unit
def test_refund_reduces_payments_and_overpayment_is_credit() -> None:
    """Test credit after overpayment and its removal by a refund."""
    overpaid = [
        txn(TransactionType.CHARGE, "100"),
        txn(TransactionType.PAYMENT, "-150", TransactionCategory.PAYMENT),
    ]
    credit = compute_transactions_balance(overpaid)
    refunded = compute_transactions_balance(
        overpaid + [txn(TransactionType.REFUND, "-50", TransactionCategory.REFUND)]
    )

    assert credit.outstanding_balance == Decimal("-50.00")
    assert credit.balance_status == BalanceStatus.CREDIT
    assert refunded.total_payments == Decimal("100.00")
    assert refunded.balance_status == BalanceStatus.SETTLED


@pytest.mark.unit
def test_rounding_happens_once_at_aggregation() -> None:
    """Test that sub-cent amounts are summed before rounding."""
    balance = compute_transactions_balance(
        [txn(TransactionType.CHARGE, "0.004") for _ in range(3)]
    )

    assert balance.total_charges == Decimal("0.01")


@pytest.mark.unit
def test_compute_balance_spans_folios() -> None:
    """Test that compute_balance aggregates across several folios."""
    first = Folio(transactions=[txn(TransactionType.CHARGE, "30")])
    second = Folio(
        transactions=[
            txn(TransactionType.CHARGE, "20", service="5"),
            txn(TransactionType.PAYMENT, "-10", TransactionCategory.PAYMENT),
        ]
    )

    balance = compute_balance([first, second])

    assert balance.total_charges == Decimal("50.00")
    assert balance.total_service_charges == Decimal("5.00")
    assert balance.outstanding_balance == Decimal("45.00")


@pytest.mark.unit
def test_to_money_rounds_half_up() -> None:
    """Test that to_money rounds to cents, half up, and maps None to zero."""
    assert to_money("2.345") == Decimal("2.35")
    assert to_money(None) == Decimal("0.00")
