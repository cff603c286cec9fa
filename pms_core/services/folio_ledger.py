"""
Session-level folio ledger operations.

Every function here works inside a caller-owned session (normally the one
opened by `UnitOfWork.operation`) and never commits. Folio totals are a
cache: after any change to a folio's transactions, `update_folio_totals`
re-derives them from the live rows.
"""

import re
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Collection, Iterable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from pms_core.config import ROOM_CHARGE_DESCRIPTION
from pms_core.db.readers.folios import (
    list_reservation_folios,
    list_room_charges,
    next_folio_sequence,
)
from pms_core.db.writers.sequences import next_transaction_number
from pms_core.enums import (
    BalanceStatus,
    FolioCloseReason,
    FolioStatus,
    FolioType,
    SettlementStatus,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
    WorkflowStatus,
)
from pms_core.errors import InvalidStateError, ValidationError
from pms_core.metrics import (
    folio_transactions_posted,
    folio_transactions_voided,
    room_charges_deleted,
)
from pms_core.models.folios import Folio, FolioTransaction
from pms_core.models.reservations import Reservation, ReservationRoom
from pms_core.services.balance import Balance, compute_balance, to_money
from pms_core.services.status_rules import is_active_line

logger = structlog.get_logger(__name__)

_ROOM_CHARGE_RE = re.compile(r"^Room(?: \S+)? - Night (\d+)$")


# =============================================================================
# Totals
# =============================================================================


def update_folio_totals(folio: Folio) -> Balance:
    """
    Re-derive a folio's cached totals and balance from its live transactions.

    Args:
        folio: Folio whose `transactions` collection reflects the ledger

    Returns:
        Balance: The freshly computed totals
    """
    balance = compute_balance([folio])
    folio.total_charges = balance.total_charges
    folio.total_payments = balance.total_payments
    folio.total_adjustments = balance.total_adjustments
    folio.total_taxes = balance.total_taxes
    folio.total_service_charges = balance.total_service_charges
    folio.total_discounts = balance.total_discounts
    folio.balance = balance.outstanding_balance

    if balance.balance_status == BalanceStatus.OUTSTANDING:
        partial = balance.total_payments > 0
        folio.settlement_status = (
            SettlementStatus.PARTIAL.value if partial else SettlementStatus.PENDING.value
        )
    else:
        folio.settlement_status = SettlementStatus.SETTLED.value
    return balance


def sync_reservation_amounts(session: Session, reservation: Reservation) -> None:
    """Refresh the reservation's paid/remaining amounts from its live folios."""
    folios = list_reservation_folios(
        session, reservation.id, statuses=(FolioStatus.OPEN, FolioStatus.CLOSED)
    )
    paid = compute_balance(folios).total_payments
    reservation.paid_amount = paid
    reservation.remaining_amount = max(to_money(reservation.final_amount) - paid, Decimal("0"))


def reservation_balance(
    session: Session, reservation_id: int, open_only: bool = True
) -> Balance:
    """
    Balance across a reservation's folios.

    Args:
        session: Active session
        reservation_id: Owning reservation
        open_only: Only aggregate open folios (the check-out gate)

    Returns:
        Balance: Aggregated totals
    """
    statuses = (FolioStatus.OPEN,) if open_only else (FolioStatus.OPEN, FolioStatus.CLOSED)
    return compute_balance(list_reservation_folios(session, reservation_id, statuses=statuses))


# =============================================================================
# Folios
# =============================================================================


def create_folio(
    session: Session,
    reservation: Reservation,
    now: datetime,
    actor_id: Optional[int] = None,
    line: Optional[ReservationRoom] = None,
    folio_type: FolioType = FolioType.GUEST,
) -> Folio:
    """
    Open a new folio for a reservation, optionally bound to one room line.

    Folio numbers are `F-{hotel_id}-{sequence:06d}`, sequential per hotel.
    """
    sequence = next_folio_sequence(session, reservation.hotel_id)
    folio = Folio(
        hotel_id=reservation.hotel_id,
        reservation_id=reservation.id,
        reservation_room_id=line.id if line is not None else None,
        guest_id=(line.guest_id if line is not None and line.guest_id else reservation.guest_id),
        folio_number=f"F-{reservation.hotel_id}-{sequence:06d}",
        folio_type=folio_type.value,
        status=FolioStatus.OPEN.value,
        workflow_status=WorkflowStatus.ACTIVE.value,
        settlement_status=SettlementStatus.PENDING.value,
        currency=reservation.currency,
        opened_at=now,
        opened_by=actor_id,
    )
    session.add(folio)
    session.flush()

    logger.info(
        "folio_created",
        folio_id=folio.id,
        folio_number=folio.folio_number,
        reservation_id=reservation.id,
        reservation_room_id=folio.reservation_room_id,
    )
    return folio


def ensure_reservation_folios(
    session: Session,
    reservation: Reservation,
    now: datetime,
    actor_id: Optional[int] = None,
) -> list[Folio]:
    """
    Make sure every active room line has a folio.

    A reservation with no room lines gets a single reservation-level folio.
    Existing voided folios do not count.

    Returns:
        list[Folio]: The folios created by this call (possibly empty)
    """
    existing = list_reservation_folios(
        session, reservation.id, statuses=(FolioStatus.OPEN, FolioStatus.CLOSED)
    )
    created: list[Folio] = []

    lines = [line for line in reservation.rooms if is_active_line(line)]
    if not lines:
        if not existing:
            created.append(create_folio(session, reservation, now, actor_id))
        return created

    bound = {folio.reservation_room_id for folio in existing}
    for line in lines:
        if line.id not in bound:
            created.append(create_folio(session, reservation, now, actor_id, line=line))
    return created


def primary_open_folio(session: Session, reservation: Reservation) -> Optional[Folio]:
    """The folio payments and unbound fees go to: reservation-level first, then the oldest."""
    folios = list_reservation_folios(session, reservation.id, statuses=(FolioStatus.OPEN,))
    if not folios:
        return None
    unbound = [folio for folio in folios if folio.reservation_room_id is None]
    return (unbound or folios)[0]


def close_folio(
    folio: Folio,
    now: datetime,
    actor_id: Optional[int] = None,
    reason: FolioCloseReason = FolioCloseReason.MANUAL,
) -> None:
    """
    Close an open folio, recording what closed it.

    `reason` lets an undo reopen exactly the folios its operation closed.
    """
    if folio.status != FolioStatus.OPEN:
        raise InvalidStateError(
            f"Folio {folio.id} is not open",
            current_status=folio.status,
            allowed_statuses=[FolioStatus.OPEN.value],
            folio_id=folio.id,
        )
    update_folio_totals(folio)
    folio.status = FolioStatus.CLOSED.value
    folio.workflow_status = WorkflowStatus.FINALIZED.value
    folio.closed_at = now
    folio.closed_by = actor_id
    folio.close_reason = reason.value
    logger.info(
        "folio_closed", folio_id=folio.id, reason=reason.value, balance=str(folio.balance)
    )


def reopen_folio(folio: Folio, actor_id: Optional[int] = None) -> None:
    if folio.status != FolioStatus.CLOSED:
        raise InvalidStateError(
            f"Folio {folio.id} is not closed",
            current_status=folio.status,
            allowed_statuses=[FolioStatus.CLOSED.value],
            folio_id=folio.id,
        )
    folio.status = FolioStatus.OPEN.value
    folio.workflow_status = WorkflowStatus.ACTIVE.value
    folio.closed_at = None
    folio.closed_by = None
    folio.close_reason = None
    logger.info("folio_reopened", folio_id=folio.id, actor_id=actor_id)


def void_folio(
    session: Session,
    folio: Folio,
    reason: str,
    now: datetime,
    actor_id: Optional[int] = None,
    keep_transaction_ids: Collection[int] = (),
) -> bool:
    """
    Reverse every active transaction on a folio and mark it voided.

    Transactions listed in `keep_transaction_ids` (a no-show fee posted just
    before) stay live on the voided folio.

    Calling this on an already voided folio does nothing, so a partial void
    that later escalates to a full void never reverses a folio twice.

    Returns:
        bool: True if the folio was voided by this call
    """
    if folio.status == FolioStatus.VOIDED:
        logger.info("folio_already_voided", folio_id=folio.id)
        return False

    for txn in list(folio.transactions):
        if txn.id in keep_transaction_ids:
            continue
        if txn.is_active and txn.transaction_type != TransactionType.VOID:
            void_transaction(session, txn, reason, now, actor_id, reverse=True)

    update_folio_totals(folio)
    folio.status = FolioStatus.VOIDED.value
    folio.workflow_status = WorkflowStatus.VOIDED.value
    folio.voided_at = now
    folio.voided_by = actor_id
    folio.void_reason = reason
    logger.info("folio_voided", folio_id=folio.id, reason=reason)
    return True


# =============================================================================
# Transactions
# =============================================================================


def post_transaction(
    session: Session,
    folio: Folio,
    transaction_type: TransactionType,
    category: TransactionCategory,
    amount: Decimal,
    now: datetime,
    actor_id: Optional[int] = None,
    description: Optional[str] = None,
    quantity: int = 1,
    tax_amount: Decimal = Decimal("0"),
    service_charge_amount: Decimal = Decimal("0"),
    discount_amount: Decimal = Decimal("0"),
    posting_date: Optional[date] = None,
    service_date: Optional[date] = None,
    reservation_room_id: Optional[int] = None,
) -> FolioTransaction:
    """
    Append one ledger entry to an open folio and refresh its totals.

    Args:
        session: Active session
        folio: Target folio, must be open
        transaction_type: Ledger entry type
        category: Ledger entry category
        amount: Signed amount (payments and transfer-outs negative)
        now: Operation time; `posting_date` defaults to its date

    Returns:
        FolioTransaction: The new row

    Raises:
        InvalidStateError: If the folio is closed or voided
    """
    if not folio.is_open:
        raise InvalidStateError(
            f"Cannot post to folio {folio.id} in status {folio.status}",
            current_status=folio.status,
            allowed_statuses=[FolioStatus.OPEN.value],
            folio_id=folio.id,
        )

    txn = FolioTransaction(
        hotel_id=folio.hotel_id,
        reservation_id=folio.reservation_id,
        reservation_room_id=(
            reservation_room_id if reservation_room_id is not None else folio.reservation_room_id
        ),
        transaction_number=next_transaction_number(session, folio.hotel_id),
        transaction_type=transaction_type.value,
        category=category.value,
        description=description,
        amount=amount,
        quantity=quantity,
        unit_price=(amount / quantity) if quantity else amount,
        tax_amount=tax_amount,
        service_charge_amount=service_charge_amount,
        discount_amount=discount_amount,
        status=TransactionStatus.POSTED.value,
        posting_date=posting_date or now.date(),
        service_date=service_date,
        transaction_date=now,
        created_by=actor_id,
    )
    txn.folio = folio
    session.add(txn)
    session.flush()
    update_folio_totals(folio)

    folio_transactions_posted.labels(transaction_type=transaction_type.value).inc()
    logger.debug(
        "transaction_posted",
        folio_id=folio.id,
        transaction_id=txn.id,
        transaction_type=transaction_type.value,
        amount=str(amount),
    )
    return txn


def void_transaction(
    session: Session,
    txn: FolioTransaction,
    reason: str,
    now: datetime,
    actor_id: Optional[int] = None,
    reverse: bool = True,
) -> Optional[FolioTransaction]:
    """
    Void a posted transaction, optionally appending a reversing entry.

    Voiding an already voided transaction is a no-op. The original row keeps
    its amount; only status and void metadata change.

    Returns:
        Optional[FolioTransaction]: The reversal row, when one was written

    Raises:
        InvalidStateError: For reversal rows or transactions on a voided folio
    """
    if txn.status == TransactionStatus.VOIDED:
        logger.info("transaction_already_voided", transaction_id=txn.id)
        return None
    if txn.transaction_type == TransactionType.VOID:
        raise InvalidStateError(
            "Reversal entries cannot be voided", transaction_id=txn.id
        )

    folio = txn.folio
    if folio.status == FolioStatus.VOIDED:
        raise InvalidStateError(
            f"Folio {folio.id} is voided",
            current_status=folio.status,
            transaction_id=txn.id,
        )

    txn.status = TransactionStatus.VOIDED.value
    txn.void_reason = reason
    txn.voided_at = now
    txn.voided_by = actor_id

    reversal = None
    if reverse:
        reversal = FolioTransaction(
            hotel_id=txn.hotel_id,
            reservation_id=txn.reservation_id,
            reservation_room_id=txn.reservation_room_id,
            transaction_number=next_transaction_number(session, txn.hotel_id),
            transaction_type=TransactionType.VOID.value,
            category=TransactionCategory.VOID.value,
            description=f"Void of #{txn.transaction_number}: {reason}",
            amount=-Decimal(str(txn.amount)),
            quantity=1,
            unit_price=-Decimal(str(txn.amount)),
            status=TransactionStatus.POSTED.value,
            posting_date=now.date(),
            service_date=txn.service_date,
            transaction_date=now,
            original_transaction_id=txn.id,
            created_by=actor_id,
        )
        reversal.folio = folio
        session.add(reversal)

    session.flush()
    update_folio_totals(folio)
    folio_transactions_voided.inc()
    logger.info(
        "transaction_voided",
        transaction_id=txn.id,
        folio_id=folio.id,
        reversal_id=reversal.id if reversal is not None else None,
    )
    return reversal


def cancel_folio_transactions(
    folio: Folio, reason: str, now: datetime, actor_id: Optional[int] = None
) -> int:
    """Mark every live transaction on the folio cancelled. Returns the count."""
    count = 0
    for txn in folio.transactions:
        if txn.is_active:
            txn.status = TransactionStatus.CANCELLED.value
            txn.void_reason = reason
            txn.voided_at = now
            txn.voided_by = actor_id
            count += 1
    update_folio_totals(folio)
    return count


def record_payment(
    session: Session,
    reservation: Reservation,
    amount: Decimal,
    now: datetime,
    actor_id: Optional[int] = None,
    folio: Optional[Folio] = None,
    description: Optional[str] = None,
) -> FolioTransaction:
    """
    Record a guest payment, opening a folio first if the reservation has none.

    `amount` is the positive amount received; it is stored negative.
    """
    if amount <= 0:
        raise ValidationError("Payment amount must be positive", {"amount": str(amount)})

    target = folio or primary_open_folio(session, reservation)
    if target is None:
        target = create_folio(session, reservation, now, actor_id)

    txn = post_transaction(
        session,
        target,
        TransactionType.PAYMENT,
        TransactionCategory.PAYMENT,
        -amount,
        now,
        actor_id=actor_id,
        description=description or "Payment",
    )
    sync_reservation_amounts(session, reservation)
    return txn


def transfer_charges(
    session: Session,
    from_folio: Folio,
    to_folio: Folio,
    amount: Decimal,
    description: str,
    now: datetime,
    actor_id: Optional[int] = None,
) -> tuple[FolioTransaction, FolioTransaction]:
    """Move `amount` of charges between two open folios as a transfer pair."""
    out_txn = post_transaction(
        session,
        from_folio,
        TransactionType.TRANSFER,
        TransactionCategory.TRANSFER_OUT,
        -amount,
        now,
        actor_id=actor_id,
        description=f"{description} (to {to_folio.folio_number})",
    )
    in_txn = post_transaction(
        session,
        to_folio,
        TransactionType.TRANSFER,
        TransactionCategory.TRANSFER_IN,
        amount,
        now,
        actor_id=actor_id,
        description=f"{description} (from {from_folio.folio_number})",
    )
    return out_txn, in_txn


def settle_folio(
    session: Session,
    folio: Folio,
    amount: Decimal,
    now: datetime,
    actor_id: Optional[int] = None,
    description: Optional[str] = None,
) -> FolioTransaction:
    """
    Take a payment against a folio's outstanding balance.

    The folio closes itself once the payment clears the balance (zero or in
    credit); a smaller payment leaves it open and partially settled.

    Raises:
        InvalidStateError: Folio not open, or nothing left to settle
        ValidationError: Non-positive amount
    """
    if amount <= 0:
        raise ValidationError("Settlement amount must be positive", {"amount": str(amount)})
    if folio.is_open and update_folio_totals(folio).outstanding_balance <= 0:
        raise InvalidStateError(
            f"Folio {folio.id} has no outstanding balance to settle",
            folio_id=folio.id,
            balance=str(folio.balance),
        )

    txn = post_transaction(
        session,
        folio,
        TransactionType.PAYMENT,
        TransactionCategory.PAYMENT,
        -amount,
        now,
        actor_id=actor_id,
        description=description or "Settlement payment",
    )
    if folio.balance <= 0:
        close_folio(folio, now, actor_id, reason=FolioCloseReason.SETTLEMENT)
    return txn


def split_folio(
    session: Session,
    source: Folio,
    destination: Folio,
    transaction_ids: Collection[int],
    notes: Optional[str] = None,
) -> list[FolioTransaction]:
    """
    Move selected live transactions from one open folio to another.

    Each moved row keeps its number and amounts; its description gains a
    "Split from folio F-..." suffix. Totals are re-derived on both folios.
    Reversal rows stay with the folio of the entry they reverse.

    Returns:
        list[FolioTransaction]: The moved rows

    Raises:
        ValidationError: Same folio twice, folios of different hotels, or ids
            that are not live entries of the source folio
        InvalidStateError: Either folio is not open
    """
    if source.id == destination.id:
        raise ValidationError(
            "Source and destination folios must differ", {"folio_id": source.id}
        )
    if source.hotel_id != destination.hotel_id:
        raise ValidationError(
            "Source and destination folios belong to different hotels",
            {"source_hotel_id": source.hotel_id, "destination_hotel_id": destination.hotel_id},
        )
    for folio in (source, destination):
        if not folio.is_open:
            raise InvalidStateError(
                f"Cannot split with folio {folio.id} in status {folio.status}",
                current_status=folio.status,
                allowed_statuses=[FolioStatus.OPEN.value],
                folio_id=folio.id,
            )

    movable = {
        txn.id: txn
        for txn in source.transactions
        if txn.is_active and txn.transaction_type != TransactionType.VOID
    }
    missing = [txn_id for txn_id in transaction_ids if txn_id not in movable]
    if missing:
        raise ValidationError(
            "Transactions are not live entries of the source folio",
            {"transaction_ids": missing, "folio_id": source.id},
        )

    suffix = f"Split from folio {source.folio_number}"
    if notes:
        suffix = f"{suffix}: {notes}"
    moved = [movable[txn_id] for txn_id in dict.fromkeys(transaction_ids)]
    for txn in moved:
        description = f"{txn.description} | {suffix}" if txn.description else suffix
        txn.description = description[:255]
        txn.folio = destination
    session.flush()

    for folio in (source, destination):
        session.expire(folio, ["transactions"])
        update_folio_totals(folio)

    logger.info(
        "folio_split",
        source_folio_id=source.id,
        destination_folio_id=destination.id,
        transaction_ids=[txn.id for txn in moved],
    )
    return moved


# =============================================================================
# Room charges
# =============================================================================


def room_charge_description(line: ReservationRoom, night: int) -> str:
    if line.room is not None:
        return ROOM_CHARGE_DESCRIPTION.format(room_number=line.room.room_number, night=night)
    return f"Room - Night {night}"


def post_room_charges(
    session: Session,
    folio: Folio,
    line: ReservationRoom,
    now: datetime,
    actor_id: Optional[int] = None,
) -> list[FolioTransaction]:
    """
    Post one room charge per night of a line. A day-use line posts one.

    Each charge carries the line's per-night rate and tax, and is dated on
    the night it covers.
    """
    nights = max(line.nights or 0, 1)
    posted = []
    for index in range(nights):
        night = line.check_in_date + timedelta(days=index)
        posted.append(
            post_transaction(
                session,
                folio,
                TransactionType.ROOM_POSTING,
                TransactionCategory.ROOM,
                Decimal(str(line.room_rate)),
                now,
                actor_id=actor_id,
                description=room_charge_description(line, index + 1),
                tax_amount=Decimal(str(line.tax_amount or 0)),
                posting_date=night,
                service_date=night,
                reservation_room_id=line.id,
            )
        )
    logger.info(
        "room_charges_posted",
        folio_id=folio.id,
        reservation_room_id=line.id,
        nights=len(posted),
    )
    return posted


def delete_room_charges(
    session: Session,
    folios: Iterable[Folio],
    reservation_room_id: Optional[int] = None,
) -> int:
    """
    Physically delete the live room charges on open folios.

    This is the retract half of "retract and reissue" stay amendment; the
    only path that removes ledger rows.

    Returns:
        int: Number of rows deleted
    """
    open_folios = [folio for folio in folios if folio.is_open]
    rows = list_room_charges(
        session, [folio.id for folio in open_folios], reservation_room_id=reservation_room_id
    )
    for row in rows:
        session.delete(row)
    session.flush()

    for folio in open_folios:
        session.expire(folio, ["transactions"])
        update_folio_totals(folio)

    room_charges_deleted.inc(len(rows))
    logger.info(
        "room_charges_deleted",
        folio_ids=[folio.id for folio in open_folios],
        count=len(rows),
    )
    return len(rows)


def update_room_charge_descriptions(
    session: Session, folios: Iterable[Folio], line: ReservationRoom
) -> int:
    """Rewrite posted room-charge descriptions to name the line's current room."""
    count = 0
    for txn in list_room_charges(
        session, [folio.id for folio in folios], reservation_room_id=line.id
    ):
        match = _ROOM_CHARGE_RE.match(txn.description or "")
        if match:
            txn.description = room_charge_description(line, int(match.group(1)))
            count += 1
    return count


def open_reservation_ledger(
    session: Session,
    reservation: Reservation,
    now: datetime,
    actor_id: Optional[int] = None,
) -> tuple[list[Folio], int]:
    """
    Give every active line a folio carrying its nightly room charges.

    Only folios created here receive room charges, and only for lines with
    no live room charge anywhere on the reservation, so calling this on a
    reservation whose ledger already exists changes nothing.

    Returns:
        tuple[list[Folio], int]: Folios created and room charges posted
    """
    existing = [
        folio.id
        for folio in list_reservation_folios(
            session, reservation.id, statuses=(FolioStatus.OPEN, FolioStatus.CLOSED)
        )
    ]
    created = ensure_reservation_folios(session, reservation, now, actor_id)
    lines = {line.id: line for line in reservation.rooms}
    posted = 0
    for folio in created:
        line = lines.get(folio.reservation_room_id)
        if line is None or list_room_charges(session, existing, reservation_room_id=line.id):
            continue
        posted += len(post_room_charges(session, folio, line, now, actor_id))
    sync_reservation_amounts(session, reservation)
    return created, posted


def strip_room_number_from_charges(
    session: Session, folios: Iterable[Folio], reservation_room_id: int
) -> int:
    """Replace "Room 101 - Night 2" with "Room - Night 2". Amounts are untouched."""
    count = 0
    for txn in list_room_charges(
        session, [folio.id for folio in folios], reservation_room_id=reservation_room_id
    ):
        match = _ROOM_CHARGE_RE.match(txn.description or "")
        if match:
            txn.description = f"Room - Night {match.group(1)}"
            count += 1
    return count


def reassign_transactions_for_move(
    session: Session,
    reservation: Reservation,
    source: ReservationRoom,
    target: ReservationRoom,
    effective_date: date,
) -> int:
    """
    Re-attribute a moved stay's ledger entries to the destination line.

    Only transactions posted on or after `effective_date` move; earlier nights
    stay with the source line. Open folios bound to the source line are
    re-pointed at the destination.

    Returns:
        int: Number of transactions reassigned
    """
    stmt = (
        select(FolioTransaction)
        .where(FolioTransaction.reservation_room_id == source.id)
        .where(FolioTransaction.posting_date >= effective_date)
    )
    moved = list(session.scalars(stmt))
    for txn in moved:
        txn.reservation_room_id = target.id

    for folio in list_reservation_folios(session, reservation.id, statuses=(FolioStatus.OPEN,)):
        if folio.reservation_room_id == source.id:
            folio.reservation_room_id = target.id
            folio.reservation_id = reservation.id

    session.flush()
    logger.info(
        "transactions_reassigned",
        source_reservation_room_id=source.id,
        target_reservation_room_id=target.id,
        effective_date=effective_date.isoformat(),
        count=len(moved),
    )
    return len(moved)
