"""
Folio operations as standalone units of work.

Thin transactional wrappers over `folio_ledger`: each call loads its rows,
applies one ledger change, writes an audit entry and returns a snapshot.
"""

from datetime import datetime
from typing import Optional

import structlog

from pms_core.db.readers.folios import get_folio, get_transaction
from pms_core.errors import NotFoundError
from pms_core.models.folios import Folio
from pms_core.schemas.folios import (
    BalanceSummary,
    CloseFolioRequest,
    FolioSnapshot,
    PostTransactionRequest,
    RecordPaymentRequest,
    SettleFolioRequest,
    SplitFolioRequest,
    TransactionSnapshot,
    TransferChargesRequest,
    VoidTransactionRequest,
)
from pms_core.services import folio_ledger
from pms_core.services._reservation_helpers import load_reservation
from pms_core.services.unit_of_work import OperationContext, UnitOfWork

logger = structlog.get_logger(__name__)


def _load_folio(ctx: OperationContext, folio_id: int) -> Folio:
    folio = get_folio(ctx.session, folio_id)
    if folio is None:
        raise NotFoundError("Folio", folio_id)
    return folio


def _audit_folio(
    ctx: OperationContext, folio: Folio, action: str, description: str, **meta
) -> None:
    ctx.audit(
        action,
        "folio",
        folio.id,
        hotel_id=folio.hotel_id,
        description=description,
        meta={"reservation_id": folio.reservation_id, **meta},
    )


def _sync_reservation(ctx: OperationContext, folio: Folio) -> None:
    if folio.reservation_id is not None:
        reservation = load_reservation(ctx, folio.reservation_id)
        folio_ledger.sync_reservation_amounts(ctx.session, reservation)


def post_transaction(
    uow: UnitOfWork, request: PostTransactionRequest, now: Optional[datetime] = None
) -> TransactionSnapshot:
    """Post one ledger entry to an open folio."""
    with uow.operation("post_transaction", actor_id=request.actor_id, now=now) as ctx:
        folio = _load_folio(ctx, request.folio_id)
        txn = folio_ledger.post_transaction(
            ctx.session,
            folio,
            request.transaction_type,
            request.category,
            request.amount,
            ctx.now,
            actor_id=ctx.actor_id,
            description=request.description,
            quantity=request.quantity,
            tax_amount=request.tax_amount,
            service_charge_amount=request.service_charge_amount,
            discount_amount=request.discount_amount,
            service_date=request.service_date,
            reservation_room_id=request.reservation_room_id,
        )
        _sync_reservation(ctx, folio)
        _audit_folio(
            ctx,
            folio,
            "folio.post_transaction",
            f"Posted {request.transaction_type.value} of {request.amount}",
            transaction_id=txn.id,
            amount=request.amount,
            category=request.category.value,
        )
        return TransactionSnapshot.model_validate(txn)


def void_transaction(
    uow: UnitOfWork, request: VoidTransactionRequest, now: Optional[datetime] = None
) -> FolioSnapshot:
    """Void a transaction. Voiding twice leaves the ledger as after the first void."""
    with uow.operation("void_transaction", actor_id=request.actor_id, now=now) as ctx:
        txn = get_transaction(ctx.session, request.transaction_id)
        if txn is None:
            raise NotFoundError("FolioTransaction", request.transaction_id)
        folio = txn.folio
        reversal = folio_ledger.void_transaction(
            ctx.session, txn, request.reason, ctx.now, ctx.actor_id, reverse=request.reverse
        )
        _sync_reservation(ctx, folio)
        _audit_folio(
            ctx,
            folio,
            "folio.void_transaction",
            f"Voided transaction #{txn.transaction_number}: {request.reason}",
            transaction_id=txn.id,
            reversal_id=reversal.id if reversal is not None else None,
        )
        ctx.session.flush()
        ctx.session.expire(folio, ["transactions"])
        return FolioSnapshot.model_validate(folio)


def record_payment(
    uow: UnitOfWork, request: RecordPaymentRequest, now: Optional[datetime] = None
) -> TransactionSnapshot:
    """Record a payment; opens the reservation's first folio if needed."""
    with uow.operation("record_payment", actor_id=request.actor_id, now=now) as ctx:
        reservation = load_reservation(ctx, request.reservation_id)
        folio = _load_folio(ctx, request.folio_id) if request.folio_id else None
        txn = folio_ledger.record_payment(
            ctx.session,
            reservation,
            request.amount,
            ctx.now,
            actor_id=ctx.actor_id,
            folio=folio,
            description=request.description,
        )
        _audit_folio(
            ctx,
            txn.folio,
            "folio.record_payment",
            f"Recorded payment of {request.amount}",
            transaction_id=txn.id,
            amount=request.amount,
        )
        logger.info(
            "payment_recorded",
            reservation_id=reservation.id,
            folio_id=txn.folio_id,
            amount=str(request.amount),
        )
        return TransactionSnapshot.model_validate(txn)


def transfer_charges(
    uow: UnitOfWork, request: TransferChargesRequest, now: Optional[datetime] = None
) -> list[FolioSnapshot]:
    """Transfer an amount between two open folios. Returns (source, destination)."""
    with uow.operation("transfer_charges", actor_id=request.actor_id, now=now) as ctx:
        source = _load_folio(ctx, request.from_folio_id)
        destination = _load_folio(ctx, request.to_folio_id)
        out_txn, in_txn = folio_ledger.transfer_charges(
            ctx.session,
            source,
            destination,
            request.amount,
            request.description,
            ctx.now,
            actor_id=ctx.actor_id,
        )
        for folio in (source, destination):
            _sync_reservation(ctx, folio)
        _audit_folio(
            ctx,
            source,
            "folio.transfer_charges",
            f"Transferred {request.amount} to {destination.folio_number}",
            transfer_out_id=out_txn.id,
            transfer_in_id=in_txn.id,
            to_folio_id=destination.id,
        )
        ctx.session.flush()
        return [FolioSnapshot.model_validate(folio) for folio in (source, destination)]


def settle_folio(
    uow: UnitOfWork, request: SettleFolioRequest, now: Optional[datetime] = None
) -> FolioSnapshot:
    """Take a settlement payment; a cleared folio comes back closed."""
    with uow.operation("settle_folio", actor_id=request.actor_id, now=now) as ctx:
        folio = _load_folio(ctx, request.folio_id)
        txn = folio_ledger.settle_folio(
            ctx.session,
            folio,
            request.amount,
            ctx.now,
            actor_id=ctx.actor_id,
            description=request.description,
        )
        _sync_reservation(ctx, folio)
        _audit_folio(
            ctx,
            folio,
            "folio.settle",
            f"Settled {request.amount} on {folio.folio_number}",
            transaction_id=txn.id,
            amount=request.amount,
            closed=not folio.is_open,
        )
        logger.info(
            "folio_settled",
            folio_id=folio.id,
            amount=str(request.amount),
            balance=str(folio.balance),
            closed=not folio.is_open,
        )
        ctx.session.flush()
        ctx.session.expire(folio, ["transactions"])
        return FolioSnapshot.model_validate(folio)


def split_folio(
    uow: UnitOfWork, request: SplitFolioRequest, now: Optional[datetime] = None
) -> list[FolioSnapshot]:
    """Move selected transactions to another folio. Returns (source, destination)."""
    with uow.operation("split_folio", actor_id=request.actor_id, now=now) as ctx:
        source = _load_folio(ctx, request.source_folio_id)
        destination = _load_folio(ctx, request.destination_folio_id)
        moved = folio_ledger.split_folio(
            ctx.session, source, destination, request.transaction_ids, notes=request.notes
        )
        for folio in (source, destination):
            _sync_reservation(ctx, folio)
        _audit_folio(
            ctx,
            source,
            "folio.split",
            f"Split {len(moved)} transaction(s) to {destination.folio_number}",
            destination_folio_id=destination.id,
            transaction_ids=[txn.id for txn in moved],
            notes=request.notes,
        )
        ctx.session.flush()
        return [FolioSnapshot.model_validate(folio) for folio in (source, destination)]


def close_folio(
    uow: UnitOfWork, request: CloseFolioRequest, now: Optional[datetime] = None
) -> FolioSnapshot:
    with uow.operation("close_folio", actor_id=request.actor_id, now=now) as ctx:
        folio = _load_folio(ctx, request.folio_id)
        folio_ledger.close_folio(folio, ctx.now, ctx.actor_id)
        _audit_folio(ctx, folio, "folio.close", f"Closed folio {folio.folio_number}")
        return FolioSnapshot.model_validate(folio)


def get_reservation_balance(
    uow: UnitOfWork, reservation_id: int, open_only: bool = True
) -> BalanceSummary:
    """Read-only balance across the reservation's folios."""
    with uow.operation("get_reservation_balance") as ctx:
        load_reservation(ctx, reservation_id)
        balance = folio_ledger.reservation_balance(ctx.session, reservation_id, open_only)
        return BalanceSummary.model_validate(balance.as_dict())
