"""SQLAlchemy models for folios and their ledger transactions."""

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from pms_core.config import DEFAULT_CURRENCY
from pms_core.enums import (
    FolioStatus,
    FolioType,
    SettlementStatus,
    TransactionStatus,
    WorkflowStatus,
)
from pms_core.models.base import Base

Money = Numeric(12, 2)


class Folio(Base):
    """
    ORM model for a guest sub-ledger.

    The total_* columns and `balance` are a cache of the ledger: they are
    always re-derived from `transactions` by `update_folio_totals` and never
    edited in place by voids.
    """

    __tablename__ = "folios"

    id = Column(Integer, primary_key=True)
    hotel_id = Column(Integer, nullable=False, index=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), nullable=True, index=True)
    reservation_room_id = Column(
        Integer, ForeignKey("reservation_rooms.id"), nullable=True, index=True
    )
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=True)
    folio_number = Column(String(32), nullable=False, unique=True)
    folio_type = Column(String(20), nullable=False, default=FolioType.GUEST.value)
    status = Column(String(20), nullable=False, default=FolioStatus.OPEN.value)
    workflow_status = Column(String(20), nullable=False, default=WorkflowStatus.ACTIVE.value)
    settlement_status = Column(
        String(20), nullable=False, default=SettlementStatus.PENDING.value
    )
    currency = Column(String(3), nullable=False, default=DEFAULT_CURRENCY)

    total_charges = Column(Money, nullable=False, default=0)
    total_payments = Column(Money, nullable=False, default=0)
    total_adjustments = Column(Money, nullable=False, default=0)
    total_taxes = Column(Money, nullable=False, default=0)
    total_service_charges = Column(Money, nullable=False, default=0)
    total_discounts = Column(Money, nullable=False, default=0)
    balance = Column(Money, nullable=False, default=0)

    opened_at = Column(DateTime, nullable=True)
    opened_by = Column(Integer, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    closed_by = Column(Integer, nullable=True)
    close_reason = Column(String(20), nullable=True)
    voided_at = Column(DateTime, nullable=True)
    voided_by = Column(Integer, nullable=True)
    void_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
    version = Column(Integer, nullable=False, default=1)

    reservation = relationship("Reservation", back_populates="folios")
    transactions = relationship(
        "FolioTransaction",
        back_populates="folio",
        order_by="FolioTransaction.id",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_open(self) -> bool:
        return self.status == FolioStatus.OPEN


class FolioTransaction(Base):
    """
    ORM model for an append-mostly ledger entry.

    Amounts are signed: payments and transfer-outs are stored negative. After
    posting, only `status` and the void columns change; room charges are the
    one exception and are retracted (deleted) and reposted by stay amendments.
    """

    __tablename__ = "folio_transactions"
    # Row ids of retracted room charges must not come back
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    hotel_id = Column(Integer, nullable=False, index=True)
    folio_id = Column(Integer, ForeignKey("folios.id"), nullable=False, index=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), nullable=True, index=True)
    reservation_room_id = Column(
        Integer, ForeignKey("reservation_rooms.id"), nullable=True, index=True
    )
    transaction_number = Column(Integer, nullable=False)
    transaction_type = Column(String(20), nullable=False)
    category = Column(String(32), nullable=False)
    description = Column(String(255), nullable=True)

    amount = Column(Money, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Money, nullable=False, default=0)
    tax_amount = Column(Money, nullable=False, default=0)
    service_charge_amount = Column(Money, nullable=False, default=0)
    discount_amount = Column(Money, nullable=False, default=0)

    status = Column(String(20), nullable=False, default=TransactionStatus.POSTED.value)
    posting_date = Column(Date, nullable=False)
    service_date = Column(Date, nullable=True)
    transaction_date = Column(DateTime, nullable=False)

    original_transaction_id = Column(
        Integer, ForeignKey("folio_transactions.id"), nullable=True
    )
    void_reason = Column(Text, nullable=True)
    voided_at = Column(DateTime, nullable=True)
    voided_by = Column(Integer, nullable=True)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    folio = relationship("Folio", back_populates="transactions")

    @property
    def is_active(self) -> bool:
        return self.status not in (TransactionStatus.VOIDED, TransactionStatus.CANCELLED)


class LedgerSequence(Base):
    """
    Per-hotel counter behind human-facing ledger numbers.

    `last_value` only ever grows, so a number handed out once (even for a
    row that a stay amendment later deletes) is never handed out again.
    """

    __tablename__ = "ledger_sequences"

    hotel_id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(32), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
