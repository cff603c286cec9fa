"""Canonical status and type enumerations. Values are what gets stored."""

from enum import Enum


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    VOIDED = "voided"


class AssignmentStatus(str, Enum):
    RESERVED = "reserved"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    VOIDED = "voided"
    MOVED_OUT = "moved_out"


class RoomStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"
    OUT_OF_ORDER = "out_of_order"


class HousekeepingStatus(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    INSPECTED = "inspected"
    OUT_OF_SERVICE = "out_of_service"


class FolioStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    VOIDED = "voided"


class FolioType(str, Enum):
    GUEST = "guest"
    MASTER = "master"
    ROOM_MOVE = "room_move"


class FolioCloseReason(str, Enum):
    MANUAL = "manual"
    CHECK_OUT = "check_out"
    CANCELLATION = "cancellation"
    SETTLEMENT = "settlement"


class WorkflowStatus(str, Enum):
    ACTIVE = "active"
    FINALIZED = "finalized"
    VOIDED = "voided"


class SettlementStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    SETTLED = "settled"


class TransactionType(str, Enum):
    CHARGE = "charge"
    ROOM_POSTING = "room_posting"
    PAYMENT = "payment"
    ADJUSTMENT = "adjustment"
    TAX = "tax"
    DISCOUNT = "discount"
    REFUND = "refund"
    TRANSFER = "transfer"
    VOID = "void"


class TransactionCategory(str, Enum):
    ROOM = "room"
    FOOD_BEVERAGE = "food_beverage"
    MINIBAR = "minibar"
    LAUNDRY = "laundry"
    PARKING = "parking"
    MISCELLANEOUS = "miscellaneous"
    TAX = "tax"
    SERVICE_CHARGE = "service_charge"
    PAYMENT = "payment"
    DEPOSIT = "deposit"
    ADJUSTMENT = "adjustment"
    DISCOUNT = "discount"
    NO_SHOW_FEE = "no_show_fee"
    CANCELLATION_FEE = "cancellation_fee"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    REFUND = "refund"
    VOID = "void"


class TransactionStatus(str, Enum):
    POSTED = "posted"
    VOIDED = "voided"
    CANCELLED = "cancelled"


class ExchangeMode(str, Enum):
    RESERVATION_SWAP = "reservation_swap"
    ROOM_UPGRADE_DOWNGRADE = "room_upgrade_downgrade"


class BalanceStatus(str, Enum):
    OUTSTANDING = "outstanding"
    CREDIT = "credit"
    SETTLED = "settled"
