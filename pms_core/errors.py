"""
Typed errors raised by reservation and folio operations.

Every error carries a stable `kind`, a human-readable message and structured
`details` so a caller can decide whether to retry, prompt the user or abort.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional


class PmsError(Exception):
    """Base class for all domain errors."""

    kind = "error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class NotFoundError(PmsError):
    kind = "not_found"

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            f"{entity_type} {entity_id} not found",
            {"entity_type": entity_type, "entity_id": entity_id},
        )


class InvalidStateError(PmsError):
    kind = "invalid_state"

    def __init__(
        self,
        message: str,
        current_status: Optional[str] = None,
        allowed_statuses: Optional[list[str]] = None,
        **details: Any,
    ):
        if current_status is not None:
            details["current_status"] = current_status
        if allowed_statuses is not None:
            details["allowed_statuses"] = allowed_statuses
        super().__init__(message, details)


class ValidationError(PmsError):
    kind = "validation"


class MissingRoomError(ValidationError):
    """A targeted room line has no physical room assigned."""

    kind = "missing_room"

    def __init__(self, reservation_room_ids: list[int]):
        super().__init__(
            "Room must be assigned before this operation",
            {"reservation_room_ids": reservation_room_ids},
        )


class OutstandingBalanceError(PmsError):
    kind = "outstanding_balance"

    def __init__(self, balance: Decimal, folio_ids: list[int]):
        super().__init__(
            f"Cannot check out with an outstanding balance of {balance}",
            {"balance": str(balance), "folio_ids": folio_ids},
        )
        self.balance = balance


class RoomUnavailableError(PmsError):
    kind = "room_unavailable"

    def __init__(self, room_id: int, conflicting_reservation_room_ids: list[int]):
        super().__init__(
            f"Room {room_id} is not available for the requested dates",
            {
                "room_id": room_id,
                "conflicting_reservation_room_ids": conflicting_reservation_room_ids,
            },
        )


class WindowExpiredError(PmsError):
    kind = "window_expired"


class ConcurrencyError(PmsError):
    kind = "concurrency"
