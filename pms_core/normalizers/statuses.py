from enum import Enum
from typing import Any, Type, TypeVar

import structlog

from pms_core.enums import AssignmentStatus, ReservationStatus
from pms_core.errors import ValidationError

logger = structlog.get_logger(__name__)

E = TypeVar("E", bound=Enum)

# Spellings seen in legacy rows and client payloads, keyed by canonical form
_ALIASES: dict[type, dict[str, str]] = {
    ReservationStatus: {
        "completed": ReservationStatus.CHECKED_OUT.value,
        "noshow": ReservationStatus.NO_SHOW.value,
        "checkedin": ReservationStatus.CHECKED_IN.value,
        "checkedout": ReservationStatus.CHECKED_OUT.value,
        "void": ReservationStatus.VOIDED.value,
        "canceled": ReservationStatus.CANCELLED.value,
    },
    AssignmentStatus: {
        "noshow": AssignmentStatus.NO_SHOW.value,
        "checkedin": AssignmentStatus.CHECKED_IN.value,
        "checkedout": AssignmentStatus.CHECKED_OUT.value,
        "void": AssignmentStatus.VOIDED.value,
        "canceled": AssignmentStatus.CANCELLED.value,
        "movedout": AssignmentStatus.MOVED_OUT.value,
    },
}


def normalize_status(value: Any, enum_cls: Type[E]) -> E:
    """
    Map a loosely-typed status string onto its canonical enum member.

    Case, surrounding whitespace, hyphens and spaces are ignored, so
    "Checked-In", "CHECKED_IN" and "checked in" all map to `checked_in`.

    Args:
        value: Raw value (enum member or string)
        enum_cls: Target enum class

    Returns:
        The enum member

    Raises:
        ValidationError: If the value does not name a member of `enum_cls`
    """
    if isinstance(value, enum_cls):
        return value
    if value is None:
        raise ValidationError(
            f"{enum_cls.__name__} is required", {"enum": enum_cls.__name__}
        )

    key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
    aliases = _ALIASES.get(enum_cls, {})
    key = aliases.get(key.replace("_", ""), key)

    try:
        return enum_cls(key)
    except ValueError:
        logger.warning("unknown_status_value", enum=enum_cls.__name__, value=value)
        raise ValidationError(
            f"Unknown {enum_cls.__name__} value: {value!r}",
            {
                "enum": enum_cls.__name__,
                "value": value,
                "allowed": [member.value for member in enum_cls],  # type: ignore[attr-defined]
            },
        ) from None
