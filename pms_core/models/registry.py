"""
Imports every ORM model so string relationship targets resolve.

Anything that configures mappers or creates the schema (the unit of work,
Alembic, test fixtures) imports `Base` from here.
"""

from pms_core.models.audit import AuditLog  # noqa: F401
from pms_core.models.base import Base
from pms_core.models.folios import Folio, FolioTransaction, LedgerSequence  # noqa: F401
from pms_core.models.guests import Guest  # noqa: F401
from pms_core.models.reservations import Reservation, ReservationRoom  # noqa: F401
from pms_core.models.rooms import Room  # noqa: F401

__all__ = ["Base"]
