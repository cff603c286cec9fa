"""SQL-backed room registry used by reservation operations."""

from typing import Optional, Protocol

import structlog
from sqlalchemy.orm import Session

from pms_core.enums import HousekeepingStatus, RoomStatus
from pms_core.models.rooms import Room

logger = structlog.get_logger(__name__)


class RoomRegistry(Protocol):
    """Owner of physical room records and their status flags."""

    def find_room(self, room_id: int) -> Optional[Room]: ...

    def save_room_status(
        self,
        room_id: int,
        status: RoomStatus,
        housekeeping_status: Optional[HousekeepingStatus] = None,
    ) -> None: ...


class SqlRoomRegistry:
    """
    Room registry that reads and writes through the operation's session.

    Status changes are flushed with the rest of the unit of work, so a rolled
    back operation leaves rooms untouched.
    """

    def __init__(self, session: Session):
        self.session = session

    def find_room(self, room_id: int) -> Optional[Room]:
        return self.session.get(Room, room_id)

    def save_room_status(
        self,
        room_id: int,
        status: RoomStatus,
        housekeeping_status: Optional[HousekeepingStatus] = None,
    ) -> None:
        """
        Set a room's operational status and, optionally, housekeeping status.

        Args:
            room_id (int): Physical room ID.
            status (RoomStatus): New operational status.
            housekeeping_status (Optional[HousekeepingStatus]): New housekeeping
                status, left unchanged when None.
        """
        room = self.session.get(Room, room_id)
        if room is None:
            logger.warning("room_status_skipped_missing_room", room_id=room_id)
            return

        room.status = status.value
        if housekeeping_status is not None:
            room.housekeeping_status = housekeeping_status.value

        logger.debug(
            "room_status_saved",
            room_id=room_id,
            status=status.value,
            housekeeping_status=room.housekeeping_status,
        )
