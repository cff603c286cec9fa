"""
Outbound guest notifications.

Template rendering and delivery live in a separate notification service;
this module only builds merge variables and hands template sends to it over
HTTP. Without a configured webhook, sends are logged and skipped.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Optional, Protocol

import requests
import structlog

from pms_core.config import NOTIFICATION_TIMEOUT_SECONDS, NOTIFICATION_WEBHOOK_URL

logger = structlog.get_logger(__name__)

RESERVATION_CONFIRMED = "RESERVATION_CONFIRMED"
CHECKIN_COMPLETED_GUEST = "CHECKIN_COMPLETED_GUEST"
CHECKOUT_COMPLETED_GUEST = "CHECKOUT_COMPLETED_GUEST"
RESERVATION_CANCELLED = "RESERVATION_CANCELLED"
RESERVATION_NO_SHOW = "RESERVATION_NO_SHOW"
RESERVATION_VOIDED = "RESERVATION_VOIDED"
ROOM_MOVED_GUEST = "ROOM_MOVED_GUEST"
STAY_AMENDED_GUEST = "STAY_AMENDED_GUEST"

# Variables every template can rely on; missing ones are sent as ""
BASE_VARIABLES = (
    "ReservationNumber",
    "GuestName",
    "GuestEmail",
    "ArrivalDate",
    "DepartureDate",
    "Status",
)


class NotificationDispatcher(Protocol):
    def build_variables(self, template_code: str, context: Mapping[str, Any]) -> dict[str, str]: ...

    def send_with_template(
        self,
        template_code: str,
        recipient_type: str,
        recipient_id: int,
        variables: Mapping[str, str],
        related_entity_type: str,
        related_entity_id: int,
        actor_id: Optional[int] = None,
        hotel_id: Optional[int] = None,
    ) -> None: ...


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    if isinstance(value, (list, tuple)):
        return ", ".join(_to_text(item) for item in value)
    return str(value)


class LoggingNotificationDispatcher:
    """Builds variables and logs sends without delivering them."""

    def build_variables(self, template_code: str, context: Mapping[str, Any]) -> dict[str, str]:
        """
        Flatten an operation's context into string merge variables.

        Args:
            template_code: Template the variables are for
            context: Values captured by the operation before commit

        Returns:
            dict[str, str]: Merge variables, dates as ISO strings and money
            with two decimals
        """
        variables = {key: "" for key in BASE_VARIABLES}
        variables.update({key: _to_text(value) for key, value in context.items()})
        variables["TemplateCode"] = template_code
        return variables

    def send_with_template(
        self,
        template_code: str,
        recipient_type: str,
        recipient_id: int,
        variables: Mapping[str, str],
        related_entity_type: str,
        related_entity_id: int,
        actor_id: Optional[int] = None,
        hotel_id: Optional[int] = None,
    ) -> None:
        logger.info(
            "notification_not_sent",
            reason="no_webhook_configured",
            template_code=template_code,
            recipient_type=recipient_type,
            recipient_id=recipient_id,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
        )


class HttpNotificationDispatcher(LoggingNotificationDispatcher):
    """
    Posts template sends to the notification service webhook.

    Args:
        url: Webhook endpoint accepting template sends
        timeout: Request timeout in seconds
    """

    def __init__(self, url: str, timeout: int = NOTIFICATION_TIMEOUT_SECONDS):
        self.url = url
        self.timeout = timeout

    def send_with_template(
        self,
        template_code: str,
        recipient_type: str,
        recipient_id: int,
        variables: Mapping[str, str],
        related_entity_type: str,
        related_entity_id: int,
        actor_id: Optional[int] = None,
        hotel_id: Optional[int] = None,
    ) -> None:
        """
        Send one templated notification.

        Raises:
            requests.HTTPError: If the notification service rejects the send
        """
        payload = {
            "templateCode": template_code,
            "recipientType": recipient_type,
            "recipientId": recipient_id,
            "variables": dict(variables),
            "relatedEntityType": related_entity_type,
            "relatedEntityId": related_entity_id,
            "actorId": actor_id,
            "hotelId": hotel_id,
        }

        response = requests.post(
            self.url,
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )
        response.raise_for_status()

        logger.info(
            "notification_sent",
            template_code=template_code,
            recipient_type=recipient_type,
            recipient_id=recipient_id,
            status_code=response.status_code,
        )


def build_notification_dispatcher(
    url: Optional[str] = NOTIFICATION_WEBHOOK_URL,
) -> LoggingNotificationDispatcher:
    if url:
        return HttpNotificationDispatcher(url)
    return LoggingNotificationDispatcher()
