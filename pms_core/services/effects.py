"""
Post-commit side effects.

Operations describe what should happen after their transaction commits as
effect records; `EffectDispatcher` executes them outside the transaction.
A failing effect is logged and counted, never raised, and never touches the
state the operation already committed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Union

import structlog
from sqlalchemy.orm import Session

from pms_core.metrics import side_effects_total
from pms_core.models.reservations import Reservation
from pms_core.services.folio_ledger import open_reservation_ledger
from pms_core.services.guest_summary import GuestSummaryRecomputer
from pms_core.services.notifications import NotificationDispatcher
from pms_core.utils.datetime import hotel_now

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class NotificationEffect:
    template_code: str
    recipient_type: str
    recipient_id: int
    related_entity_type: str
    related_entity_id: int
    hotel_id: Optional[int] = None
    actor_id: Optional[int] = None
    context: dict[str, Any] = field(default_factory=dict)

    name = "notification"


@dataclass(frozen=True)
class GuestSummaryEffect:
    reservation_id: int

    name = "guest_summary"


@dataclass(frozen=True)
class FolioCreationEffect:
    reservation_id: int
    actor_id: Optional[int] = None

    name = "folio_creation"


Effect = Union[NotificationEffect, GuestSummaryEffect, FolioCreationEffect]


class EffectDispatcher:
    """
    Executes collected effects after commit.

    Args:
        session_factory: Opens fresh sessions for effects that write
        notifier: Notification dispatcher
        guest_summary: Guest summary recomputer
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        notifier: NotificationDispatcher,
        guest_summary: GuestSummaryRecomputer,
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.guest_summary = guest_summary

    def dispatch(self, effects: Iterable[Effect]) -> None:
        for effect in effects:
            try:
                self._run(effect)
                side_effects_total.labels(effect=effect.name, outcome="success").inc()
            except Exception as e:
                side_effects_total.labels(effect=effect.name, outcome="failure").inc()
                logger.exception("side_effect_failed", effect=effect.name, error=str(e))

    def _run(self, effect: Effect) -> None:
        if isinstance(effect, NotificationEffect):
            variables = self.notifier.build_variables(effect.template_code, effect.context)
            self.notifier.send_with_template(
                template_code=effect.template_code,
                recipient_type=effect.recipient_type,
                recipient_id=effect.recipient_id,
                variables=variables,
                related_entity_type=effect.related_entity_type,
                related_entity_id=effect.related_entity_id,
                actor_id=effect.actor_id,
                hotel_id=effect.hotel_id,
            )
        elif isinstance(effect, GuestSummaryEffect):
            self.guest_summary.recompute_from_reservation(effect.reservation_id)
        elif isinstance(effect, FolioCreationEffect):
            self._create_folios(effect)
        else:
            raise TypeError(f"Unknown effect {effect!r}")

    def _create_folios(self, effect: FolioCreationEffect) -> None:
        with self.session_factory() as session:
            reservation = session.get(Reservation, effect.reservation_id)
            if reservation is None:
                logger.warning("folio_creation_skipped", reservation_id=effect.reservation_id)
                return
            created, posted = open_reservation_ledger(
                session, reservation, hotel_now(), actor_id=effect.actor_id
            )
            session.commit()
            logger.info(
                "folios_created_after_commit",
                reservation_id=effect.reservation_id,
                folio_ids=[folio.id for folio in created],
                room_charges_posted=posted,
            )
