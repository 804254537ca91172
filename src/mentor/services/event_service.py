"""
Event Service for the mentor core.

Lifecycle events are written into the ``events`` table inside the
caller's transaction, then delivered to registered handlers by an
``EventDispatcher``. An event is marked dispatched only after every
handler for its type succeeded, so delivery is at-least-once.
"""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mentor.models import Event, EventModel, EventType

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], Awaitable[None]]


async def record_event(
    session: AsyncSession,
    entity_type: str,
    entity_id: str,
    event_type: EventType,
    actor: str,
    payload: dict[str, Any] | None = None,
) -> EventModel:
    """
    Add an event row to the session without committing.

    The caller's commit makes the event durable together with the change
    it describes.
    """
    event = EventModel(
        entity_type=entity_type,
        entity_id=entity_id,
        event_type=event_type.value,
        actor=actor,
        payload=payload,
    )
    session.add(event)
    await session.flush()
    return event


async def get_events(
    session: AsyncSession, entity_type: str, entity_id: str
) -> list[Event]:
    """Get all events for an entity, oldest first."""
    result = await session.execute(
        select(EventModel)
        .where(EventModel.entity_type == entity_type, EventModel.entity_id == entity_id)
        .order_by(EventModel.id)
    )
    return [Event.model_validate(e) for e in result.scalars().all()]


class EventDispatcher:
    """Delivers pending events to handlers registered per event type."""

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[EventHandler]] = defaultdict(list)

    def register(self, event_type: EventType, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    def handlers_for(self, event_type: EventType) -> list[EventHandler]:
        return list(self._handlers.get(event_type, []))

    async def dispatch_pending(self, session: AsyncSession, limit: int = 100) -> int:
        """
        Deliver undispatched events in id order.

        A handler failure leaves that event pending for the next run and
        does not stop delivery of later events.

        Args:
            session: Database session
            limit: Maximum number of events to process in this run

        Returns:
            Number of events marked dispatched
        """
        result = await session.execute(
            select(EventModel)
            .where(EventModel.dispatched_at.is_(None))
            .order_by(EventModel.id)
            .limit(limit)
        )
        pending = list(result.scalars().all())

        dispatched = 0
        for event_model in pending:
            event = Event.model_validate(event_model)
            try:
                for handler in self.handlers_for(event.event_type):
                    await handler(event)
            except Exception as e:
                logger.error(
                    f"Event {event.id} ({event.event_type.value}) handler failed, "
                    f"will retry: {e}"
                )
                continue

            event_model.dispatched_at = datetime.now(UTC)
            dispatched += 1

        await session.commit()

        if pending:
            logger.info(f"Dispatched {dispatched}/{len(pending)} pending events")
        return dispatched


async def log_activity(event: Event) -> None:
    """Activity-log handler: one info line per lifecycle transition."""
    logger.info(
        f"[activity] {event.entity_type} {event.entity_id} {event.event_type.value} "
        f"by {event.actor}"
    )


def create_default_dispatcher() -> EventDispatcher:
    """Dispatcher with the activity-log handler registered for every event type."""
    dispatcher = EventDispatcher()
    for event_type in EventType:
        dispatcher.register(event_type, log_activity)
    return dispatcher
