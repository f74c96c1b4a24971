"""Event service: cached public listing and admin event management.

The public events list is the hottest read in the system and is served
through a short-lived cache so a burst of identical requests results in a
single store query. Every admin write busts that cache.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Callable, List, Optional

from ..utils.cache import CachedFunction, create_cache
from .listing import filter_admin_events, filter_user_events
from .models import (
    AdminEventListItem,
    Event,
    EventInput,
    EventListQuery,
    UserEventListItem,
)

if TYPE_CHECKING:
    from ..config.models import EnvSettings
    from ..stores import EventStore

logger = logging.getLogger(__name__)


class EventNotFound(KeyError):
    """Raised when an event id does not exist."""


class InitialSetupNeeded(RuntimeError):
    """Raised by public reads before the deployment has been set up."""


class EventService:
    """Event operations over an :class:`EventStore`."""

    def __init__(
        self,
        store: "EventStore",
        *,
        max_age_ms: float = 1000,
        max_pending_age_ms: Optional[float] = 2000,
        cache_size: int = 128,
        testing: Optional[bool] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.store = store
        self.events_list_cache: CachedFunction[
            EventListQuery, List[UserEventListItem]
        ] = create_cache(
            self._load_user_events,
            max_age_ms=max_age_ms,
            max_pending_age_ms=max_pending_age_ms,
            max_size=cache_size,
            testing=testing,
            clock=clock,
            name="events_list_for_user",
        )

    @classmethod
    def from_settings(
        cls, settings: "EnvSettings", store: "EventStore"
    ) -> "EventService":
        """Build a service using the cache windows from ``settings``."""
        return cls(
            store,
            max_age_ms=settings.events_list_max_age_ms,
            max_pending_age_ms=settings.events_list_max_pending_age_ms,
            cache_size=settings.events_list_cache_size,
            testing=settings.is_testing,
        )

    async def _load_user_events(
        self, query: EventListQuery
    ) -> List[UserEventListItem]:
        events = await self.store.list_events()
        items = filter_user_events(events, query)
        logger.debug(
            "events.list.loaded",
            extra={
                "category": query.category,
                "since": query.since,
                "events": len(items),
            },
        )
        return items

    async def events_list_for_user(
        self, query: EventListQuery
    ) -> List[UserEventListItem]:
        """Public event list, served from the events-list cache.

        Raises
        ------
        InitialSetupNeeded
            If the store reports that setup has not been completed.
        """
        if not await self.store.is_setup_done():
            raise InitialSetupNeeded("Initial setup of the service is needed.")
        return await self.events_list_cache(
            EventListQuery(category=query.category, since=query.since)
        )

    async def events_list_for_admin(
        self, query: EventListQuery
    ) -> List[AdminEventListItem]:
        """Admin event list. Always read fresh from the store."""
        events = await self.store.list_events()
        return filter_admin_events(events, query)

    async def get_event(self, event_id: str) -> Event:
        event = await self.store.get_event(event_id)
        if event is None:
            raise EventNotFound(event_id)
        return event

    async def create_event(self, data: EventInput) -> Event:
        event = Event(id=uuid.uuid4().hex[:12], **data.model_dump())
        saved = await self.store.save_event(event)
        self.events_list_cache.invalidate()
        logger.info("events.created", extra={"event_id": saved.id, "slug": saved.slug})
        return saved

    async def update_event(self, event_id: str, data: EventInput) -> Event:
        await self.get_event(event_id)
        saved = await self.store.save_event(Event(id=event_id, **data.model_dump()))
        self.events_list_cache.invalidate()
        logger.info("events.updated", extra={"event_id": event_id})
        return saved

    async def delete_event(self, event_id: str) -> None:
        if not await self.store.delete_event(event_id):
            raise EventNotFound(event_id)
        self.events_list_cache.invalidate()
        logger.info("events.deleted", extra={"event_id": event_id})
