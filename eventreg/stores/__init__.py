"""Event store interface.

The store is the persistence boundary of the service. Implementations return
validated domain models; list queries go through the events-list cache so a
store only sees one read per burst of identical public requests.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from ..domain.models import Event


class EventStore(Protocol):
    """Protocol for event persistence backends."""

    async def list_events(self) -> List[Event]:
        """Return every stored event, drafts and unlisted ones included."""
        raise NotImplementedError

    async def get_event(self, event_id: str) -> Optional[Event]:
        """Return one event, or None if it does not exist."""
        raise NotImplementedError

    async def save_event(self, event: Event) -> Event:
        """Insert or replace an event by id."""
        raise NotImplementedError

    async def delete_event(self, event_id: str) -> bool:
        """Delete an event; return False if it did not exist."""
        raise NotImplementedError

    async def is_setup_done(self) -> bool:
        """Return whether the deployment has completed initial setup."""
        raise NotImplementedError


from .memory import InMemoryEventStore  # noqa: E402

__all__ = ["EventStore", "InMemoryEventStore"]
