"""Dict-backed event store, optionally seeded from a JSON file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..config.models import EventsFile
from ..domain.models import Event

logger = logging.getLogger(__name__)


class InMemoryEventStore:
    """Process-local event store.

    Events are copied on the way in and out so callers cannot mutate stored
    state through returned models.
    """

    def __init__(
        self, events: Iterable[Event] = (), *, setup_done: bool = True
    ) -> None:
        self._events: Dict[str, Event] = {e.id: e.model_copy(deep=True) for e in events}
        self._setup_done = setup_done
        # Read counter; lets callers observe how often the store is hit.
        self.reads = 0

    @classmethod
    def from_file(cls, path: Path) -> "InMemoryEventStore":
        """Build a store from an :class:`EventsFile` JSON document."""
        seed = EventsFile.load(path)
        logger.info(
            "store.seeded",
            extra={
                "path": str(path),
                "events": len(seed.events),
                "setup_done": seed.setup_done,
            },
        )
        return cls(seed.events, setup_done=seed.setup_done)

    async def list_events(self) -> List[Event]:
        self.reads += 1
        return [e.model_copy(deep=True) for e in self._events.values()]

    async def get_event(self, event_id: str) -> Optional[Event]:
        event = self._events.get(event_id)
        return event.model_copy(deep=True) if event else None

    async def save_event(self, event: Event) -> Event:
        self._events[event.id] = event.model_copy(deep=True)
        return event

    async def delete_event(self, event_id: str) -> bool:
        return self._events.pop(event_id, None) is not None

    async def is_setup_done(self) -> bool:
        return self._setup_done
