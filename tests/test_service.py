"""Tests for the event service and its events-list cache."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from eventreg.config.models import EnvSettings
from eventreg.domain.models import Event, EventInput, EventListQuery
from eventreg.domain.service import EventNotFound, EventService, InitialSetupNeeded
from eventreg.stores import InMemoryEventStore
from eventreg.utils.cache import CachedGet, PassthroughGet


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _event(event_id: str, category: str = "social", days: int = 5) -> Event:
    return Event(
        id=event_id,
        title=event_id.title(),
        slug=event_id,
        category=category,
        date=datetime.now(timezone.utc) + timedelta(days=days),
    )


@pytest.fixture
def store():
    return InMemoryEventStore([_event("alpha"), _event("beta", category="study")])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(store, clock):
    return EventService(store, testing=False, clock=clock)


@pytest.mark.asyncio
async def test_concurrent_identical_lists_hit_store_once(service, store):
    query = EventListQuery(category="social")
    first, second = await asyncio.gather(
        service.events_list_for_user(query),
        service.events_list_for_user(query),
    )
    assert [e.id for e in first] == ["alpha"]
    assert first == second
    assert store.reads == 1


@pytest.mark.asyncio
async def test_distinct_filters_are_cached_separately(service, store):
    await service.events_list_for_user(EventListQuery(category="social"))
    await service.events_list_for_user(EventListQuery(category="study"))
    await service.events_list_for_user(EventListQuery(category="social"))
    assert store.reads == 2
    assert len(service.events_list_cache) == 2


@pytest.mark.asyncio
async def test_list_is_refetched_after_max_age(service, store, clock):
    await service.events_list_for_user(EventListQuery())
    clock.now = 999
    await service.events_list_for_user(EventListQuery())
    assert store.reads == 1
    clock.now = 1000
    await service.events_list_for_user(EventListQuery())
    assert store.reads == 2


@pytest.mark.asyncio
async def test_writes_invalidate_the_list_cache(service, store):
    await service.events_list_for_user(EventListQuery())

    created = await service.create_event(
        EventInput(
            title="Gala",
            slug="gala",
            draft=False,
            date=datetime.now(timezone.utc) + timedelta(days=30),
        )
    )
    items = await service.events_list_for_user(EventListQuery())
    assert created.id in [e.id for e in items]
    assert store.reads == 2

    await service.update_event(
        created.id,
        EventInput(title="Gala night", slug="gala", draft=False, date=created.date),
    )
    items = await service.events_list_for_user(EventListQuery())
    assert "Gala night" in [e.title for e in items]

    await service.delete_event(created.id)
    items = await service.events_list_for_user(EventListQuery())
    assert created.id not in [e.id for e in items]
    assert store.reads == 4


@pytest.mark.asyncio
async def test_drafts_are_not_listed_publicly(service):
    created = await service.create_event(
        EventInput(
            title="Draft", slug="d", date=datetime.now(timezone.utc) + timedelta(days=1)
        )
    )
    items = await service.events_list_for_user(EventListQuery())
    assert created.id not in [e.id for e in items]
    admin = await service.events_list_for_admin(EventListQuery())
    assert created.id in [e.id for e in admin]


@pytest.mark.asyncio
async def test_admin_list_is_never_cached(service, store):
    await service.events_list_for_admin(EventListQuery())
    await service.events_list_for_admin(EventListQuery())
    assert store.reads == 2


@pytest.mark.asyncio
async def test_unknown_event_raises(service):
    with pytest.raises(EventNotFound):
        await service.get_event("nope")
    with pytest.raises(EventNotFound):
        await service.update_event("nope", EventInput(title="x", slug="x"))
    with pytest.raises(EventNotFound):
        await service.delete_event("nope")


@pytest.mark.asyncio
async def test_setup_needed_before_public_list(clock):
    service = EventService(
        InMemoryEventStore(setup_done=False), testing=False, clock=clock
    )
    with pytest.raises(InitialSetupNeeded):
        await service.events_list_for_user(EventListQuery())


@pytest.mark.asyncio
async def test_testing_environment_bypasses_list_cache(store):
    service = EventService.from_settings(EnvSettings(environment="test"), store)
    assert isinstance(service.events_list_cache, PassthroughGet)
    await service.events_list_for_user(EventListQuery())
    await service.events_list_for_user(EventListQuery())
    assert store.reads == 2


def test_from_settings_uses_configured_windows(store):
    settings = EnvSettings(
        environment="production",
        events_list_max_age_ms=250,
        events_list_max_pending_age_ms=4000,
        events_list_cache_size=8,
    )
    service = EventService.from_settings(settings, store)
    cache = service.events_list_cache
    assert isinstance(cache, CachedGet)
    assert (cache.max_age_ms, cache.max_pending_age_ms, cache.max_size) == (
        250,
        4000,
        8,
    )
