"""Listing rules for the public and admin event lists."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

from .models import (
    AdminEventListItem,
    Event,
    EventListQuery,
    QuotaListItem,
    UserEventListItem,
)

logger = logging.getLogger(__name__)

# Events stay in the default public list for this long after they close or end.
RECENT_WINDOW = timedelta(days=7)

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_since(since: Optional[str]) -> Optional[datetime]:
    """Parse the ``since`` filter; unparseable values are ignored."""
    if not since:
        return None
    try:
        return _as_utc(datetime.fromisoformat(since))
    except ValueError:
        # Fall back to the default recent window instead of an empty filter
        logger.info("events.list.invalid_since", extra={"since": since})
        return None


def _is_recent(event: Event, cutoff: datetime) -> bool:
    for value in (event.registration_end_date, event.date, event.end_date):
        if value is not None and _as_utc(value) > cutoff:
            return True
    return False


def event_order_key(event: Event) -> Tuple[bool, datetime, datetime, str]:
    """Sort key: undated events first, then date, registration end, title."""
    date = _as_utc(event.date) if event.date else None
    reg_end = (
        _as_utc(event.registration_end_date)
        if event.registration_end_date
        else _FAR_FUTURE
    )
    return (date is not None, date or _FAR_FUTURE, reg_end, event.title)


def _quota_items(event: Event) -> List[QuotaListItem]:
    quotas = sorted(event.quotas, key=lambda q: q.order)
    return [
        QuotaListItem(id=q.id, title=q.title, size=q.size, signup_count=q.signup_count)
        for q in quotas
    ]


def filter_user_events(
    events: Iterable[Event],
    query: EventListQuery,
    *,
    now: Optional[datetime] = None,
) -> List[UserEventListItem]:
    """Select and order the events visible in the public list.

    Only listed, non-draft events are shown. With a valid ``since`` the list
    holds events ending on or after it; otherwise it holds events whose
    registration, start or end lies within the recent window or later.
    """
    now = _as_utc(now) if now else datetime.now(timezone.utc)
    since = parse_since(query.since)
    cutoff = now - RECENT_WINDOW

    selected: List[Event] = []
    for event in events:
        if not event.listed or event.draft:
            continue
        if query.category and event.category != query.category:
            continue
        if since is not None:
            if event.end_date is None or _as_utc(event.end_date) < since:
                continue
        elif not _is_recent(event, cutoff):
            continue
        selected.append(event)

    selected.sort(key=event_order_key)
    return [
        UserEventListItem(
            id=e.id,
            title=e.title,
            slug=e.slug,
            category=e.category,
            date=e.date,
            end_date=e.end_date,
            registration_start_date=e.registration_start_date,
            registration_end_date=e.registration_end_date,
            quotas=_quota_items(e),
        )
        for e in selected
    ]


def filter_admin_events(
    events: Iterable[Event], query: EventListQuery
) -> List[AdminEventListItem]:
    """Admin list: every event, including drafts and unlisted ones."""
    selected = [
        e for e in events if not query.category or e.category == query.category
    ]
    selected.sort(key=event_order_key)
    return [
        AdminEventListItem(
            id=e.id,
            title=e.title,
            slug=e.slug,
            category=e.category,
            date=e.date,
            end_date=e.end_date,
            registration_start_date=e.registration_start_date,
            registration_end_date=e.registration_end_date,
            quotas=_quota_items(e),
            draft=e.draft,
            listed=e.listed,
        )
        for e in selected
    ]
