"""Tests for public and admin event listing rules."""

from __future__ import annotations

from datetime import timedelta

from eventreg.domain.listing import (
    filter_admin_events,
    filter_user_events,
    parse_since,
)
from eventreg.domain.models import EventListQuery


def _ids(items):
    return [i.id for i in items]


def test_user_list_default_window_and_order(sample_events, now):
    items = filter_user_events(sample_events, EventListQuery(), now=now)
    # Undated first, then by date; old, draft and unlisted events are hidden
    assert _ids(items) == ["undated", "recent", "upcoming"]


def test_user_list_quotas_sorted_with_counts(sample_events, now):
    items = filter_user_events(sample_events, EventListQuery(), now=now)
    upcoming = items[-1]
    assert [q.id for q in upcoming.quotas] == ["q1", "q2"]
    assert upcoming.quotas[0].signup_count == 12
    assert upcoming.quotas[1].size == 10


def test_user_list_category_filter(sample_events, now):
    items = filter_user_events(
        sample_events, EventListQuery(category="social"), now=now
    )
    assert _ids(items) == ["upcoming"]


def test_user_list_since_filters_on_end_date(sample_events, now):
    since = (now - timedelta(days=2, hours=12)).isoformat()
    items = filter_user_events(sample_events, EventListQuery(since=since), now=now)
    assert _ids(items) == ["recent"]


def test_user_list_since_far_past_includes_old_events(sample_events, now):
    since = (now - timedelta(days=365)).isoformat()
    items = filter_user_events(sample_events, EventListQuery(since=since), now=now)
    assert _ids(items) == ["old", "recent"]


def test_invalid_since_falls_back_to_default_window(sample_events, now):
    items = filter_user_events(
        sample_events, EventListQuery(since="not-a-date"), now=now
    )
    assert _ids(items) == ["undated", "recent", "upcoming"]


def test_parse_since_naive_is_utc():
    parsed = parse_since("2024-01-01T10:00:00")
    assert parsed is not None
    assert parsed.utcoffset() == timedelta(0)
    assert parse_since("") is None
    assert parse_since(None) is None


def test_admin_list_shows_everything(sample_events):
    items = filter_admin_events(sample_events, EventListQuery())
    assert _ids(items) == ["undated", "old", "recent", "draft", "unlisted", "upcoming"]
    by_id = {i.id: i for i in items}
    assert by_id["draft"].draft is True
    assert by_id["unlisted"].listed is False


def test_admin_list_category(sample_events):
    items = filter_admin_events(sample_events, EventListQuery(category="social"))
    assert _ids(items) == ["old", "draft", "unlisted", "upcoming"]
