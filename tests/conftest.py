"""Pytest configuration for test suite.

Ensures the project root is on ``sys.path`` so ``import eventreg`` resolves
to the local sources regardless of the working directory pytest chooses,
and provides shared event fixtures.
"""

from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


def _ensure_project_root_on_syspath() -> None:
    project_root = Path(__file__).resolve().parents[1]
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        # Prepend to prefer local sources over site-packages
        sys.path.insert(0, project_root_str)


_ensure_project_root_on_syspath()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep host EVENTREG_* variables out of settings built during tests."""
    for name in list(os.environ):
        if name.startswith("EVENTREG_"):
            monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for listing rules."""
    return datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_events(now):
    """A mix of upcoming, recent, old, draft and unlisted events."""
    from eventreg.domain.models import Event, Quota

    return [
        Event(
            id="upcoming",
            title="Sauna evening",
            slug="sauna",
            category="social",
            date=now + timedelta(days=10),
            registration_end_date=now + timedelta(days=5),
            quotas=[
                Quota(id="q2", title="Guests", size=10, order=1, signup_count=2),
                Quota(id="q1", title="Members", size=40, order=0, signup_count=12),
            ],
        ),
        Event(
            id="undated",
            title="Board applications",
            slug="board",
            category="guild",
            registration_end_date=now + timedelta(days=20),
        ),
        Event(
            id="recent",
            title="Excursion",
            slug="excursion",
            category="study",
            date=now - timedelta(days=3),
            end_date=now - timedelta(days=2),
        ),
        Event(
            id="old",
            title="Spring party",
            slug="spring",
            category="social",
            date=now - timedelta(days=60),
            end_date=now - timedelta(days=59),
            registration_end_date=now - timedelta(days=61),
        ),
        Event(
            id="draft",
            title="Secret",
            slug="secret",
            category="social",
            date=now + timedelta(days=3),
            draft=True,
        ),
        Event(
            id="unlisted",
            title="Hidden",
            slug="hidden",
            category="social",
            date=now + timedelta(days=4),
            listed=False,
        ),
    ]
