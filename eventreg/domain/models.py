"""Domain models for events and their listings.

Stored events carry their quotas and the number of active signups per quota;
list responses expose a trimmed view of the same data.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Quota(BaseModel):
    """A signup quota of an event."""

    id: str
    title: str
    size: Optional[int] = Field(None, ge=0, description="None means unlimited")
    order: int = 0
    signup_count: int = Field(0, ge=0)


class Event(BaseModel):
    """A stored event."""

    id: str
    title: str
    slug: str
    category: str = ""
    date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    registration_start_date: Optional[datetime] = None
    registration_end_date: Optional[datetime] = None
    listed: bool = True
    draft: bool = False
    quotas: List[Quota] = Field(default_factory=list)


class EventInput(BaseModel):
    """Admin payload to create or update an event."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    category: str = ""
    date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    registration_start_date: Optional[datetime] = None
    registration_end_date: Optional[datetime] = None
    listed: bool = True
    draft: bool = True
    quotas: List[Quota] = Field(default_factory=list)


class EventListQuery(BaseModel):
    """Filters accepted by the event list endpoints."""

    category: Optional[str] = None
    since: Optional[str] = None


class QuotaListItem(BaseModel):
    """Quota summary shown in event lists."""

    id: str
    title: str
    size: Optional[int]
    signup_count: int


class UserEventListItem(BaseModel):
    """Public event list entry."""

    id: str
    title: str
    slug: str
    category: str
    date: Optional[datetime]
    end_date: Optional[datetime]
    registration_start_date: Optional[datetime]
    registration_end_date: Optional[datetime]
    quotas: List[QuotaListItem]


class AdminEventListItem(UserEventListItem):
    """Admin event list entry; also shows visibility flags."""

    draft: bool
    listed: bool
