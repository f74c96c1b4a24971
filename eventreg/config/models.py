"""Config models and loader.

This module defines the environment-driven settings for the server and the
JSON seed-file format for events. Settings are read with pydantic-settings so
``.env`` files and ``EVENTREG_``-prefixed environment variables both apply.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.models import Event


class EventsFile(BaseModel):
    """Seed data for the in-memory event store.

    Attributes
    ----------
    events: List[Event]
        Events loaded into the store at startup.
    setup_done: bool
        Whether the deployment has completed its initial setup. When false,
        public listings report that setup is needed.
    """

    events: List[Event] = Field(default_factory=list)
    setup_done: bool = True

    @staticmethod
    def load(path: Path) -> "EventsFile":
        """Load and validate a JSON seed file."""
        return EventsFile.model_validate_json(path.read_bytes())


class EnvSettings(BaseSettings):
    """Environment-driven settings and .env support.

    Attributes
    ----------
    environment: str
        One of "development", "test" or "production". Caches created without
        ``allow_testing`` are bypassed when this is "test".
    log_level: str
        Logging level name (e.g., "DEBUG", "INFO"). Defaults to "INFO".
    http_token: Optional[str]
        Bearer token required by admin endpoints. Admin auth is disabled
        when unset.
    cors_origins: str
        Comma-separated list of allowed CORS origins. Empty disables CORS.
    events_file: Optional[Path]
        JSON seed file for the in-memory event store.
    events_list_max_age_ms: int
        Reuse window for a finished public events-list query.
    events_list_max_pending_age_ms: int
        Join window for a running public events-list query.
    events_list_cache_size: int
        Number of distinct filter combinations kept in the events-list cache.
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="EVENTREG_")

    environment: Literal["development", "test", "production"] = "development"
    log_level: str = Field("INFO")
    http_token: Optional[str] = None
    cors_origins: str = ""
    events_file: Optional[Path] = None

    events_list_max_age_ms: int = Field(
        1000, ge=0, description="Reuse window for finished events-list queries"
    )
    events_list_max_pending_age_ms: int = Field(
        2000, ge=0, description="Join window for running events-list queries"
    )
    events_list_cache_size: int = Field(
        128, ge=1, description="Maximum cached events-list filter combinations"
    )

    @property
    def is_testing(self) -> bool:
        """Return True when running under the test environment."""
        return self.environment == "test"

    @property
    def cors_origin_list(self) -> List[str]:
        """Return the parsed CORS origins."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
