"""Keyed async memoization cache.

Wraps an async producer ``get(key)`` so that bursts of identical calls share
one in-flight computation and recent successful results are reused for a
short window. The table is bounded by ``max_size`` and evicts the entries
that were least recently inserted or refreshed.

Freshness is measured from when a computation *started*, not when it
finished, which bounds worst-case staleness by the configured window no
matter how slow the producer is. Two windows are configurable:

- ``max_pending_age_ms``: how long a still-running call may be joined.
- ``max_age_ms``: how long a successful result may be reused.

Failed computations are never reused; the next call starts a fresh attempt.

The table is only touched synchronously between awaits, so all bookkeeping
is atomic under asyncio's single-threaded event loop. The cache is not safe
to share across threads or event loops.
"""

from __future__ import annotations

import asyncio
import dataclasses
import hashlib
import logging
import time
from collections.abc import Mapping, Set
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Generic,
    Optional,
    Protocol,
    TypeVar,
)

from cachetools import FIFOCache  # type: ignore[import-untyped]
from pydantic import BaseModel

logger = logging.getLogger(__name__)

A = TypeVar("A")
R = TypeVar("R")
A_contra = TypeVar("A_contra", contravariant=True)
R_co = TypeVar("R_co", covariant=True)

_NULL_TAG = b"N"


def hash_object(value: Any) -> str:
    """Return a canonical SHA-256 hex digest for a structured key.

    Mapping-like values are visited with their field names sorted, so two
    mappings with equal contents hash identically regardless of insertion
    order. Each field name is fed before its value at every nesting level.

    Every fed token carries a kind tag and a length prefix, and containers
    are bracketed, so no two distinct keys produce the same byte stream.
    ``None`` has its own tag and never collides with the string ``"null"``.
    Scalars are fed in their ``str()`` form.
    """
    digest = hashlib.sha256()

    def feed(tag: bytes, text: str) -> None:
        data = text.encode("utf-8")
        digest.update(tag + str(len(data)).encode("ascii") + b":" + data)

    def visit(obj: Any) -> None:
        if obj is None:
            digest.update(_NULL_TAG)
            return
        if isinstance(obj, BaseModel):
            obj = obj.model_dump()
        elif dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            obj = dataclasses.asdict(obj)

        if isinstance(obj, Mapping):
            digest.update(b"M(")
            for name, item in sorted(obj.items(), key=lambda kv: str(kv[0])):
                feed(b"K", str(name))
                visit(item)
            digest.update(b")")
        elif isinstance(obj, (list, tuple)):
            # Sequences are records keyed by their index
            digest.update(b"L(")
            for index, item in enumerate(obj):
                feed(b"I", str(index))
                visit(item)
            digest.update(b")")
        elif isinstance(obj, Set):
            digest.update(b"T(")
            for item in sorted(obj, key=str):
                visit(item)
            digest.update(b")")
        else:
            feed(b"S", str(obj))

    visit(value)
    return digest.hexdigest()


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class EntryState(Enum):
    """Lifecycle of a cached computation."""

    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class Ongoing(Generic[R]):
    """One key's in-flight or settled computation.

    ``created`` is captured when the computation is started and never
    changes. ``state`` moves from ``RUNNING`` to exactly one terminal state.
    """

    task: asyncio.Future[R]
    created: float
    state: EntryState = field(default=EntryState.RUNNING)

    def settle(self, task: asyncio.Future[R]) -> None:
        """Record the terminal state once the shared task finishes."""
        if self.state is not EntryState.RUNNING:
            return
        if task.cancelled() or task.exception() is not None:
            self.state = EntryState.ERROR
        else:
            self.state = EntryState.SUCCESS


class _EntryTable(FIFOCache):
    """Insertion-ordered table; reads never change the eviction order."""

    def __init__(self, maxsize: int, name: str) -> None:
        super().__init__(maxsize=maxsize)
        self.name = name

    def popitem(self):
        key, entry = super().popitem()
        logger.debug(
            "cache.evict",
            extra={"cache": self.name, "key": key[:12], "state": entry.state.value},
        )
        return key, entry


class CachedFunction(Protocol[A_contra, R_co]):
    """An async callable over one key with manual cache-busting."""

    async def __call__(self, key: A_contra) -> R_co:  # pragma: no cover
        ...

    def invalidate(self, key: Optional[A_contra] = None) -> None:  # pragma: no cover
        ...


class CachedGet(Generic[A, R]):
    """Deduplicating, result-reusing wrapper around an async producer.

    Use :func:`create_cache` rather than constructing this directly.
    """

    def __init__(
        self,
        get: Callable[[A], Awaitable[R]],
        *,
        max_age_ms: float,
        max_pending_age_ms: float,
        max_size: int,
        clock: Callable[[], float],
        name: str,
    ) -> None:
        self._get = get
        self.max_age_ms = max_age_ms
        self.max_pending_age_ms = max_pending_age_ms
        self.max_size = max_size
        self.name = name
        self._clock = clock
        self._table: _EntryTable = _EntryTable(max_size, name)

    def __len__(self) -> int:
        return len(self._table)

    def _reusable(self, entry: Ongoing[R], now: float) -> bool:
        age = now - entry.created
        if entry.state is EntryState.RUNNING and entry.task.done():
            # Done callbacks run one loop iteration after the task finishes
            entry.settle(entry.task)
        if entry.state is EntryState.RUNNING:
            return age < self.max_pending_age_ms
        if entry.state is EntryState.SUCCESS:
            return age < self.max_age_ms
        return False

    def _lookup_or_start(self, key: A) -> Ongoing[R]:
        # No awaits in here: lookup, insert and eviction happen atomically.
        digest = hash_object(key)
        now = self._clock()
        current: Optional[Ongoing[R]] = self._table.get(digest)
        if current is not None and self._reusable(current, now):
            logger.debug(
                "cache.hit",
                extra={
                    "cache": self.name,
                    "key": digest[:12],
                    "state": current.state.value,
                    "age_ms": round(now - current.created, 1),
                },
            )
            return current

        task = asyncio.ensure_future(self._get(key))
        entry: Ongoing[R] = Ongoing(task=task, created=now)
        entry.task.add_done_callback(entry.settle)
        # Delete, then set, so a refreshed key moves to the most recent end.
        self._table.pop(digest, None)
        self._table[digest] = entry
        logger.debug(
            "cache.miss",
            extra={
                "cache": self.name,
                "key": digest[:12],
                "replaced": current.state.value if current is not None else None,
                "size": len(self._table),
            },
        )
        return entry

    async def __call__(self, key: A) -> R:
        entry = self._lookup_or_start(key)
        # Shield so one cancelled caller does not cancel the shared computation.
        return await asyncio.shield(entry.task)

    def invalidate(self, key: Optional[A] = None) -> None:
        """Drop one key's entry, or every entry when ``key`` is None.

        Running computations are not interrupted; callers already awaiting
        them still receive their result. Only future lookups are affected.
        """
        if key is None:
            dropped = len(self._table)
            self._table = _EntryTable(self.max_size, self.name)
            logger.debug(
                "cache.invalidate", extra={"cache": self.name, "dropped": dropped}
            )
            return
        digest = hash_object(key)
        removed = self._table.pop(digest, None)
        logger.debug(
            "cache.invalidate",
            extra={
                "cache": self.name,
                "key": digest[:12],
                "dropped": 0 if removed is None else 1,
            },
        )


class PassthroughGet(Generic[A, R]):
    """Uncached stand-in used when caching is disabled for testing."""

    def __init__(self, get: Callable[[A], Awaitable[R]], name: str) -> None:
        self._get = get
        self.name = name

    def __len__(self) -> int:
        return 0

    async def __call__(self, key: A) -> R:
        return await self._get(key)

    def invalidate(self, key: Optional[A] = None) -> None:
        _ = key


def _resolve_testing(testing: Optional[bool]) -> bool:
    if testing is not None:
        return testing
    from ..config.models import EnvSettings

    return EnvSettings().is_testing


def create_cache(
    get: Callable[[A], Awaitable[R]],
    *,
    max_age_ms: float,
    max_pending_age_ms: Optional[float] = None,
    max_size: int = 128,
    allow_testing: bool = False,
    testing: Optional[bool] = None,
    clock: Optional[Callable[[], float]] = None,
    name: Optional[str] = None,
) -> CachedGet[A, R] | PassthroughGet[A, R]:
    """Wrap the async producer ``get`` in a cache.

    Parameters
    ----------
    get : Callable[[A], Awaitable[R]]
        The producer. It receives the original, un-hashed key.
    max_age_ms : float
        Milliseconds since the start of a call during which its successful
        result is reused.
    max_pending_age_ms : float, optional
        Milliseconds since the start of a call during which it may be joined
        while still running. Defaults to ``max_age_ms``.
    max_size : int
        Maximum number of keys kept. Least recently inserted keys are evicted.
    allow_testing : bool
        Keep caching enabled even when running in testing mode.
    testing : bool, optional
        Testing-mode flag. Read once from ``EnvSettings`` when omitted.
    clock : Callable[[], float], optional
        Millisecond clock, monotonic by default.
    name : str, optional
        Label used in log records. Defaults to the producer's name.

    Raises
    ------
    ValueError
        If a window is negative or ``max_size`` is below 1.
    """
    if max_pending_age_ms is None:
        max_pending_age_ms = max_age_ms
    if max_age_ms < 0 or max_pending_age_ms < 0:
        raise ValueError("cache ages must be non-negative")
    if max_size < 1:
        raise ValueError(f"max_size must be at least 1, got {max_size}")

    label = name or getattr(get, "__name__", "cache")
    if _resolve_testing(testing) and not allow_testing:
        logger.debug("cache.disabled_in_testing", extra={"cache": label})
        return PassthroughGet(get, label)

    return CachedGet(
        get,
        max_age_ms=max_age_ms,
        max_pending_age_ms=max_pending_age_ms,
        max_size=max_size,
        clock=clock or _monotonic_ms,
        name=label,
    )


def cached(
    *,
    max_age_ms: float,
    max_pending_age_ms: Optional[float] = None,
    max_size: int = 128,
    allow_testing: bool = False,
    testing: Optional[bool] = None,
    clock: Optional[Callable[[], float]] = None,
) -> Callable[
    [Callable[[A], Awaitable[R]]], CachedGet[A, R] | PassthroughGet[A, R]
]:
    """Decorator form of :func:`create_cache`."""

    def decorator(
        func: Callable[[A], Awaitable[R]],
    ) -> CachedGet[A, R] | PassthroughGet[A, R]:
        return create_cache(
            func,
            max_age_ms=max_age_ms,
            max_pending_age_ms=max_pending_age_ms,
            max_size=max_size,
            allow_testing=allow_testing,
            testing=testing,
            clock=clock,
        )

    return decorator
