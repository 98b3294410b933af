"""Subscription strategies — when may an id's data be dropped?

Hosts tear down and immediately re-establish the same logical subscription
(double-invoked mounts, hot reload, rolled-back renders). Dropping on the
first teardown would destroy data that is about to be reused, so every drop
is deferred and re-checked once the current synchronous cycle is over.

All strategies share one signature:

    strategy(store, id, guard_ref, unsubscribe) -> disposer

``unsubscribe`` removes the host's listener; the returned disposer is what
the host calls at unmount.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from resumex.store import Disposer, Store

logger = logging.getLogger("resumex.lifetime")

Scheduler = Callable[[Callable[[], None]], object]
Strategy = Callable[[Store, str, "GuardRef", Disposer], Disposer]

# ─── Deferral ────────────────────────────────────────────────────────────────
_scheduler: Scheduler | None = None


def set_scheduler(scheduler: Scheduler | None) -> None:
    """Set the callable used to defer drop checks past the current cycle.

    Usage with Textual:
        resumex.set_scheduler(app.call_later)

    ``None`` restores the default, ``call_soon`` on the running asyncio loop.
    """
    global _scheduler
    _scheduler = scheduler


def defer(fn: Callable[[], None]) -> None:
    if _scheduler is not None:
        _scheduler(fn)
    else:
        asyncio.get_running_loop().call_soon(fn)


# ─── Guards ──────────────────────────────────────────────────────────────────


class Guard:
    """Nonce stamped into a GuardRef on subscribe. Compared by identity."""

    __slots__ = ("id",)

    def __init__(self, id: str) -> None:
        self.id = id

    def __repr__(self) -> str:
        return f"Guard({self.id!r})"


class GuardRef:
    """Holder that survives remounts of one consumer; ``current`` is the live guard."""

    __slots__ = ("current",)

    def __init__(self) -> None:
        self.current: Guard | None = None


def _once(fn: Callable[[], None]) -> Disposer:
    done = False

    def _dispose() -> None:
        nonlocal done
        if done:
            return
        done = True
        fn()

    return _dispose


# ─── Strategies ──────────────────────────────────────────────────────────────


def subscribe_private(store: Store, id: str, guard_ref: GuardRef, unsubscribe: Disposer) -> Disposer:
    """Single-owner lifetime: drop once the owner is really gone.

    A re-subscribe before the deferred check replaces the guard and so
    cancels the drop. If the owner moved to another id, the old id is always
    dropped.
    """
    guard = Guard(id)
    guard_ref.current = guard

    def _teardown() -> None:
        unsubscribe()

        def _check() -> None:
            current = guard_ref.current
            if current is None or current is guard or current.id != id:
                logger.debug("Dropping private state %r", id)
                store.drop(id)

        defer(_check)

    return _once(_teardown)


def subscribe_shared(store: Store, id: str, guard_ref: GuardRef, unsubscribe: Disposer) -> Disposer:
    """Shared lifetime: drop when the last consumer has left."""

    def _teardown() -> None:
        unsubscribe()

        def _check() -> None:
            if store.listener_count(id) == 0:
                logger.debug("Dropping shared state %r", id)
                store.drop(id)

        defer(_check)

    return _once(_teardown)


def subscribe_persistent(store: Store, id: str, guard_ref: GuardRef, unsubscribe: Disposer) -> Disposer:
    """Persistent lifetime: data lives as long as the Store."""
    return _once(unsubscribe)
