"""Textual integration for resumex. Opt-in — requires textual.

Binds one Store id to a widget-updating effect. The Store stays agnostic of
the host; this module owns the render guard, NoMatches handling and
cross-thread marshaling.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Callable

from textual.css.query import NoMatches

from resumex.entry import EntryKind
from resumex.lifetime import GuardRef, Strategy, subscribe_private
from resumex.store import Disposer, Store

# Open pause() scopes per app, by id(app). An app renders only at zero.
_render_holds: dict[int, int] = {}


@contextmanager
def pause(app):
    """Hold every bound render of app while its widgets are being swapped.

    Scopes nest; renders resume when the outermost one exits. Notifications
    arriving meanwhile are skipped, not queued.
    """
    key = id(app)
    _render_holds[key] = _render_holds.get(key, 0) + 1
    try:
        yield
    finally:
        remaining = _render_holds.pop(key) - 1
        if remaining:
            _render_holds[key] = remaining


def is_safe(app) -> bool:
    """May bound renders touch app's widgets right now?"""
    return app.is_running and id(app) not in _render_holds


def bind(
    app,
    store: Store,
    state_id: str,
    init: Any,
    effect: Callable[[Any], None],
    *,
    strategy: Strategy = subscribe_private,
    guard: GuardRef | None = None,
    on_error: Callable[[BaseException], None] | None = None,
) -> Disposer:
    """Render state_id into widgets through effect(value).

    The entry is resumed from the store's snapshot when possible, otherwise
    initialized from init. Every store notification re-renders; a pending
    entry re-renders once its future settles. Errors go to on_error, or are
    raised when none is given.

    Pass the same ``guard`` when remounting the same widget so the private
    strategy treats it as one lifetime. Returns the teardown for unmount.
    """
    guard = guard if guard is not None else GuardRef()
    _main = threading.get_ident()

    if strategy is subscribe_private:
        store.claim(state_id, guard)

    active = True
    waiting_on = None

    def _render() -> None:
        nonlocal waiting_on
        if not active or not is_safe(app):
            return
        entry = store.get_or_init(state_id, init)
        match entry.kind:
            case EntryKind.VALUE:
                try:
                    effect(entry.value)
                except NoMatches:
                    pass
            case EntryKind.SUSPENDED:
                # One re-render per future, however often we are notified meanwhile.
                if entry.value is not waiting_on:
                    waiting_on = entry.value
                    entry.value.add_done_callback(lambda _: _render())
            case EntryKind.ERROR:
                if on_error is None:
                    raise entry.value
                on_error(entry.value)

    def _guarded() -> None:
        if threading.get_ident() != _main:
            app.call_from_thread(_render)
        else:
            _render()

    store.restore_from_snapshot(state_id, lambda: store.get_or_init(state_id, init))
    teardown = strategy(store, state_id, guard, store.listen(state_id, _guarded))

    def _dispose() -> None:
        nonlocal active
        active = False
        teardown()

    _render()
    return _dispose
