"""Store — identifier-keyed table of Entries with change listeners.

All mutation goes through set_entry() and drop(). Notification is synchronous
with assignment; nothing is batched or coalesced here. Debouncing belongs to
the caller (see resumex.lifetime).

A Store created from a snapshot resumes server-rendered state:
restore_from_snapshot() moves entries from the snapshot into live data on
first access per id, and falls back to cold initialization otherwise.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from resumex.entry import Entry, EntryKind, create_entry
from resumex.errors import ResumeError, StateConflictError, StateUpdateError

T = TypeVar("T")

Callback = Callable[[], object]
Disposer = Callable[[], None]
Snapshot = dict[str, Entry | None]

logger = logging.getLogger("resumex.store")


class Store:
    """Identifier-keyed container of Entries with listener registry.

    ``debug`` enables owner tracking through claim(). ``strict_resume``
    makes restore_from_snapshot() raise instead of silently cold-starting
    when the snapshot or an id is missing.
    """

    def __init__(
        self,
        snapshot: Snapshot | None = None,
        *,
        debug: bool = False,
        strict_resume: bool = False,
    ) -> None:
        self._data: dict[str, Entry] = {}
        self._listeners: dict[str, set[Callback]] = {}
        self._snapshot = snapshot
        self._meta: dict[str, object] = {}
        self.debug = debug
        self.strict_resume = strict_resume

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot | None, **config: Any) -> Store:
        """Create a Store resuming from ``snapshot``.

        The dict is shared, not copied: entries arriving later in the stream
        are still picked up by ids that have not been restored yet.
        """
        return cls(snapshot, **config)

    @property
    def data(self) -> dict[str, Entry]:
        """Live entries by id. Read-only by convention, useful for debugging."""
        return self._data

    @property
    def snapshot(self) -> Snapshot | None:
        return self._snapshot

    # --- Reads ---

    def get_entry(self, id: str) -> Entry | None:
        return self._data.get(id)

    def get_snapshot(self, id: str) -> Entry | None:
        if self._snapshot is None:
            return None
        return self._snapshot.get(id)

    # --- Listeners ---

    def listen(self, id: str, callback: Callback) -> Disposer:
        """Register callback for changes to id. Returns a function that removes it."""
        self._listeners.setdefault(id, set()).add(callback)

        def _unlisten() -> None:
            listeners = self._listeners.get(id)
            if listeners is not None:
                listeners.discard(callback)
                if not listeners:
                    del self._listeners[id]

        return _unlisten

    def listener_count(self, id: str) -> int:
        return len(self._listeners.get(id, ()))

    def _notify(self, id: str) -> None:
        for callback in list(self._listeners.get(id, ())):
            callback()

    # --- Mutation ---

    def set_entry(self, id: str, entry: Entry) -> None:
        """Assign entry to id and notify listeners.

        For a suspended entry, a check runs when its future settles: if the
        slot no longer holds this exact entry, the late completion is logged
        and otherwise ignored. Raising there would never reach the host.
        """
        if entry.kind is EntryKind.SUSPENDED:

            def _verify(_future: object) -> None:
                current = self._data.get(id)
                if current is not entry:
                    logger.warning(
                        "Asynchronous state update of '%s' completed after %s.",
                        id,
                        "being replaced" if current is not None else "unmount",
                    )

            entry.value.add_done_callback(_verify)

        self._data[id] = entry
        self._notify(id)

    def drop(self, id: str) -> None:
        """Remove the state for id. Pending futures keep running but no longer apply."""
        self._meta.pop(id, None)
        self._data.pop(id, None)
        if self._snapshot is not None:
            self._snapshot.pop(id, None)
        # Listeners still get told, so "removed" differs from "no change".
        self._notify(id)

    def get_or_init(self, id: str, init: T | Callable[[], Any]) -> Entry[T]:
        """Return the entry for id, initializing it on first use.

        A callable init is invoked once; its result may be a value or an
        awaitable. Anything it raises is stored as an error entry.
        """
        entry = self._data.get(id)
        if entry is None:
            try:
                entry = create_entry(init() if callable(init) else init)
            except Exception as e:
                entry = Entry.of_error(e)
            self.set_entry(id, entry)
        return entry

    def update(self, id: str, update: T | Callable[[T], Any]) -> Entry[T]:
        """Replace a value entry with a new value, awaitable, or updater result.

        Raises StateUpdateError when the current entry is missing, suspended or
        an error. Failures inside the updater become an error entry instead.
        """
        entry = self._data.get(id)
        if entry is None or entry.kind is not EntryKind.VALUE:
            raise StateUpdateError(id, "empty" if entry is None else str(entry.kind))

        try:
            entry = create_entry(update(entry.value) if callable(update) else update)
        except Exception as e:
            entry = Entry.of_error(e)

        self.set_entry(id, entry)
        return entry

    # --- Resume ---

    def restore_from_snapshot(self, id: str, fallback: Callable[[], Entry[T]]) -> Entry:
        """Resume id from the server snapshot, or fall back to ``fallback()``.

        Restored entries move from the snapshot into live data without
        notification, since this happens before anyone listens. A ``None``
        snapshot value means the server is still computing it.
        """
        live = self._data.get(id)
        if live is not None:
            # Another consumer already restored or initialized it.
            return live

        if self._snapshot is None:
            if self.strict_resume:
                raise ResumeError("Server-snapshot is missing.")
            return fallback()

        if id not in self._snapshot:
            if self.strict_resume:
                raise ResumeError(f"Server-snapshot is missing '{id}'.")
            return fallback()

        value = self._snapshot.get(id)
        if value is None:
            return fallback()

        del self._snapshot[id]
        self._data[id] = value
        return value

    # --- Diagnostics ---

    def claim(self, id: str, owner: object) -> None:
        """Record owner as the single private consumer of id (debug stores only)."""
        if not self.debug:
            return
        current = self._meta.get(id)
        if current is None:
            self._meta[id] = owner
        elif current is not owner:
            raise StateConflictError(id)

    def __repr__(self) -> str:
        return f"Store({len(self._data)} entries, {sum(map(len, self._listeners.values()))} listeners)"
