"""Resume emitter — stream Store contents as resumable script fragments.

The emitter produces a chain of batches. Each batch holds the entries that
are new since the previous one: settled entries not yet sent, plus a
placeholder for every pending future not yet announced. Its ``next`` entry
settles once any of the still-pending futures does, and then builds the
following batch from the Store as it is at that moment.

Each batch renders to statements against a global map-like object:

    window.snapshot=new Map();
    window.snapshot.set("a",{"kind":"value","value":1});
    window.snapshot.set("b",{"kind":"server-suspended","value":undefined})

Usage:
    async for chunk in stream_snapshot(store):
        response.write(chunk)
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import AsyncIterator

from resumex.entry import Entry, EntryKind, create_entry, resolve
from resumex.errors import ResumedError
from resumex.store import Store

DEFAULT_IDENTIFIER = "window.snapshot"

# Futures are not serializable; the client treats this as "still streaming".
PLACEHOLDER = '{"kind":"server-suspended","value":undefined}'


@dataclass
class Batch:
    items: dict[str, Entry]
    next: Entry[Batch | None]


def create_batch(
    store: Store,
    emitted: dict[str, Entry] | None = None,
    suspended: set[asyncio.Future] | None = None,
) -> Batch:
    """Collect the entries not yet emitted and chain the next batch.

    ``emitted`` maps ids to the settled Entry last sent for them,
    ``suspended`` holds the futures already sent as placeholders. Both are
    copied, so re-rendering a batch never skips what it emitted the first
    time. An id whose entry was replaced since it was sent (say, updated to a
    new future) is sent again once the replacement settles.
    """
    emitted = dict(emitted) if emitted else {}
    suspended = set(suspended) if suspended else set()
    items: dict[str, Entry] = {}
    pending: list[asyncio.Future] = []

    for id, entry in store.data.items():
        if entry.kind is EntryKind.SUSPENDED:
            pending.append(entry.value)
            if entry.value in suspended:
                continue
            suspended.add(entry.value)
        else:
            # Entries settle in place, so identity tells sent from replaced.
            if emitted.get(id) is entry:
                continue
            emitted[id] = entry
        items[id] = entry

    if not pending:
        return Batch(items, Entry.of_value(None))

    async def _next() -> Batch:
        await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
        return create_batch(store, emitted, suspended)

    return Batch(items, create_entry(_next()))


async def iter_batches(store: Store) -> AsyncIterator[Batch]:
    batch: Batch | None = create_batch(store)
    while batch is not None:
        yield batch
        batch = await resolve(batch.next)


# ─── Serialization ───────────────────────────────────────────────────────────


def _json_default(value: object) -> object:
    if isinstance(value, ResumedError):
        return {"type": value.type_name, "message": value.message}
    if isinstance(value, BaseException):
        return {"type": type(value).__name__, "message": str(value)}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dumps(value: object) -> str:
    return json.dumps(value, separators=(",", ":"), default=_json_default)


def encode_entry(entry: Entry) -> str:
    if entry.kind is EntryKind.SUSPENDED:
        return PLACEHOLDER
    return _dumps(entry.as_json())


def render_script(identifier: str, items: dict[str, Entry], *, create_map: bool = False) -> str:
    parts = []
    if create_map:
        parts.append(f"{identifier}=new Map()")
    for id, entry in items.items():
        parts.append(f"{identifier}.set({_dumps(id)},{encode_entry(entry)})")
    return ";".join(parts)


def render_script_tag(identifier: str, items: dict[str, Entry], *, create_map: bool = False) -> str:
    """render_script() wrapped in an async <script> element.

    ``<`` only occurs inside JSON strings, where ``\\u003c`` is equivalent and
    cannot close the element early.
    """
    script = render_script(identifier, items, create_map=create_map).replace("<", "\\u003c")
    return f"<script async>{script}</script>"


async def stream_snapshot(
    store: Store,
    identifier: str = DEFAULT_IDENTIFIER,
    *,
    tags: bool = False,
) -> AsyncIterator[str]:
    """Yield one script chunk per batch until no futures remain pending.

    Later batches with nothing new (a retired future whose id was replaced)
    produce no chunk.
    """
    render = render_script_tag if tags else render_script
    first = True
    async for batch in iter_batches(store):
        if first or batch.items:
            yield render(identifier, batch.items, create_map=first)
        first = False
