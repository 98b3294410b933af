"""Entries — the tagged state of one identifier's data.

An Entry is exactly one of:
- value: resolved data ready for consumption.
- suspended: a pending future. When it settles, the *same* Entry object is
  rewritten to value/error, so anyone holding a reference sees the outcome
  without going through the Store.
- error: a terminal failure, raised from initialization/update or from the
  future.
"""

from __future__ import annotations

import asyncio
import inspect
from enum import StrEnum
from typing import Any, Generic, TypeVar

from resumex.errors import ResumedError, Suspension

T = TypeVar("T")


class EntryKind(StrEnum):
    VALUE = "value"
    SUSPENDED = "suspended"
    ERROR = "error"


class Entry(Generic[T]):
    """Mutable cell holding a kind and its payload.

    Entries compare by identity only. A Store detects replacement with ``is``,
    while settlement of a suspended entry mutates it in place.
    """

    __slots__ = ("kind", "value")

    def __init__(self, kind: EntryKind, value: Any) -> None:
        self.kind = kind
        self.value = value

    @classmethod
    def of_value(cls, value: T) -> Entry[T]:
        return cls(EntryKind.VALUE, value)

    @classmethod
    def of_error(cls, error: BaseException) -> Entry[T]:
        return cls(EntryKind.ERROR, error)

    def as_json(self) -> dict[str, Any]:
        return {"kind": str(self.kind), "value": self.value}

    def __repr__(self) -> str:
        return f"Entry({self.kind}, {self.value!r})"


def is_awaitable(value: object) -> bool:
    return inspect.isawaitable(value)


def create_entry(value: Any) -> Entry:
    """Wrap a plain value or an awaitable in an Entry.

    Plain values become a value entry directly, so initialization costs no
    extra notification cycle. Awaitables are scheduled with
    ``asyncio.ensure_future`` (coroutines need a running loop) and produce a
    suspended entry that rewrites itself once the future settles.
    """
    if not is_awaitable(value):
        return Entry(EntryKind.VALUE, value)

    future = asyncio.ensure_future(value)
    entry: Entry = Entry(EntryKind.SUSPENDED, future)

    def _settle(fut: asyncio.Future) -> None:
        if fut.cancelled():
            entry.kind = EntryKind.ERROR
            entry.value = asyncio.CancelledError()
            return
        # exception() marks the error as retrieved; the future stays failed
        # for every other awaiter.
        error = fut.exception()
        if error is not None:
            entry.kind = EntryKind.ERROR
            entry.value = error
        else:
            entry.kind = EntryKind.VALUE
            entry.value = fut.result()

    if future.done():
        _settle(future)
    else:
        future.add_done_callback(_settle)
    return entry


def unwrap(entry: Entry[T]) -> T:
    """Return the value of a value entry, otherwise raise.

    Suspended entries raise Suspension with the pending future. Error entries
    raise their stored exception.
    """
    match entry.kind:
        case EntryKind.VALUE:
            return entry.value
        case EntryKind.SUSPENDED:
            raise Suspension(entry.value)
        case EntryKind.ERROR:
            error = entry.value
            if isinstance(error, BaseException):
                raise error
            raise ResumedError.from_json(error)
    raise AssertionError(f"Unknown entry kind {entry.kind!r}")


async def resolve(entry: Entry[T]) -> T:
    """Wait for a suspended entry to settle, then unwrap it."""
    if entry.kind is EntryKind.SUSPENDED:
        # The future may have failed; unwrap() re-raises from the entry instead.
        await asyncio.wait([entry.value])
    return unwrap(entry)
