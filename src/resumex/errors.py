"""Exception hierarchy for resumex.

Misuse errors (update on a non-value, competing owners, strict resume misses)
derive from ResumexError and are raised synchronously. Suspension is not an
error: it is the signal a host catches to wait for a pending entry.
"""

from __future__ import annotations

import asyncio


class ResumexError(Exception):
    """Base exception for all resumex errors."""


class StateUpdateError(ResumexError):
    """update() was called on an id whose entry is not a value."""

    def __init__(self, id: str, state: str) -> None:
        self.id = id
        self.state = state
        super().__init__(f"State update of '{id}' requires a value (was {state}).")


class StateConflictError(ResumexError):
    """Two independent owners attached to the same private id (debug stores only)."""

    def __init__(self, id: str) -> None:
        self.id = id
        super().__init__(f"State '{id}' is already mounted in another component.")


class ResumeError(ResumexError):
    """A strict store could not find server state to resume from."""


class SnapshotFormatError(ResumexError):
    """A resume script contained a statement outside the snapshot language."""

    def __init__(self, message: str, *, offset: int) -> None:
        self.offset = offset
        super().__init__(f"{message} at offset {offset}")


class ResumedError(Exception):
    """An error entry restored from a snapshot.

    The original exception does not survive serialization; only its class
    name and message do.
    """

    def __init__(self, message: str, *, type_name: str | None = None) -> None:
        self.type_name = type_name
        self.message = message
        super().__init__(message)

    @classmethod
    def from_json(cls, payload: object) -> ResumedError:
        if isinstance(payload, dict):
            return cls(str(payload.get("message", "")), type_name=payload.get("type"))
        return cls("" if payload is None else str(payload))

    def __repr__(self) -> str:
        return f"ResumedError({self.type_name or 'Exception'}: {self.message!r})"


class Suspension(Exception):
    """Raised by unwrap() while an entry is still pending.

    Hosts catch it and wait on ``future`` before rendering again.
    """

    def __init__(self, future: asyncio.Future) -> None:
        self.future = future
        super().__init__("State is suspended on a pending future")
