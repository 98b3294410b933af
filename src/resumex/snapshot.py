"""Client-side snapshot loading — the inverse of resumex.resume.

Executes the small statement language the emitter writes against a plain
dict, so a client process can build a Snapshot without a JavaScript runtime:

    G=new Map()                 clears the snapshot
    G.set(<json id>,<entry>)    assigns one id

Placeholders become ``None`` (still streaming), errors become
ResumedError entries. Hand the dict to Store.from_snapshot(); chunks applied
afterwards are still seen by ids not restored yet.
"""

from __future__ import annotations

import json
from typing import Iterable

from resumex.entry import Entry, EntryKind
from resumex.errors import ResumedError, SnapshotFormatError
from resumex.resume import DEFAULT_IDENTIFIER, PLACEHOLDER
from resumex.store import Snapshot

_decoder = json.JSONDecoder()


def decode_entry(payload: object) -> Entry | None:
    if not isinstance(payload, dict):
        raise ValueError(f"Snapshot entry must be an object, got {type(payload).__name__}")
    match payload.get("kind"):
        case EntryKind.VALUE:
            return Entry.of_value(payload.get("value"))
        case EntryKind.ERROR:
            return Entry.of_error(ResumedError.from_json(payload.get("value")))
        case "server-suspended":
            return None
        case kind:
            raise ValueError(f"Unknown snapshot entry kind {kind!r}")


def _skip_separators(script: str, pos: int) -> int:
    while pos < len(script) and (script[pos] == ";" or script[pos].isspace()):
        pos += 1
    return pos


def _expect(script: str, pos: int, token: str) -> int:
    if not script.startswith(token, pos):
        raise SnapshotFormatError(f"Expected {token!r}", offset=pos)
    return pos + len(token)


def apply_script(snapshot: Snapshot, script: str, identifier: str = DEFAULT_IDENTIFIER) -> Snapshot:
    """Apply one emitted script chunk to snapshot in place and return it."""
    create = f"{identifier}=new Map()"
    assign = f"{identifier}.set("
    pos = _skip_separators(script, 0)

    while pos < len(script):
        if script.startswith(create, pos):
            snapshot.clear()
            pos += len(create)
        elif script.startswith(assign, pos):
            pos += len(assign)
            try:
                id, pos = _decoder.raw_decode(script, pos)
            except json.JSONDecodeError as e:
                raise SnapshotFormatError(f"Invalid id: {e.msg}", offset=e.pos) from e
            if not isinstance(id, str):
                raise SnapshotFormatError("Snapshot id must be a string", offset=pos)
            pos = _expect(script, pos, ",")
            if script.startswith(PLACEHOLDER, pos):
                entry = None
                pos += len(PLACEHOLDER)
            else:
                start = pos
                try:
                    payload, pos = _decoder.raw_decode(script, pos)
                    entry = decode_entry(payload)
                except json.JSONDecodeError as e:
                    raise SnapshotFormatError(f"Invalid entry: {e.msg}", offset=e.pos) from e
                except ValueError as e:
                    raise SnapshotFormatError(str(e), offset=start) from e
            pos = _expect(script, pos, ")")
            snapshot[id] = entry
        else:
            raise SnapshotFormatError("Unexpected statement", offset=pos)
        pos = _skip_separators(script, pos)

    return snapshot


def load_snapshot(chunks: Iterable[str], identifier: str = DEFAULT_IDENTIFIER) -> Snapshot:
    """Build a Snapshot from every chunk of a finished (or partial) stream."""
    snapshot: Snapshot = {}
    for chunk in chunks:
        apply_script(snapshot, chunk, identifier)
    return snapshot
