"""resumex: suspendable, resumable async state keyed by identifier."""

from importlib.metadata import version as _version

__version__ = _version("resumex")

from resumex.entry import Entry, EntryKind, create_entry, unwrap, resolve
from resumex.errors import (
    ResumexError,
    StateUpdateError,
    StateConflictError,
    ResumeError,
    SnapshotFormatError,
    ResumedError,
    Suspension,
)
from resumex.store import Store, Snapshot
from resumex.lifetime import (
    Guard,
    GuardRef,
    set_scheduler,
    subscribe_private,
    subscribe_shared,
    subscribe_persistent,
)
from resumex.resume import Batch, create_batch, iter_batches, render_script, stream_snapshot
from resumex.snapshot import apply_script, load_snapshot
# textual NOT auto-imported, opt-in only

__all__ = [
    "Entry",
    "EntryKind",
    "create_entry",
    "unwrap",
    "resolve",
    "ResumexError",
    "StateUpdateError",
    "StateConflictError",
    "ResumeError",
    "SnapshotFormatError",
    "ResumedError",
    "Suspension",
    "Store",
    "Snapshot",
    "Guard",
    "GuardRef",
    "set_scheduler",
    "subscribe_private",
    "subscribe_shared",
    "subscribe_persistent",
    "Batch",
    "create_batch",
    "iter_batches",
    "render_script",
    "stream_snapshot",
    "apply_script",
    "load_snapshot",
]
