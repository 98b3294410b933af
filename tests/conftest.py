"""Shared fixtures."""

import pytest

import resumex.lifetime as _lifetime


class _Deferred:
    """Scheduler that holds deferred callbacks until run() is called."""

    def __init__(self):
        self.pending = []

    def __call__(self, fn):
        self.pending.append(fn)

    def run(self):
        batch = list(self.pending)
        self.pending.clear()
        for fn in batch:
            fn()


@pytest.fixture
def deferred():
    """Capture deferred drop checks instead of scheduling them on the loop."""
    scheduler = _Deferred()
    old = _lifetime._scheduler
    _lifetime.set_scheduler(scheduler)
    try:
        yield scheduler
    finally:
        _lifetime.set_scheduler(old)
