"""Tests for client-side snapshot loading and full resume round trips."""

import asyncio

import pytest

from resumex import (
    EntryKind,
    ResumedError,
    SnapshotFormatError,
    Store,
    apply_script,
    load_snapshot,
    stream_snapshot,
    unwrap,
)


class TestApplyScript:
    def test_creates_map(self):
        snapshot = {"stale": None}
        apply_script(snapshot, "window.snapshot=new Map()")
        assert snapshot == {}

    def test_value_and_placeholder(self):
        snapshot = apply_script(
            {},
            'window.snapshot=new Map();'
            'window.snapshot.set("a",{"kind":"value","value":{"n":[1,2]}});'
            'window.snapshot.set("b",{"kind":"server-suspended","value":undefined})',
        )
        assert snapshot["a"].kind is EntryKind.VALUE
        assert snapshot["a"].value == {"n": [1, 2]}
        assert "b" in snapshot
        assert snapshot["b"] is None

    def test_later_chunk_overwrites_placeholder(self):
        snapshot = load_snapshot(
            [
                'G=new Map();G.set("b",{"kind":"server-suspended","value":undefined})',
                'G.set("b",{"kind":"value","value":"done"})',
            ],
            identifier="G",
        )
        assert unwrap(snapshot["b"]) == "done"

    def test_error_entry(self):
        snapshot = apply_script({}, 'G.set("x",{"kind":"error","value":{"type":"ValueError","message":"asdf"}})', "G")
        entry = snapshot["x"]
        assert entry.kind is EntryKind.ERROR
        assert isinstance(entry.value, ResumedError)
        assert entry.value.type_name == "ValueError"
        with pytest.raises(ResumedError, match="asdf"):
            unwrap(entry)

    def test_semicolons_inside_strings(self):
        snapshot = apply_script({}, 'G.set("a;b",{"kind":"value","value":"x);y"})', "G")
        assert unwrap(snapshot["a;b"]) == "x);y"

    def test_escaped_markup(self):
        snapshot = apply_script({}, 'G.set("a",{"kind":"value","value":"\\u003c/script>"})', "G")
        assert unwrap(snapshot["a"]) == "</script>"

    def test_unknown_statement(self):
        with pytest.raises(SnapshotFormatError) as info:
            apply_script({}, "alert(1)", "G")
        assert info.value.offset == 0

    def test_unknown_kind(self):
        with pytest.raises(SnapshotFormatError, match="Unknown snapshot entry kind"):
            apply_script({}, 'G.set("a",{"kind":"mystery","value":1})', "G")

    def test_non_string_id(self):
        with pytest.raises(SnapshotFormatError, match="must be a string"):
            apply_script({}, 'G.set(1,{"kind":"value","value":1})', "G")


class TestRoundTrip:
    @pytest.mark.asyncio
    async def test_settled_values_resume_without_init(self):
        server = Store()
        originals = {"user": {"name": "ada"}, "count": 3, "tags": ["a", "b"], "empty": None}
        for id, value in originals.items():
            server.get_or_init(id, value)

        chunks = [chunk async for chunk in stream_snapshot(server)]
        client = Store.from_snapshot(load_snapshot(chunks))

        for id, value in originals.items():
            entry = client.restore_from_snapshot(id, lambda: pytest.fail("initializer invoked"))
            assert unwrap(entry) == value

    @pytest.mark.asyncio
    async def test_async_values_resume(self):
        server = Store()

        async def load():
            await asyncio.sleep(0)
            return "fetched"

        server.get_or_init("page", load)
        chunks = [chunk async for chunk in stream_snapshot(server)]
        assert len(chunks) == 2

        client = Store.from_snapshot(load_snapshot(chunks))
        assert unwrap(client.restore_from_snapshot("page", lambda: pytest.fail("initializer invoked"))) == "fetched"

    @pytest.mark.asyncio
    async def test_partial_stream_falls_back(self):
        server = Store()
        p = asyncio.get_running_loop().create_future()
        server.get_or_init("slow", p)
        server.get_or_init("fast", 1)

        stream = stream_snapshot(server)
        snapshot = load_snapshot([await anext(stream)])
        client = Store.from_snapshot(snapshot)

        assert unwrap(client.restore_from_snapshot("fast", lambda: pytest.fail("initializer invoked"))) == 1
        cold = client.restore_from_snapshot("slow", lambda: client.get_or_init("slow", "cold"))
        assert unwrap(cold) == "cold"

        p.set_result("warm")
        rest = [chunk async for chunk in stream]
        assert rest == ['window.snapshot.set("slow",{"kind":"value","value":"warm"})']
