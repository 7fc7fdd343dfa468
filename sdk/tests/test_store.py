"""Tests for loading, appending and flushing cassettes."""

import os
import threading
from datetime import datetime, timezone

import pytest

from rewind.errors import CassetteFormatError, PersistenceError
from rewind.format import BinaryCodec
from rewind.models import Exchange, RequestDescriptor, ResponseDescriptor
from rewind.store import RecordStore, load_cassette


def _exchange(n: int) -> Exchange:
    return Exchange(
        RequestDescriptor("GET", f"https://example.com/{n}", "", {"Accept": ("*/*",)}),
        ResponseDescriptor(200, "OK", {"X-N": (str(n),)}, f"body {n}"),
        datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def _seed(path, *exchanges):
    store = RecordStore.open(path)
    for exchange in exchanges:
        store.append(exchange)
    store.flush()


def test_missing_file_is_empty(tmp_path):
    cassette = load_cassette(tmp_path / "none.rewind")
    assert len(cassette) == 0
    assert cassette.created_at is None


def test_zero_length_file_is_empty(tmp_path):
    path = tmp_path / "empty.rewind"
    path.touch()
    assert len(load_cassette(path)) == 0


def test_corrupt_file_raises(tmp_path):
    path = tmp_path / "bad.rewind"
    path.write_bytes(b"definitely not a cassette")
    with pytest.raises(CassetteFormatError):
        RecordStore.open(path)


def test_flush_keeps_loaded_then_appended(tmp_path):
    path = tmp_path / "api.rewind"
    _seed(path, _exchange(1), _exchange(2))

    store = RecordStore.open(path)
    assert [e.request.uri for e in store.cassette] == [
        "https://example.com/1",
        "https://example.com/2",
    ]
    store.append(_exchange(3))
    store.flush()

    reloaded = load_cassette(path)
    assert [e.response.body for e in reloaded] == ["body 1", "body 2", "body 3"]
    assert reloaded.created_at == store.cassette.created_at


def test_flush_without_new_exchanges_leaves_file_untouched(tmp_path):
    path = tmp_path / "api.rewind"
    _seed(path, _exchange(1))
    before = path.read_bytes()
    mtime = os.stat(path).st_mtime_ns

    store = RecordStore.open(path)
    store.flush()

    assert path.read_bytes() == before
    assert os.stat(path).st_mtime_ns == mtime


def test_flush_without_anything_creates_no_file(tmp_path):
    path = tmp_path / "never.rewind"
    RecordStore.open(path).flush()
    assert not path.exists()


def test_repeated_flush_is_stable(tmp_path):
    path = tmp_path / "api.rewind"
    store = RecordStore.open(path)
    store.append(_exchange(1))
    store.flush()
    first = path.read_bytes()
    store.flush()
    assert path.read_bytes() == first


def test_flush_creates_parent_directories(tmp_path):
    path = tmp_path / "nested" / "dir" / "api.json"
    _seed(path, _exchange(1))
    assert path.read_text(encoding="utf-8").startswith("{")


def test_failed_write_keeps_previous_cassette(tmp_path):
    path = tmp_path / "api.rewind"
    _seed(path, _exchange(1))
    before = path.read_bytes()

    class ExplodingCodec(BinaryCodec):
        def write(self, f, exchanges, created_at):
            f.write(b"partial garbage")
            raise OSError("disk full")

    store = RecordStore.open(path, codec=ExplodingCodec())
    store.append(_exchange(2))
    with pytest.raises(PersistenceError, match="disk full"):
        store.flush()

    assert path.read_bytes() == before
    assert sorted(p.name for p in tmp_path.iterdir()) == ["api.rewind"]


def test_concurrent_appends_are_not_lost(tmp_path):
    path = tmp_path / "api.rewind"
    _seed(path, _exchange(0))
    store = RecordStore.open(path)
    barrier = threading.Barrier(10)

    def worker(start):
        barrier.wait()
        for n in range(start, start + 20):
            store.append(_exchange(n))

    threads = [threading.Thread(target=worker, args=(1 + i * 20,)) for i in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    store.flush()

    reloaded = load_cassette(path)
    assert len(reloaded) == 201
    assert reloaded.exchanges[0].request.uri == "https://example.com/0"
    uris = sorted(e.request.uri for e in reloaded.exchanges[1:])
    assert uris == sorted(f"https://example.com/{n}" for n in range(1, 201))
