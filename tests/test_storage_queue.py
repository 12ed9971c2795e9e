import io
import json
import os
import threading

import pytest

from doc_committer.core.conventions import path
from doc_committer.exceptions import QueueIOError
from doc_committer.model import Operation
from doc_committer.model.operation import OperationKind
from doc_committer.storage.queue import EntryNamer, QueueStore
from tests.shared import list_files


def test_storage_queue(tmp_queue):
    assert tmp_queue.is_empty()
    assert tmp_queue.count() == 0
    assert (tmp_queue.root / "add").is_dir()
    assert (tmp_queue.root / "remove").is_dir()

    entry = tmp_queue.put_add("doc1", "hello", {"title": "Hello", "tags": ["a", "b"]})
    assert entry.kind == OperationKind.add
    assert entry.reference == "doc1"
    assert entry.path.exists()
    assert entry.meta_path.exists()
    assert entry.read() == b"hello"

    # layout: add/YYYY/MM/DD/HH/mm/{ts}-{seq}
    rel = entry.path.relative_to(tmp_queue.root)
    assert rel.parts[0] == "add"
    assert len(rel.parts) == 7
    assert str(rel) == path.entry_path("add", entry.name)

    sidecar = json.loads(entry.meta_path.read_text())
    assert list(sidecar) == [path.REFERENCE_KEY, "title", "tags"]
    assert sidecar[path.REFERENCE_KEY] == ["doc1"]
    assert sidecar["tags"] == ["a", "b"]

    removal = tmp_queue.put_remove("doc0")
    assert removal.path.read_text() == "doc0"
    assert removal.meta_path is None

    assert not tmp_queue.is_empty()
    assert tmp_queue.count() == 2
    assert tmp_queue.count("add") == 1
    assert tmp_queue.count(OperationKind.remove) == 1

    entries = list(tmp_queue.iterate("add"))
    assert len(entries) == 1
    loaded = entries[0]
    assert loaded.name == entry.name
    assert loaded.reference == "doc1"
    assert loaded.metadata == {"title": ["Hello"], "tags": ["a", "b"]}
    assert loaded.read() == b"hello"

    entries = list(tmp_queue.iterate("remove"))
    assert [e.reference for e in entries] == ["doc0"]
    assert entries[0].metadata == {}

    tmp_queue.delete(loaded)
    assert not loaded.path.exists()
    assert not loaded.meta_path.exists()
    # already gone
    tmp_queue.delete(loaded)
    assert tmp_queue.count() == 1

    with pytest.raises(ValueError):
        tmp_queue.put_add("", "hello")
    with pytest.raises(ValueError):
        tmp_queue.put_remove("")


def test_storage_queue_put(tmp_queue):
    entry = tmp_queue.put(Operation.add("doc1", b"hello", {"lang": "en"}))
    assert entry.read() == b"hello"
    entry = tmp_queue.put(Operation.remove("doc1"))
    assert entry.kind == OperationKind.remove
    assert tmp_queue.count() == 2

    # stream content
    entry = tmp_queue.put_add("doc2", io.BytesIO(b"x" * 20_000))
    assert entry.read() == b"x" * 20_000

    # reserved key is not taken from the producer metadata
    entry = tmp_queue.put_add("doc3", "", {path.REFERENCE_KEY: "other"})
    loaded = [e for e in tmp_queue.iterate("add") if e.name == entry.name][0]
    assert loaded.reference == "doc3"
    assert loaded.metadata == {}
    assert loaded.read() == b""


def test_storage_queue_order(tmp_path):
    queue = QueueStore(tmp_path)
    refs = [f"doc{i}" for i in range(100)]
    for ref in refs:
        queue.put_add(ref, ref)
        queue.put_remove(ref)

    # survives re-opening
    queue = QueueStore(tmp_path)
    assert [e.reference for e in queue.iterate("add")] == refs
    assert [e.reference for e in queue.iterate("remove")] == refs
    names = [e.name for e in queue.iterate("add")]
    assert names == sorted(names)
    assert len(set(names)) == len(names)

    # restart after partial consumption
    for entry in list(queue.iterate("add"))[:30]:
        queue.delete(entry)
    assert [e.reference for e in queue.iterate("add")] == refs[30:]
    assert [e.reference for e in queue.iterate("add")] == refs[30:]

    # deleting ahead of a running iteration skips these entries
    entries = queue.iterate("add")
    first = next(entries)
    assert first.reference == "doc30"
    for entry in list(QueueStore(tmp_path).iterate("add"))[1:10]:
        queue.delete(entry)
    assert next(entries).reference == "doc40"


def test_storage_queue_concurrent(tmp_queue):
    threads = 8
    per_thread = 50

    def produce(worker: int) -> None:
        for i in range(per_thread):
            tmp_queue.put_add(f"{worker}-{i}", f"content {i}")

    workers = [threading.Thread(target=produce, args=(w,)) for w in range(threads)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join()

    entries = list(tmp_queue.iterate("add"))
    assert len(entries) == threads * per_thread
    assert len({e.name for e in entries}) == threads * per_thread
    # per producer, the enqueue order is kept
    for w in range(threads):
        refs = [e.reference for e in entries if e.reference.startswith(f"{w}-")]
        assert refs == [f"{w}-{i}" for i in range(per_thread)]


def test_storage_queue_entry_namer():
    make_name = EntryNamer()
    names = [make_name() for _ in range(1000)]
    assert names == sorted(names)
    assert len(set(names)) == 1000


def test_storage_queue_invisible(tmp_queue):
    entry = tmp_queue.put_add("doc1", "hello")
    directory = entry.path.parent
    # in-flight writes and foreign files are never listed
    (directory / path.tmp("01736937000000000000-000000000001")).write_bytes(b"x")
    (directory / ".DS_Store").write_bytes(b"x")
    (tmp_queue.root / "add" / ".hidden").mkdir()
    assert [e.reference for e in tmp_queue.iterate("add")] == ["doc1"]
    assert tmp_queue.count() == 1
    # no temporary files left behind by writing
    files = [p.name for p in list_files(tmp_queue.root / "remove")]
    assert files == []
    tmp_queue.put_remove("doc1")
    files = list_files(tmp_queue.root / "remove")
    assert [p.read_text() for p in files] == ["doc1"]


def test_storage_queue_corrupt(tmp_queue):
    entry = tmp_queue.put_add("doc1", "hello")
    entry.meta_path.unlink()
    with pytest.raises(QueueIOError):
        list(tmp_queue.iterate("add"))

    entry.meta_path.write_text("not json")
    with pytest.raises(QueueIOError):
        list(tmp_queue.iterate("add"))

    entry.meta_path.write_text(json.dumps({"title": ["no reference"]}))
    with pytest.raises(QueueIOError):
        list(tmp_queue.iterate("add"))


def test_storage_queue_clear(tmp_queue):
    for i in range(5):
        tmp_queue.put_add(f"doc{i}", "hello")
        tmp_queue.put_remove(f"doc{i}")
    assert tmp_queue.clear() == 10
    assert tmp_queue.is_empty()
    assert list_files(tmp_queue.root) == []


@pytest.mark.parametrize("fail_on", ["write", "rename"])
def test_storage_queue_write_failure(tmp_queue, monkeypatch, fail_on):
    calls = []
    if fail_on == "write":
        write_tmp = QueueStore._write_tmp

        def failing_write(self, tmp_path, data):
            calls.append(tmp_path)
            if len(calls) == 2:
                raise OSError("No space left on device")
            return write_tmp(self, tmp_path, data)

        monkeypatch.setattr(QueueStore, "_write_tmp", failing_write)
    else:
        replace = os.replace

        def failing_replace(src, dst):
            calls.append(dst)
            if len(calls) == 2:
                raise OSError("No space left on device")
            return replace(src, dst)

        monkeypatch.setattr(os, "replace", failing_replace)

    # the sidecar is handled first, the content file fails
    with pytest.raises(QueueIOError):
        tmp_queue.put_add("doc1", "hello", {"title": "Hello"})
    assert len(calls) == 2
    assert list(tmp_queue.iterate("add")) == []
    assert tmp_queue.is_empty()
    # neither temporary files nor a sidecar are left behind
    assert list_files(tmp_queue.root) == []

    monkeypatch.undo()
    tmp_queue.put_add("doc2", "hello")
    assert [e.reference for e in tmp_queue.iterate("add")] == ["doc2"]


def test_storage_queue_watermark(tmp_queue):
    for i in range(5):
        tmp_queue.put_add(f"doc{i}", "hello")
    until = tmp_queue.watermark()
    for i in range(5, 8):
        tmp_queue.put_add(f"doc{i}", "hello")
    assert [e.reference for e in tmp_queue.iterate("add", until)] == [
        f"doc{i}" for i in range(5)
    ]
    assert tmp_queue.count("add") == 8

    # the clock going backwards doesn't break the order
    ts = iter([3_000_000_000, 1_000_000_000, 2_000_000_000])
    make_name = EntryNamer(clock=lambda: next(ts))
    names = [make_name() for _ in range(3)]
    assert names == sorted(names)
    assert [n.split("-")[0] for n in names] == ["00000000003000000000"] * 3
