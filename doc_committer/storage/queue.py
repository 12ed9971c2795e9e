"""QueueStore - durable, ordered operation queue on the local file system."""

import itertools
import json
import os
import threading
import time
from collections import Counter
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any, Callable, Generator

from anystore.logging import get_logger

from doc_committer.core.conventions import path
from doc_committer.exceptions import QueueIOError
from doc_committer.model.operation import (
    Operation,
    OperationKind,
    QueueEntries,
    QueueEntry,
)
from doc_committer.util import Metadata, ensure_metadata

CHUNK_SIZE = 8192


class EntryNamer:
    """
    Thread-safe generator for unique, monotonically increasing entry names.

    The timestamp never goes backwards within the process (even if the wall
    clock does) and the sequence number separates entries created within the
    same nanosecond.
    """

    def __init__(self, clock: Callable[[], int] = time.time_ns) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._last = 0
        self._seq = itertools.count()

    def __call__(self) -> str:
        with self._lock:
            ts = max(self._clock(), self._last)
            self._last = ts
            seq = next(self._seq)
        return path.entry_name(ts, seq)


make_entry_name = EntryNamer()


class QueueStore:
    """
    Durable queue of add and remove operations.

    An operation is acknowledged only after its files are fully written and
    synced. Entries are listed in creation order and are never modified, only
    deleted (by the commit driver after the target confirmed them).

    Layout: {root}/{add,remove}/YYYY/MM/DD/HH/mm/{ts}-{seq}[.meta]

    Example:
        ```python
        queue = QueueStore("./queue")
        queue.put_add("doc1", b"hello", {"title": "Hello"})
        queue.put_remove("doc0")

        for entry in queue.iterate("add"):
            print(entry.reference, entry.read())
            queue.delete(entry)
        ```
    """

    def __init__(self, uri: str | os.PathLike, fsync: bool | None = True) -> None:
        self.root = Path(uri).absolute()
        self.fsync = fsync
        self.log = get_logger(__name__, queue=str(self.root))
        self.lock = threading.Lock()
        """Guards partition creation against concurrent pruning"""
        self._writing: Counter[Path] = Counter()
        try:
            for kind in OperationKind:
                (self.root / kind.value).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise QueueIOError(f"Cannot initialize queue `{self.root}`: {e}") from e

    @property
    def uri(self) -> str:
        return str(self.root)

    def put(self, operation: Operation) -> QueueEntry:
        """Persist an operation"""
        if operation.kind == OperationKind.add:
            return self.put_add(
                operation.reference, operation.content or b"", operation.metadata
            )
        return self.put_remove(operation.reference, operation.metadata)

    def put_add(
        self,
        reference: str,
        content: bytes | str | IO[bytes] = b"",
        metadata: dict[str, Any] | None = None,
    ) -> QueueEntry:
        """
        Queue a document for addition (or update) in the target.

        Args:
            reference: Stable document id
            content: Document body as bytes, str (utf-8) or binary file handle
            metadata: Key to one or many values

        Raises:
            QueueIOError: The entry could not be written

        Returns:
            The durable queue entry
        """
        if not reference:
            raise ValueError("Reference is empty")
        if isinstance(content, str):
            content = content.encode()
        metadata = ensure_metadata(metadata)
        sidecar: Metadata = {path.REFERENCE_KEY: [reference]}
        sidecar.update({k: v for k, v in metadata.items() if k != path.REFERENCE_KEY})

        name = make_entry_name()
        target = self.root / path.entry_path(path.ADD, name)
        meta_target = Path(path.meta(str(target)))
        # sidecar first: an entry becomes visible with its content file only
        self._write_files(
            target.parent,
            (meta_target, json.dumps(sidecar).encode()),
            (target, content),
        )
        self.log.debug("Queued add", reference=reference, entry=name)
        return QueueEntry(
            kind=OperationKind.add,
            name=name,
            path=target,
            reference=reference,
            metadata=metadata,
        )

    def put_remove(
        self, reference: str, metadata: dict[str, Any] | None = None
    ) -> QueueEntry:
        """
        Queue a document for removal from the target. Only the reference is
        persisted.

        Raises:
            QueueIOError: The entry could not be written
        """
        if not reference:
            raise ValueError("Reference is empty")
        name = make_entry_name()
        target = self.root / path.entry_path(path.REMOVE, name)
        self._write_files(target.parent, (target, reference.encode()))
        self.log.debug("Queued remove", reference=reference, entry=name)
        return QueueEntry(
            kind=OperationKind.remove,
            name=name,
            path=target,
            reference=reference,
            metadata=ensure_metadata(metadata),
        )

    def iterate(
        self, kind: OperationKind | str, until: str | None = None
    ) -> QueueEntries:
        """
        Lazily iterate the pending entries of the given kind in enqueue order.

        The iteration can be restarted any time and then yields exactly the
        entries still present, in the same relative order.

        Args:
            kind: add or remove
            until: Stop at the first entry named after this watermark (see
                `watermark`), entries queued later are left for the next run

        Raises:
            QueueIOError: An entry is corrupt or can't be read
        """
        kind = OperationKind(kind)
        for entry_path in self.iterate_paths(kind, until):
            entry = self._load(kind, entry_path)
            if entry is not None:
                yield entry

    def iterate_paths(
        self, kind: OperationKind | str, until: str | None = None
    ) -> Generator[Path, None, None]:
        """Iterate the content (or reference) file paths in enqueue order"""
        kind = OperationKind(kind)
        for directory in self._iterate_partitions(self.root / kind.value):
            for name in self._listdir(directory):
                if path.is_entry(name):
                    if until is not None and name > until:
                        return
                    yield directory / name

    def watermark(self) -> str:
        """
        Get a name that sorts after every entry whose name was taken so far.
        An entry still being written when the watermark is taken can only be
        followed (by the same producer) by entries named after it.
        """
        return make_entry_name()

    def count(self, kind: OperationKind | str | None = None) -> int:
        kinds = [OperationKind(kind)] if kind else list(OperationKind)
        return sum(1 for k in kinds for _ in self.iterate_paths(k))

    def is_empty(self) -> bool:
        for kind in OperationKind:
            for _ in self.iterate_paths(kind):
                return False
        return True

    def delete(self, entry: QueueEntry) -> None:
        """
        Delete an entry. Deleting an already deleted entry is not an error.

        Raises:
            QueueIOError: The files could not be deleted
        """
        try:
            for entry_path in entry.paths:
                entry_path.unlink(missing_ok=True)
        except OSError as e:
            raise QueueIOError(f"Cannot delete queue entry `{entry.path}`: {e}") from e
        self.log.debug(
            f"Deleted {entry.kind.value}", reference=entry.reference, entry=entry.name
        )

    def clear(self) -> int:
        """Delete all pending entries, returns the number of deleted entries"""
        deleted = 0
        for kind in OperationKind:
            for entry in self.iterate(kind):
                self.delete(entry)
                deleted += 1
        self.log.warning("Cleared queue", deleted=deleted)
        return deleted

    def _load(self, kind: OperationKind, entry_path: Path) -> QueueEntry | None:
        name = entry_path.name
        try:
            if kind == OperationKind.remove:
                reference = entry_path.read_text(encoding="utf-8")
                return QueueEntry(
                    kind=kind, name=name, path=entry_path, reference=reference
                )
            sidecar = json.loads(Path(path.meta(str(entry_path))).read_bytes())
        except FileNotFoundError:
            if entry_path.exists():
                raise QueueIOError(f"Missing metadata for queue entry `{entry_path}`")
            # deleted after listing
            return None
        except (OSError, ValueError) as e:
            raise QueueIOError(f"Cannot read queue entry `{entry_path}`: {e}") from e
        metadata = ensure_metadata(sidecar)
        references = metadata.pop(path.REFERENCE_KEY, None)
        if not references:
            raise QueueIOError(f"Missing reference for queue entry `{entry_path}`")
        return QueueEntry(
            kind=kind,
            name=name,
            path=entry_path,
            reference=references[0],
            metadata=metadata,
        )

    def _iterate_partitions(
        self, directory: Path, depth: int = path.PARTITION_DEPTH
    ) -> Generator[Path, None, None]:
        if depth == 0:
            yield directory
            return
        for name in self._listdir(directory):
            child = directory / name
            if not name.startswith(".") and child.is_dir():
                yield from self._iterate_partitions(child, depth - 1)

    def _listdir(self, directory: Path) -> list[str]:
        try:
            return sorted(os.listdir(directory))
        except FileNotFoundError:
            # pruned after listing its parent
            return []
        except OSError as e:
            raise QueueIOError(f"Cannot list queue directory `{directory}`: {e}") from e

    def _write_files(
        self, directory: Path, *files: tuple[Path, bytes | IO[bytes]]
    ) -> None:
        tmp_paths = [target.with_name(path.tmp(target.name)) for target, _ in files]
        replaced: list[Path] = []
        try:
            with self._writing_into(directory):
                for tmp_path, (_, data) in zip(tmp_paths, files):
                    self._write_tmp(tmp_path, data)
                for tmp_path, (target, _) in zip(tmp_paths, files):
                    os.replace(tmp_path, target)
                    replaced.append(target)
                self._fsync_dir(directory)
        except OSError as e:
            # renamed files of an unacknowledged entry are removed as well
            self._cleanup(tmp_paths + replaced)
            raise QueueIOError(f"Cannot write queue entry in `{directory}`: {e}") from e

    def is_writing(self, directory: Path) -> bool:
        """Whether an entry is currently written into the directory (or one of
        its sub directories). Call with `lock` held."""
        return any(d == directory or directory in d.parents for d in self._writing)

    @contextmanager
    def _writing_into(self, directory: Path) -> Generator[None, None, None]:
        with self.lock:
            self._writing[directory] += 1
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError:
                self._release(directory)
                raise
        try:
            yield
        finally:
            with self.lock:
                self._release(directory)

    def _release(self, directory: Path) -> None:
        self._writing[directory] -= 1
        if self._writing[directory] < 1:
            del self._writing[directory]

    def _write_tmp(self, tmp_path: Path, data: bytes | IO[bytes]) -> None:
        with tmp_path.open("wb") as fh:
            if isinstance(data, bytes):
                fh.write(data)
            else:
                while chunk := data.read(CHUNK_SIZE):
                    fh.write(chunk)
            fh.flush()
            if self.fsync:
                os.fsync(fh.fileno())

    def _fsync_dir(self, directory: Path) -> None:
        if not self.fsync or not hasattr(os, "O_DIRECTORY"):
            return
        fd = os.open(directory, os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)

    def _cleanup(self, paths: list[Path]) -> None:
        for file_path in paths:
            try:
                file_path.unlink(missing_ok=True)
            except OSError as e:
                self.log.error(
                    f"Cannot remove incomplete file: {e}", path=str(file_path)
                )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.root})>"
