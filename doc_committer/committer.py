import threading
from typing import IO, Any

from doc_committer.commit.driver import CommitDriver
from doc_committer.model.job import CommitJob
from doc_committer.model.operation import Operation, QueueEntry
from doc_committer.settings import DEFAULT_QUEUE_BATCH_SIZE
from doc_committer.storage.queue import QueueStore
from doc_committer.target.base import BaseTarget


class Committer:
    """
    A durable queue in front of one target.

    Producers `add` and `remove` documents, which are persisted to the queue
    right away. Every `queue_batch_size` queued operations a commit cycle is
    run automatically (set it to 0 to only commit explicitly via `commit`).
    A failing automatic commit raises to the producer, the operation itself
    is queued already and will be delivered by a later cycle.

    Example:
        ```python
        committer = Committer(
            QueueStore("./queue"),
            SolrTarget(url="http://localhost:8983/solr/docs"),
            queue_batch_size=1000,
            batch_size=100,
        )
        committer.add("https://example.org/page", b"<p>Hello</p>", {"lang": "en"})
        committer.remove("https://example.org/old")
        committer.commit()
        ```
    """

    def __init__(
        self,
        queue: QueueStore,
        target: BaseTarget,
        queue_batch_size: int = DEFAULT_QUEUE_BATCH_SIZE,
        **driver_options: Any,
    ) -> None:
        self.queue = queue
        self.target = target
        self.driver = CommitDriver(queue, target, **driver_options)
        self.queue_batch_size = queue_batch_size
        self._queued = 0
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self.target.name

    def add(
        self,
        reference: str,
        content: bytes | str | IO[bytes] = b"",
        metadata: dict[str, Any] | None = None,
    ) -> QueueEntry:
        """Queue a document addition"""
        entry = self.queue.put_add(reference, content, metadata)
        self.touch()
        return entry

    def remove(
        self, reference: str, metadata: dict[str, Any] | None = None
    ) -> QueueEntry:
        """Queue a document removal"""
        entry = self.queue.put_remove(reference, metadata)
        self.touch()
        return entry

    def put(self, operation: Operation) -> QueueEntry:
        entry = self.queue.put(operation)
        self.touch()
        return entry

    def touch(self) -> None:
        """Count a queued operation and commit once the queue batch is full"""
        if self.queue_batch_size < 1:
            return
        with self._lock:
            self._queued += 1
            due = self._queued >= self.queue_batch_size
            if due:
                self._queued = 0
        if due:
            self.commit()

    def commit(self) -> CommitJob:
        """Run a commit cycle, see `CommitDriver.commit`"""
        return self.driver.commit()

    def cancel(self) -> None:
        self.driver.cancel()

    def close(self) -> None:
        self.target.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.name}, {self.queue.uri})>"
