from typing import Any

from doc_committer.model.job import CommitResult
from doc_committer.model.operation import Batch
from doc_committer.target.base import BaseTarget


class NullTarget(BaseTarget):
    """
    Accepts every batch without any external I/O and records what would have
    been committed. Useful for testing and for measuring queue throughput.
    """

    type = "null"

    def __init__(self, name: str | None = None, **options: Any) -> None:
        super().__init__(name, **options)
        self.added = 0
        self.removed = 0
        self.batches: list[tuple[str, list[str]]] = []
        """(kind, references) per committed batch, in commit order"""

    def commit_add(self, batch: Batch) -> CommitResult:
        self.added += len(batch)
        self.batches.append(("add", [e.reference for e in batch]))
        return CommitResult.ok()

    def commit_delete(self, batch: Batch) -> CommitResult:
        self.removed += len(batch)
        self.batches.append(("remove", [e.reference for e in batch]))
        return CommitResult.ok()
