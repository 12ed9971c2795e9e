from functools import cached_property
from typing import Any

from anystore.logging import BoundLogger, get_logger

from doc_committer.model.job import CommitResult
from doc_committer.model.operation import Batch


class BaseTarget:
    """
    Delivers batches of queued operations to one target system.

    Implementations return a `CommitResult` for each call, distinguishing
    transient failures (the driver retries the same batch) from permanent ones
    (the commit cycle is aborted). Raising `TransientDeliveryError` or
    `PermanentDeliveryError` has the same effect. Delivery is at-least-once, so
    adds and deletes must be idempotent on the target side.
    """

    type: str = "base"

    def __init__(self, name: str | None = None, **options: Any) -> None:
        self.name = name or self.type
        self.options = options

    def commit_add(self, batch: Batch) -> CommitResult:
        """Add (or replace) the documents of the batch in the target"""
        raise NotImplementedError

    def commit_delete(self, batch: Batch) -> CommitResult:
        """Delete the referenced documents of the batch from the target"""
        raise NotImplementedError

    def close(self) -> None:
        pass

    @cached_property
    def log(self) -> BoundLogger:
        return get_logger(f"doc_committer.target.{self.type}", target=self.name)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.name})>"
