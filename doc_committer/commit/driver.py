"""CommitDriver - drain a queue into a target in ordered, retried batches."""

import threading
from pathlib import Path

from anystore.logging import get_logger

from doc_committer.commit.batcher import next_batch
from doc_committer.exceptions import (
    CommitAborted,
    PermanentDeliveryError,
    QueueIOError,
    TransientDeliveryError,
)
from doc_committer.model.job import CommitJob, CommitResult, CommitState
from doc_committer.model.operation import Batch, OperationKind
from doc_committer.settings import DEFAULT_COMMIT_BATCH_SIZE
from doc_committer.storage.maintenance import prune
from doc_committer.storage.queue import QueueStore
from doc_committer.target.base import BaseTarget

_locks: dict[Path, threading.Lock] = {}
_locks_guard = threading.Lock()


def get_lock(root: Path) -> threading.Lock:
    """Get the process-wide commit lock for a queue root"""
    with _locks_guard:
        return _locks.setdefault(root.resolve(), threading.Lock())


class CommitDriver:
    """
    Runs commit cycles for one queue and one target.

    A cycle drains all pending additions first, then all pending removals. For
    each kind, batches of at most `batch_size` entries are taken from the
    front of the queue and handed to the target. Entries are deleted from the
    queue only after the target confirmed their batch.

    Transient failures are retried with the same batch up to `max_retries`
    times, waiting `retry_delay` seconds (multiplied by `retry_backoff` for
    each further retry) in between. A permanent failure or exhausted retries
    abort the cycle with `CommitAborted`: the failed batch and everything
    after it stays queued, so the next cycle resumes from the same point.

    A cycle only delivers operations queued before it started, later ones
    are left for the next cycle. Only one cycle at a time runs for a queue
    root within this process.

    Example:
        ```python
        driver = CommitDriver(QueueStore("./queue"), NullTarget(), batch_size=10)
        job = driver.commit()
        print(f"Committed {job.added} additions, {job.removed} removals")
        ```
    """

    def __init__(
        self,
        queue: QueueStore,
        target: BaseTarget,
        batch_size: int = DEFAULT_COMMIT_BATCH_SIZE,
        max_retries: int = 0,
        retry_delay: float = 0,
        retry_backoff: float = 1.0,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"Invalid batch size: `{batch_size}`")
        if max_retries < 0:
            raise ValueError(f"Invalid max retries: `{max_retries}`")
        self.queue = queue
        self.target = target
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.retry_backoff = retry_backoff
        self.state = CommitState.idle
        self.log = get_logger(__name__, queue=queue.uri, target=target.name)
        self._cancelled = threading.Event()

    def commit(self) -> CommitJob:
        """
        Run a full commit cycle (additions, then removals) and prune empty
        queue directories afterwards.

        Raises:
            CommitAborted: Delivery failed permanently, retries are exhausted or
                the cycle was cancelled
            QueueIOError: Local queue entries couldn't be read or deleted

        Returns:
            The cycle report
        """
        with get_lock(self.queue.root):
            job = CommitJob.start(queue=self.queue.uri, target=self.target.name)
            job.log.info("Start commit ...")
            self.state = CommitState.listing
            # one watermark for both kinds, later operations go to the next cycle
            until = self.queue.watermark()
            try:
                for kind in OperationKind:
                    self.drain(kind, job, until)
            except (CommitAborted, QueueIOError) as e:
                job.stop(e)
                job.log.error(
                    f"Commit aborted: {e}",
                    added=job.added,
                    removed=job.removed,
                    attempts=job.attempts,
                    errors=job.errors,
                )
                raise
            finally:
                self.state = CommitState.idle
                self._cancelled.clear()
                prune(self.queue)
            job.stop()
            job.log.info(
                "Commit done.",
                added=job.added,
                removed=job.removed,
                batches=job.batches,
                attempts=job.attempts,
                errors=job.errors,
                took=job.took,
            )
            return job

    def drain(
        self, kind: OperationKind, job: CommitJob, until: str | None = None
    ) -> None:
        """Deliver all pending entries of one kind up to the watermark `until`,
        batch by batch"""
        self.state = CommitState.listing
        pending = self.queue.iterate(kind, until)
        while True:
            if self._cancelled.is_set():
                raise CommitAborted("Commit cancelled", job, cancelled=True)
            self.state = CommitState.batching
            batch = next_batch(pending, self.batch_size)
            if not batch:
                return
            self.deliver(kind, batch, job)
            self.state = CommitState.succeeding
            for entry in batch:
                self.queue.delete(entry)
            job.batches += 1
            if kind == OperationKind.add:
                job.added += len(batch)
            else:
                job.removed += len(batch)

    def deliver(self, kind: OperationKind, batch: Batch, job: CommitJob) -> None:
        """Hand one batch to the target, retrying transient failures"""
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            self.state = CommitState.delivering
            job.attempts += 1
            job.log.info(
                f"Committing {len(batch)} {kind.value} operations ...",
                attempt=attempt,
            )
            result = self.call_target(kind, batch)
            if result.success:
                return
            job.errors += 1
            if not result.transient or attempt == attempts:
                break
            self.state = CommitState.retrying
            delay = self.get_delay(attempt)
            job.log.warning(
                f"Commit failed (attempt {attempt}/{attempts}), retrying in {delay}s",
                error=result.error,
            )
            if self._cancelled.wait(delay):
                self.state = CommitState.failing
                raise CommitAborted("Commit cancelled", job, result, cancelled=True)
        self.state = CommitState.failing
        reason = "retries exhausted" if result.transient else "permanent failure"
        raise CommitAborted(
            f"Cannot commit {kind.value} batch of {len(batch)} ({reason}): "
            f"{result.error}",
            job,
            result,
        )

    def call_target(self, kind: OperationKind, batch: Batch) -> CommitResult:
        try:
            if kind == OperationKind.add:
                result = self.target.commit_add(batch)
            else:
                result = self.target.commit_delete(batch)
        except TransientDeliveryError as e:
            return CommitResult.fail_transient(e)
        except PermanentDeliveryError as e:
            return CommitResult.fail_permanent(e)
        except QueueIOError:
            raise
        except Exception as e:
            self.log.exception(f"Target error: {e}")
            return CommitResult.fail_permanent(e)
        if result is None:
            return CommitResult.ok()
        return result

    def get_delay(self, attempt: int) -> float:
        return self.retry_delay * self.retry_backoff ** (attempt - 1)

    def cancel(self) -> None:
        """Interrupt the running (or the next) cycle. A pending retry wait
        returns immediately and the cycle fails without deleting the current
        batch."""
        self._cancelled.set()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.queue.uri}, {self.target.name})>"
