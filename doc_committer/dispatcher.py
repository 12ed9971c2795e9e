"""Dispatcher - fan out one operation stream to several independent targets."""

from typing import IO, Any, Iterable, Iterator

from anystore.logging import get_logger

from doc_committer.committer import Committer
from doc_committer.exceptions import (
    CommitAborted,
    DispatchError,
    ImproperlyConfigured,
    QueueIOError,
)
from doc_committer.model.job import CommitJob
from doc_committer.model.operation import Operation, QueueEntry

log = get_logger(__name__)


class Dispatcher:
    """
    Holds an ordered list of committers, each with its own queue, driver and
    target. Every operation is queued for every member. Members commit
    independently: a failing target doesn't block or touch the queues of the
    others.
    """

    def __init__(self, committers: Iterable[Committer]) -> None:
        self.committers = list(committers)
        names = [c.name for c in self.committers]
        if len(set(names)) != len(names):
            raise ImproperlyConfigured(f"Target names are not unique: {names}")
        roots = [c.queue.root for c in self.committers]
        if len(set(roots)) != len(roots):
            raise ImproperlyConfigured("Targets can't share a queue directory")

    def add(
        self,
        reference: str,
        content: bytes | str | IO[bytes] = b"",
        metadata: dict[str, Any] | None = None,
    ) -> list[QueueEntry]:
        """
        Queue a document addition for all members.

        Raises:
            QueueIOError: The operation couldn't be queued for a member
        """
        if not isinstance(content, (bytes, str)):
            # each member consumes the content
            content = content.read()
        entries = [c.queue.put_add(reference, content, metadata) for c in self]
        self.touch()
        return entries

    def remove(
        self, reference: str, metadata: dict[str, Any] | None = None
    ) -> list[QueueEntry]:
        """
        Queue a document removal for all members.

        Raises:
            QueueIOError: The operation couldn't be queued for a member
        """
        entries = [c.queue.put_remove(reference, metadata) for c in self]
        self.touch()
        return entries

    def put(self, operation: Operation) -> list[QueueEntry]:
        entries = [c.queue.put(operation) for c in self]
        self.touch()
        return entries

    def touch(self) -> None:
        for committer in self:
            try:
                committer.touch()
            except (CommitAborted, QueueIOError) as e:
                log.error(f"Automatic commit failed: {e}", target=committer.name)

    def commit(self, raise_on_error: bool | None = True) -> dict[str, CommitJob]:
        """
        Run a commit cycle for every member, one after another.

        Args:
            raise_on_error: Raise `DispatchError` after all members ran if at
                least one of them failed

        Returns:
            The cycle report per target name
        """
        jobs: dict[str, CommitJob] = {}
        failures: dict[str, Exception] = {}
        for committer in self:
            try:
                jobs[committer.name] = committer.commit()
            except CommitAborted as e:
                jobs[committer.name] = e.job
                failures[committer.name] = e
            except QueueIOError as e:
                failures[committer.name] = e
            if committer.name in failures:
                log.error(
                    f"Commit failed: {failures[committer.name]}",
                    target=committer.name,
                )
        if failures and raise_on_error:
            raise DispatchError(
                f"Commit failed for {len(failures)} of {len(self)} targets: "
                f"{', '.join(failures)}",
                failures,
            )
        return jobs

    def cancel(self) -> None:
        for committer in self:
            committer.cancel()

    def close(self) -> None:
        for committer in self:
            committer.close()

    def __iter__(self) -> Iterator[Committer]:
        return iter(self.committers)

    def __len__(self) -> int:
        return len(self.committers)

    def __getitem__(self, name: str) -> Committer:
        for committer in self:
            if committer.name == name:
                return committer
        raise KeyError(name)
