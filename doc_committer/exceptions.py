from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from doc_committer.model.job import CommitJob, CommitResult


class CommitterError(Exception):
    """Base exception for all committer errors"""


class ImproperlyConfigured(CommitterError):
    pass


class QueueIOError(CommitterError):
    """
    Local file system failure while writing, reading or deleting queue
    entries. Never retried automatically.
    """


class DeliveryError(CommitterError):
    """Base for errors raised by target adapters"""


class TransientDeliveryError(DeliveryError):
    """Target temporarily unavailable, the batch can be retried"""


class PermanentDeliveryError(DeliveryError):
    """Target rejected the batch irrecoverably"""


class CommitAborted(CommitterError):
    """
    A commit cycle stopped before the queue was drained. The failed batch and
    everything queued after it is left untouched for the next cycle.
    """

    def __init__(
        self,
        message: str,
        job: "CommitJob",
        result: "CommitResult | None" = None,
        cancelled: bool = False,
    ) -> None:
        super().__init__(message)
        self.job = job
        self.result = result
        self.cancelled = cancelled


class DispatchError(CommitterError):
    """One or more dispatcher members failed their commit cycle"""

    def __init__(self, message: str, failures: dict[str, Any]) -> None:
        super().__init__(message)
        self.failures = failures
