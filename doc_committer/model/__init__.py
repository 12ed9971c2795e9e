from doc_committer.model.config import CommitterConfig, TargetConfig
from doc_committer.model.job import CommitJob, CommitResult, CommitState
from doc_committer.model.operation import (
    Batch,
    Operation,
    OperationKind,
    QueueEntries,
    QueueEntry,
)

__all__ = [
    "Batch",
    "CommitJob",
    "CommitResult",
    "CommitState",
    "CommitterConfig",
    "Operation",
    "OperationKind",
    "QueueEntries",
    "QueueEntry",
    "TargetConfig",
]
