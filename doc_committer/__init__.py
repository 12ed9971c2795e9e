"""Durable, ordered, batched document delivery to search indexes and stores."""

from doc_committer.commit import CommitDriver
from doc_committer.committer import Committer
from doc_committer.dispatcher import Dispatcher
from doc_committer.factories import get_dispatcher, make_committer
from doc_committer.model import CommitJob, CommitResult, Operation, QueueEntry
from doc_committer.storage import QueueStore, prune
from doc_committer.target import FileSystemTarget, NullTarget, SolrTarget

__version__ = "0.1.0"

__all__ = [
    "CommitDriver",
    "CommitJob",
    "CommitResult",
    "Committer",
    "Dispatcher",
    "FileSystemTarget",
    "NullTarget",
    "Operation",
    "QueueEntry",
    "QueueStore",
    "SolrTarget",
    "get_dispatcher",
    "make_committer",
    "prune",
]
