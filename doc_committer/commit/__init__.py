"""Delivery of queued operations.

The batcher cuts the ordered queue into bounded batches, the driver delivers
them to a target with retries.
"""

from doc_committer.commit.batcher import iter_batches, next_batch
from doc_committer.commit.driver import CommitDriver

__all__ = ["CommitDriver", "iter_batches", "next_batch"]
