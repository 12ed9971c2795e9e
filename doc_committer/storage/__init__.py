"""Durable local storage of queued operations.

The queue store persists and lists entries, maintenance keeps its directory
tree small. No knowledge about targets or delivery.
"""

from doc_committer.storage.maintenance import prune
from doc_committer.storage.queue import QueueStore

__all__ = ["QueueStore", "prune"]
