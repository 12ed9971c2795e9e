"""Commit documents as json files to a local or remote file store."""

import hashlib
import json
from typing import Any

from anystore.store import get_store
from anystore.types import Uri
from anystore.util import ensure_uri

from doc_committer.model.job import CommitResult
from doc_committer.model.operation import Batch, QueueEntry
from doc_committer.target.base import BaseTarget
from doc_committer.util import make_checksum_key


def make_key(reference: str) -> str:
    """
    Get the storage key for a document reference

    Layout: ab/cd/ef/{sha1(reference)}.json
    """
    ch = hashlib.sha1(reference.encode()).hexdigest()
    return f"{make_checksum_key(ch)}.json"


class FileSystemTarget(BaseTarget):
    """
    Writes every committed document into an anystore backend (local directory,
    s3, ...), keyed by its reference. Deletions remove the key again.
    """

    type = "fs"

    def __init__(
        self, uri: Uri | None = None, name: str | None = None, **options: Any
    ) -> None:
        super().__init__(name, **options)
        self.uri = uri or "./committed"
        self._store = get_store(ensure_uri(self.uri), serialization_mode="raw")

    def make_document(self, entry: QueueEntry) -> bytes:
        data = {
            "reference": entry.reference,
            "metadata": entry.metadata,
            "content": entry.read().decode("utf-8", errors="replace"),
        }
        return json.dumps(data, ensure_ascii=False).encode() + b"\n"

    def get(self, reference: str) -> dict[str, Any] | None:
        key = make_key(reference)
        if self._store.exists(key):
            return json.loads(self._store.get(key))
        return None

    def commit_add(self, batch: Batch) -> CommitResult:
        try:
            for entry in batch:
                self._store.put(make_key(entry.reference), self.make_document(entry))
        except OSError as e:
            return CommitResult.fail_transient(e)
        self.log.info(f"Stored {len(batch)} documents", uri=str(self.uri))
        return CommitResult.ok()

    def commit_delete(self, batch: Batch) -> CommitResult:
        try:
            for entry in batch:
                key = make_key(entry.reference)
                if self._store.exists(key):
                    self._store.delete(key)
        except OSError as e:
            return CommitResult.fail_transient(e)
        self.log.info(f"Deleted {len(batch)} documents", uri=str(self.uri))
        return CommitResult.ok()
