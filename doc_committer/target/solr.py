"""Commit documents to Apache Solr via its JSON update handler."""

from typing import Any

import httpx

from doc_committer.core.conventions import path
from doc_committer.exceptions import ImproperlyConfigured, PermanentDeliveryError
from doc_committer.model.job import CommitResult
from doc_committer.model.operation import Batch, QueueEntry
from doc_committer.target.base import BaseTarget
from doc_committer.util import strip_tags

DEFAULT_CONTENT_FIELD = "content"
DEFAULT_TIMEOUT = 60


class SolrTarget(BaseTarget):
    """
    Apache Solr target.

    Additions are posted as a list of json documents to `{url}/update`,
    deletions as a delete-by-id command, both with an immediate commit.

    The Solr `id` is taken from the metadata field `id_source_field` or, if not
    set, from the document reference. All metadata is copied to the Solr
    document, the content (with markup tags replaced by spaces) goes into
    `content_target_field`.

    Server errors (5xx, 429) and connection problems are transient, all other
    client errors are permanent.
    """

    type = "solr"

    def __init__(
        self,
        url: str | None = None,
        id_source_field: str | None = None,
        content_target_field: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.Client | None = None,
        name: str | None = None,
        **options: Any,
    ) -> None:
        super().__init__(name, **options)
        if not url:
            raise ImproperlyConfigured("Solr URL is undefined.")
        self.url = url.rstrip("/")
        self.id_source_field = id_source_field
        self.content_target_field = content_target_field or DEFAULT_CONTENT_FIELD
        self.client = client or httpx.Client(timeout=timeout)

    def make_document(self, entry: QueueEntry) -> dict[str, Any]:
        doc: dict[str, Any] = {}
        for key, values in entry.metadata.items():
            doc[key] = values[0] if len(values) == 1 else values
        # computed fields win over metadata of the same name
        doc["id"] = self.get_id(entry)
        content = entry.read().decode("utf-8", errors="replace")
        doc[self.content_target_field] = strip_tags(content)
        return doc

    def get_id(self, entry: QueueEntry) -> str:
        if not self.id_source_field or self.id_source_field == path.REFERENCE_KEY:
            return entry.reference
        values = entry.metadata.get(self.id_source_field)
        if not values:
            raise PermanentDeliveryError(
                f"Missing id field `{self.id_source_field}` for `{entry.reference}`"
            )
        return values[0]

    def commit_add(self, batch: Batch) -> CommitResult:
        docs = [self.make_document(e) for e in batch]
        self.log.info(f"Sending {len(docs)} documents to Solr for update ...")
        return self.update(docs)

    def commit_delete(self, batch: Batch) -> CommitResult:
        self.log.info(f"Sending {len(batch)} documents to Solr for deletion ...")
        return self.update({"delete": [e.reference for e in batch]})

    def update(self, payload: Any) -> CommitResult:
        try:
            res = self.client.post(
                f"{self.url}/update", params={"commit": "true"}, json=payload
            )
        except httpx.TransportError as e:
            return CommitResult.fail_transient(f"Cannot reach Solr: {e}")
        if res.status_code == 429 or res.status_code >= 500:
            return CommitResult.fail_transient(
                f"Solr unavailable ({res.status_code}): {res.text}"
            )
        if res.status_code >= 400:
            return CommitResult.fail_permanent(
                f"Solr rejected batch ({res.status_code}): {res.text}"
            )
        return CommitResult.ok()

    def close(self) -> None:
        self.client.close()
