from typing import Any

from doc_committer.exceptions import ImproperlyConfigured
from doc_committer.target.base import BaseTarget
from doc_committer.target.fs import FileSystemTarget
from doc_committer.target.null import NullTarget
from doc_committer.target.solr import SolrTarget

TARGETS: dict[str, type[BaseTarget]] = {
    NullTarget.type: NullTarget,
    SolrTarget.type: SolrTarget,
    FileSystemTarget.type: FileSystemTarget,
}


def get_target(type: str, name: str | None = None, **options: Any) -> BaseTarget:
    """
    Get a configured target adapter by its type name (`solr`, `fs`, `null`)

    Raises:
        ImproperlyConfigured: Unknown type or invalid options
    """
    if type not in TARGETS:
        raise ImproperlyConfigured(f"Invalid target type: `{type}`")
    return TARGETS[type](name=name, **options)


__all__ = [
    "BaseTarget",
    "FileSystemTarget",
    "NullTarget",
    "SolrTarget",
    "get_target",
]
