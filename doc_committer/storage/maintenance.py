"""Directory maintenance - reclaim partitions left behind by drained entries."""

import os
from pathlib import Path

from anystore.logging import get_logger

from doc_committer.core.conventions import path
from doc_committer.model.operation import OperationKind
from doc_committer.storage.queue import QueueStore

log = get_logger(__name__)


def prune(queue: QueueStore) -> int:
    """
    Remove empty partition directories of the queue. Leftovers of interrupted
    writes and deletes (temporary files, sidecars without content) are removed
    first. Directories currently written into are skipped.

    This is pure maintenance: errors are logged and the directory is retried
    the next time.

    Args:
        queue: The queue to prune

    Returns:
        Number of removed directories
    """
    removed = 0
    for kind in OperationKind:
        base = queue.root / kind.value
        for dirpath, _, filenames in os.walk(base, topdown=False):
            directory = Path(dirpath)
            if directory == base:
                continue
            try:
                with queue.lock:
                    if queue.is_writing(directory):
                        continue
                    _remove_orphans(directory, filenames)
                    if not os.listdir(directory):
                        directory.rmdir()
                        removed += 1
            except OSError as e:
                log.warning(
                    f"Cannot prune directory: {e}",
                    queue=queue.uri,
                    directory=str(directory),
                )
    if removed:
        log.info(f"Pruned {removed} empty directories", queue=queue.uri)
    return removed


def _remove_orphans(directory: Path, filenames: list[str]) -> None:
    for name in filenames:
        if name.endswith(path.META_SUFFIX):
            if (directory / name[: -len(path.META_SUFFIX)]).exists():
                continue
        elif not name.endswith(path.TMP_SUFFIX):
            continue
        orphan = directory / name
        orphan.unlink(missing_ok=True)
        log.warning("Removed orphaned queue file", path=str(orphan))
