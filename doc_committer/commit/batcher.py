from itertools import islice
from typing import Generator, Iterable, Iterator

from doc_committer.model.operation import Batch, QueueEntry


def next_batch(pending: Iterator[QueueEntry], max_size: int) -> Batch:
    """
    Take up to `max_size` entries from the front of the pending entries,
    without skipping or reordering. The returned batch is empty if nothing is
    pending anymore.

    Args:
        pending: Iterator (not a re-iterable sequence) of ordered entries
        max_size: Maximum batch size

    Raises:
        ValueError: If `max_size` is smaller than 1
    """
    if max_size < 1:
        raise ValueError(f"Invalid batch size: `{max_size}`")
    return tuple(islice(pending, max_size))


def iter_batches(
    pending: Iterable[QueueEntry], max_size: int
) -> Generator[Batch, None, None]:
    """Split pending entries into successive batches of at most `max_size`"""
    entries = iter(pending)
    while batch := next_batch(entries, max_size):
        yield batch
