"""
Path conventions for the committer queue.

The queue is a plain directory tree on durable local storage. Every queued
operation is one entry, entries are immutable once written and only ever
deleted after the target confirmed them.

Queue Layout
------------

::

    queue/
        add/                                    # pending additions
            YYYY/MM/DD/HH/mm/                   # creation time partition (UTC)
                {ts}-{seq}                      # document content
                {ts}-{seq}.meta                 # metadata sidecar (json)
                .{ts}-{seq}.tmp                 # in-flight write, never listed
        remove/                                 # pending removals
            YYYY/MM/DD/HH/mm/
                {ts}-{seq}                      # the document reference

Entry names sort in creation order: a zero-padded nanosecond timestamp and a
zero-padded process-wide sequence number. The partition of an entry is
derived from the same timestamp, so walking the sorted partitions and the
sorted names inside them yields the queue in enqueue order.
"""

from datetime import datetime, timezone

ADD = "add"
"""Base path for pending additions"""

REMOVE = "remove"
"""Base path for pending removals"""

KINDS = (ADD, REMOVE)

META_SUFFIX = ".meta"
"""Metadata sidecar suffix for add entries"""

TMP_SUFFIX = ".tmp"
"""Suffix of not yet completed writes"""

REFERENCE_KEY = "committer.reference"
"""Metadata key holding the document reference in the sidecar"""

PARTITION_FORMAT = "%Y/%m/%d/%H/%M"
"""Time based partitioning, one directory per minute"""

PARTITION_DEPTH = PARTITION_FORMAT.count("/") + 1

TS_WIDTH = 20
SEQ_WIDTH = 12


def entry_name(ts: int, seq: int) -> str:
    """
    Get the sortable file name of an entry.

    Args:
        ts: Creation timestamp in nanoseconds since epoch
        seq: Process-wide sequence number

    Returns:
        Name like "01736937000000000000-000000000042"
    """
    return f"{ts:0{TS_WIDTH}d}-{seq:0{SEQ_WIDTH}d}"


def entry_ts(name: str) -> int:
    """Get the nanosecond timestamp an entry name was created with"""
    ts, _, _ = name.partition("-")
    return int(ts)


def is_entry(name: str) -> bool:
    """Whether the given file name is a completed entry (content or reference
    file, not a sidecar or an in-flight temp file)"""
    if name.startswith(".") or name.endswith(META_SUFFIX):
        return False
    ts, sep, seq = name.partition("-")
    return bool(sep) and ts.isdigit() and seq.isdigit()


def partition(ts: int) -> str:
    """
    Get the time partition for a nanosecond timestamp.

    Layout: YYYY/MM/DD/HH/mm
    """
    dt = datetime.fromtimestamp(ts / 1_000_000_000, tz=timezone.utc)
    return dt.strftime(PARTITION_FORMAT)


def entry_path(kind: str, name: str) -> str:
    """
    Get the queue-relative path for an entry.

    Layout: {kind}/YYYY/MM/DD/HH/mm/{name}
    """
    return f"{kind}/{partition(entry_ts(name))}/{name}"


def meta(path: str) -> str:
    """Get the sidecar path for an add entry content path"""
    return f"{path}{META_SUFFIX}"


def tmp(name: str) -> str:
    """Get the temporary file name an entry file is written to first"""
    return f".{name}{TMP_SUFFIX}"
