import re
from typing import Any, Iterable, Mapping, TypeAlias

from banal import ensure_list, is_listish

Metadata: TypeAlias = dict[str, list[str]]
"""Ordered mapping of a key to one or many values"""

RE_TAGS = re.compile(r"<.*?>")


def make_checksum_key(ch: str) -> str:
    """
    Generate a path key for the given SHA1 checksum

    Examples:
        >>> make_checksum_key("5a6acf229ba576d9a40b09292595658bbb74ef56")
        "5a/6a/cf/5a6acf229ba576d9a40b09292595658bbb74ef56"

    Args:
        ch: SHA1 checksum

    Raises:
        ValueError: If the checksum is not 40 chars long (SHA1)

    Returns:
        The prefixed SHA1 path
    """
    if len(ch) != 40:  # sha1
        raise ValueError(f"Invalid checksum: `{ch}`")
    return "/".join((ch[:2], ch[2:4], ch[4:6], ch))


def ensure_metadata(data: Mapping[str, Any] | None = None) -> Metadata:
    """
    Normalize producer metadata into an ordered mapping of string keys to
    lists of string values. Key order is preserved, `None` values (and keys
    left without any value) are dropped.

    Examples:
        >>> ensure_metadata({"title": "Foo", "tags": ["a", "b"]})
        {"title": ["Foo"], "tags": ["a", "b"]}
    """
    metadata: Metadata = {}
    for key, value in (data or {}).items():
        values = value if is_listish(value) else ensure_list(value)
        values = [str(v) for v in values if v is not None]
        if values:
            metadata[str(key)] = values
    return metadata


def strip_tags(text: str) -> str:
    """Replace markup tags by a single space, line by line"""
    return "\n".join(RE_TAGS.sub(" ", line) for line in text.splitlines())


def parse_metadata(pairs: Iterable[str]) -> Metadata:
    """
    Parse `key=value` strings (as given on the command line) into metadata,
    repeated keys collect multiple values.
    """
    metadata: Metadata = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid metadata: `{pair}` (use `key=value`)")
        metadata.setdefault(key.strip(), []).append(value)
    return metadata
