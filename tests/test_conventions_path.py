from doc_committer.core.conventions import path

# 2025-01-15 10:30:00 UTC
TS = 1736937000 * 1_000_000_000


def test_conventions_path():
    name = path.entry_name(TS, 42)
    assert name == "01736937000000000000-000000000042"
    assert path.entry_ts(name) == TS
    assert path.partition(TS) == "2025/01/15/10/30"
    assert path.entry_path(path.ADD, name) == f"add/2025/01/15/10/30/{name}"
    assert path.entry_path(path.REMOVE, name) == f"remove/2025/01/15/10/30/{name}"
    assert path.meta(f"add/{name}") == f"add/{name}.meta"
    assert path.tmp(name) == f".{name}.tmp"
    assert path.PARTITION_DEPTH == 5


def test_conventions_path_ordering():
    names = [
        path.entry_name(TS, 2),
        path.entry_name(TS + 1, 0),
        path.entry_name(TS, 1),
        path.entry_name(TS * 2, 3),
    ]
    assert sorted(names) == [names[2], names[0], names[1], names[3]]
    # partitions sort like the timestamps they are made of
    assert path.partition(TS) < path.partition(TS + 60 * 1_000_000_000)


def test_conventions_path_is_entry():
    name = path.entry_name(TS, 1)
    assert path.is_entry(name)
    assert not path.is_entry(path.meta(name))
    assert not path.is_entry(path.tmp(name))
    assert not path.is_entry(path.tmp(path.meta(name)))
    assert not path.is_entry("README")
    assert not path.is_entry("abc-def")
    assert not path.is_entry(".DS_Store")
