import pytest

from doc_committer.storage.queue import QueueStore
from doc_committer.target.null import NullTarget


@pytest.fixture(scope="function")
def tmp_queue(tmp_path) -> QueueStore:
    return QueueStore(tmp_path / "queue")


@pytest.fixture(scope="function")
def null_target() -> NullTarget:
    return NullTarget()
