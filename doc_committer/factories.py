"""Factory functions to build committers from configuration.

Example:
    ```python
    from doc_committer.factories import get_dispatcher

    dispatcher = get_dispatcher("./committer.yml")
    dispatcher.add("doc1", b"hello", {"title": "Hello"})
    dispatcher.commit()
    ```
"""

from typing import Any

from anystore.types import Uri

from doc_committer.committer import Committer
from doc_committer.dispatcher import Dispatcher
from doc_committer.model.config import CommitterConfig, TargetConfig, load_config
from doc_committer.storage.queue import QueueStore
from doc_committer.target import get_target


def make_committer(config: CommitterConfig, target: TargetConfig) -> Committer:
    """
    Build the committer (queue, driver and target adapter) for one configured
    target.

    Raises:
        ImproperlyConfigured: Invalid target type or options
    """
    return Committer(
        QueueStore(config.get_queue_dir(target)),
        get_target(target.type, name=target.name, **target.options),
        queue_batch_size=config.get_value(target, "queue_batch_size"),
        batch_size=config.get_value(target, "commit_batch_size"),
        max_retries=config.get_value(target, "max_retries"),
        retry_delay=config.get_value(target, "retry_delay"),
        retry_backoff=config.get_value(target, "retry_backoff"),
    )


def make_dispatcher(config: CommitterConfig) -> Dispatcher:
    return Dispatcher(make_committer(config, t) for t in config.targets)


def get_dispatcher(uri: Uri | None = None, **data: Any) -> Dispatcher:
    """
    Get a dispatcher for all targets of the configuration file at `uri`
    (optional), patched with `**data`.

    Args:
        uri: Path to a `config.yml`
        data: Settings to override (`queue_dir`, `commit_batch_size`, ...)

    Returns:
        dispatcher
    """
    return make_dispatcher(load_config(uri, **data))
