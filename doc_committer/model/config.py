from pathlib import Path
from typing import Any, Literal, Self

import yaml
from anystore.io import smart_read, smart_write
from anystore.model import BaseModel
from anystore.types import Uri
from anystore.util import dump_yaml_model

from doc_committer.exceptions import ImproperlyConfigured
from doc_committer.settings import Settings

TargetType = Literal["solr", "fs", "null"]


class TargetConfig(BaseModel):
    """One delivery target with its own queue. Unset values fall back to the
    global committer configuration."""

    name: str
    type: TargetType = "null"
    queue_dir: str | None = None
    queue_batch_size: int | None = None
    commit_batch_size: int | None = None
    max_retries: int | None = None
    retry_delay: float | None = None
    retry_backoff: float | None = None
    options: dict[str, Any] = {}


class CommitterConfig(BaseModel):
    queue_dir: str
    queue_batch_size: int
    commit_batch_size: int
    max_retries: int
    retry_delay: float
    retry_backoff: float
    targets: list[TargetConfig] = []

    def get_queue_dir(self, target: TargetConfig) -> str:
        """Each target gets its own queue root, by default `<queue_dir>/<name>`"""
        if target.queue_dir:
            return target.queue_dir
        if len(self.targets) == 1:
            return self.queue_dir
        return str(Path(self.queue_dir) / target.name)

    def get_value(self, target: TargetConfig, key: str) -> Any:
        value = getattr(target, key)
        if value is None:
            return getattr(self, key)
        return value

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **data: Any) -> Self:
        settings = settings or Settings()
        defaults = {
            "queue_dir": settings.queue_dir,
            "queue_batch_size": settings.queue_batch_size,
            "commit_batch_size": settings.commit_batch_size,
            "max_retries": settings.max_retries,
            "retry_delay": settings.retry_delay,
            "retry_backoff": settings.retry_backoff,
        }
        return cls(**{**defaults, **data})


def load_config(uri: Uri | None = None, **data: Any) -> CommitterConfig:
    """
    Load the committer configuration from a yaml file, patched with `**data`.
    Values missing in the file are taken from the environment settings.

    Args:
        uri: Local or remote path to a `config.yml`
        data: Additional data to override

    Raises:
        ImproperlyConfigured: No targets are configured

    Returns:
        The configuration model
    """
    config: dict[str, Any] = {}
    if uri is not None:
        config = yaml.safe_load(smart_read(uri, "r")) or {}
    config = {**config, **{k: v for k, v in data.items() if v is not None}}
    if not config.get("targets"):
        raise ImproperlyConfigured("No targets configured")
    return CommitterConfig.from_settings(**config)


def save_config(uri: Uri, config: CommitterConfig) -> None:
    smart_write(uri, dump_yaml_model(config, clean=True, newline=True))
