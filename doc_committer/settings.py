from anystore.settings import BaseSettings
from pydantic_settings import SettingsConfigDict

DEFAULT_QUEUE_DIR = "./queue"
DEFAULT_QUEUE_BATCH_SIZE = 1000
DEFAULT_COMMIT_BATCH_SIZE = 100


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="committer_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    queue_dir: str = DEFAULT_QUEUE_DIR
    queue_batch_size: int = DEFAULT_QUEUE_BATCH_SIZE  # enqueues before auto commit
    commit_batch_size: int = DEFAULT_COMMIT_BATCH_SIZE  # items per delivery call
    max_retries: int = 0
    retry_delay: float = 0  # seconds
    retry_backoff: float = 1.0

    log_level: str = "info"
    debug: bool = False
