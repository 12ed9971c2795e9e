from datetime import datetime, timedelta
from enum import Enum
from functools import cached_property
from typing import Literal, Self

from anystore.logging import BoundLogger, get_logger
from anystore.model import BaseModel
from anystore.util import ensure_uuid
from pydantic import field_validator


class CommitState(str, Enum):
    idle = "idle"
    listing = "listing"
    batching = "batching"
    delivering = "delivering"
    succeeding = "succeeding"
    retrying = "retrying"
    failing = "failing"


class CommitResult(BaseModel):
    """Outcome of a single target call"""

    status: Literal["ok", "transient", "permanent"] = "ok"
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status == "ok"

    @property
    def transient(self) -> bool:
        return self.status == "transient"

    @classmethod
    def ok(cls) -> Self:
        return cls(status="ok")

    @classmethod
    def fail_transient(cls, error: Exception | str) -> Self:
        return cls(status="transient", error=str(error))

    @classmethod
    def fail_permanent(cls, error: Exception | str) -> Self:
        return cls(status="permanent", error=str(error))


class CommitJob(BaseModel):
    """Status report of one commit cycle for a queue"""

    run_id: str
    queue: str
    target: str
    started: datetime | None = None
    stopped: datetime | None = None
    running: bool = False
    added: int = 0
    removed: int = 0
    batches: int = 0
    attempts: int = 0
    errors: int = 0
    exc: str | None = None
    took: timedelta = timedelta()

    @field_validator("run_id", mode="before")
    @classmethod
    def ensure_run_id(cls, value: str | None = None) -> str:
        return value or ensure_uuid()

    @property
    def done(self) -> int:
        return self.added + self.removed

    @property
    def failed(self) -> bool:
        return self.exc is not None

    def stop(self, exc: Exception | None = None) -> None:
        self.running = False
        self.stopped = datetime.now()
        if exc is not None:
            self.exc = str(exc)
        if self.started and self.stopped:
            self.took = self.stopped - self.started

    @classmethod
    def start(cls, **kwargs) -> Self:
        kwargs["run_id"] = cls.ensure_run_id(kwargs.get("run_id"))
        job = cls(**kwargs)
        job.started = datetime.now()
        job.running = True
        return job

    @cached_property
    def log(self) -> BoundLogger:
        return get_logger(
            f"{__name__}.{self.target}",
            run_id=self.run_id,
            queue=self.queue,
            target=self.target,
        )
