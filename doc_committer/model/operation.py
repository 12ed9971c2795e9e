from enum import Enum
from pathlib import Path
from typing import IO, Any, Generator, Self, TypeAlias

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from doc_committer.core.conventions import path
from doc_committer.exceptions import QueueIOError
from doc_committer.util import Metadata, ensure_metadata


class OperationKind(str, Enum):
    add = path.ADD
    remove = path.REMOVE


class Operation(BaseModel):
    """One pending unit of work as handed over by the producer"""

    model_config = ConfigDict(frozen=True)

    kind: OperationKind
    reference: str
    """Stable external document id"""
    content: bytes | None = None
    """Document body, additions only"""
    metadata: Metadata = {}

    @field_validator("metadata", mode="before")
    @classmethod
    def clean_metadata(cls, value: Any) -> Metadata:
        return ensure_metadata(value)

    @model_validator(mode="after")
    def check_content(self) -> Self:
        if self.kind == OperationKind.remove and self.content is not None:
            raise ValueError("Remove operations can't have content")
        if not self.reference:
            raise ValueError("Reference is empty")
        return self

    @classmethod
    def add(
        cls, reference: str, content: bytes | str = b"", metadata: Any = None
    ) -> Self:
        if isinstance(content, str):
            content = content.encode()
        return cls(
            kind=OperationKind.add,
            reference=reference,
            content=content,
            metadata=metadata,
        )

    @classmethod
    def remove(cls, reference: str, metadata: Any = None) -> Self:
        return cls(kind=OperationKind.remove, reference=reference, metadata=metadata)


class QueueEntry(BaseModel):
    """
    A persisted operation. Content is never held in memory, use `open()` or
    `read()` to load it when the entry is delivered.
    """

    model_config = ConfigDict(frozen=True)

    kind: OperationKind
    name: str
    """Sortable entry name, unique within the queue"""
    path: Path
    """Absolute path to the content (add) or reference (remove) file"""
    reference: str
    metadata: Metadata = {}

    @property
    def meta_path(self) -> Path | None:
        if self.kind == OperationKind.add:
            return Path(path.meta(str(self.path)))
        return None

    @property
    def paths(self) -> tuple[Path, ...]:
        """All files belonging to this entry, the sidecar last"""
        if self.meta_path is None:
            return (self.path,)
        return (self.path, self.meta_path)

    def open(self) -> IO[bytes]:
        try:
            return self.path.open("rb")
        except OSError as e:
            raise QueueIOError(f"Cannot open queue entry `{self.path}`: {e}") from e

    def read(self) -> bytes:
        with self.open() as fh:
            return fh.read()

    def stream(self, chunk_size: int = 8192) -> Generator[bytes, None, None]:
        with self.open() as fh:
            while chunk := fh.read(chunk_size):
                yield chunk

    def __repr__(self) -> str:
        clz = self.__class__.__name__
        return f"<{clz}({self.kind.value}:{self.name} `{self.reference}`)>"


Batch: TypeAlias = tuple[QueueEntry, ...]
"""Ordered entries of the same kind handed to one target call"""

QueueEntries: TypeAlias = Generator[QueueEntry, None, None]
