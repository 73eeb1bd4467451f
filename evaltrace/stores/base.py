"""Stage repositories — one directory of JSON records per pipeline stage."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Generic, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class Repository(ABC, Generic[T]):
    """Read-only source of every record a stage has persisted."""

    @abstractmethod
    def load_all(self) -> list[T]:
        """Return all parseable records. Never fails because of one bad record."""
        ...


class JsonDirRepository(Repository[T]):
    """Repository backed by a directory with one JSON file per record.

    Files whose name starts with ``_`` are reserved for producer bookkeeping
    (e.g. ``_meta.json``) and are not records. A missing directory means the
    stage has not produced anything yet.
    """

    def __init__(self, directory: str | Path, model: type[T], *, extension: str = ".json"):
        self.directory = Path(directory)
        self.model = model
        self.extension = extension

    def record_files(self) -> list[Path]:
        """Record files in sorted name order so repeated loads are identical."""
        try:
            entries = list(self.directory.iterdir())
        except (FileNotFoundError, NotADirectoryError):
            return []
        return sorted(
            p for p in entries
            if p.suffix == self.extension and not p.name.startswith("_") and p.is_file()
        )

    def load_all(self) -> list[T]:
        records: list[T] = []
        for path in self.record_files():
            try:
                records.append(self.model.model_validate_json(path.read_bytes()))
            except (OSError, ValidationError) as e:
                logger.warning(f"Skipping malformed record {self.directory.name}/{path.name}: {e}")
        logger.debug(f"Loaded {len(records)} {self.model.__name__} records from {self.directory}")
        return records


class InMemoryRepository(Repository[T]):
    """Fixed record list, for tests and for callers that already hold the data."""

    def __init__(self, records: Iterable[T] = ()):
        self.records = list(records)

    def load_all(self) -> list[T]:
        return list(self.records)
