"""Mapping document lookup.

The engine resolves mapping keys through any object satisfying
`MappingRepository`. `InMemoryMappingRepository` is the bundled
implementation used by the CLI and tests; production hosts typically plug in
their own storage-backed repository.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Union

from pydantic import ValidationError

from .models.mapping import MappingDocument

logger = logging.getLogger(__name__)

__all__ = ["InMemoryMappingRepository", "MappingRepository", "load_document"]


class MappingRepository(Protocol):  # pragma: no cover - structural typing helper
    def find_by_id_or_name(self, key: str) -> Optional[MappingDocument]: ...


def load_document(path: Union[str, Path]) -> MappingDocument:
    """Read and validate a single JSON mapping document.

    Raises:
        ValueError: the file is not valid JSON.
        pydantic.ValidationError: the JSON does not describe a mapping document.
    """
    text = Path(path).read_text(encoding="utf-8")
    raw: Any = json.loads(text)
    return MappingDocument.model_validate(raw)


class InMemoryMappingRepository:
    """Dictionary-backed repository keyed by document id, with name fallback."""

    def __init__(self, documents: Iterable[MappingDocument] = ()):
        self._by_id: Dict[str, MappingDocument] = {}
        self._by_name: Dict[str, MappingDocument] = {}
        for doc in documents:
            self.add(doc)

    def add(self, document: MappingDocument) -> None:
        self._by_id[document.id] = document
        if document.name:
            self._by_name[document.name] = document

    def find_by_id_or_name(self, key: str) -> Optional[MappingDocument]:
        if not key:
            return None
        return self._by_id.get(key) or self._by_name.get(key)

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[MappingDocument]:
        return iter(list(self._by_id.values()))

    @classmethod
    def from_directory(cls, directory: Union[str, Path]) -> "InMemoryMappingRepository":
        """Load every `*.json` file under `directory` (non-recursive).

        Files that fail to parse or validate are logged and skipped so one
        broken document does not take down the others.
        """
        repo = cls()
        base = Path(directory)
        if not base.is_dir():
            logger.warning("Mappings directory %s does not exist", base)
            return repo
        skipped: List[str] = []
        for path in sorted(base.glob("*.json")):
            try:
                repo.add(load_document(path))
            except (OSError, ValueError, ValidationError) as e:
                skipped.append(path.name)
                logger.warning("Skipping invalid mapping document %s: %s", path, e)
        logger.info(
            "Loaded %d mapping document(s) from %s (skipped=%d)", len(repo), base, len(skipped)
        )
        return repo
