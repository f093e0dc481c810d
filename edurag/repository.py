"""
Document Repositories
----------------------
The pipeline only needs `list(filter=None) -> list[Document]`.

  InMemoryDocumentRepository -- documents held in a list (tests, embedding)
  JsonDocumentRepository     -- one JSON file per document in a directory

A repository that cannot be read raises RepositoryError; a single
malformed file is skipped with a warning.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Protocol, runtime_checkable

import orjson
from loguru import logger
from pydantic import ValidationError

from edurag.errors import RepositoryError
from edurag.schemas import Document
from edurag.utils.helpers import load_json

DocumentFilter = Callable[[Document], bool]


@runtime_checkable
class DocumentRepository(Protocol):
    def list(self, filter: Optional[DocumentFilter] = None) -> list[Document]:
        ...


class InMemoryDocumentRepository:
    def __init__(self, documents: Iterable[Document] = ()) -> None:
        self._documents: list[Document] = list(documents)

    def add(self, document: Document) -> None:
        self._documents.append(document)

    def remove(self, document_id: str) -> None:
        self._documents = [d for d in self._documents if d.id != document_id]

    def list(self, filter: Optional[DocumentFilter] = None) -> list[Document]:
        return [d for d in self._documents if filter is None or filter(d)]


class JsonDocumentRepository:
    """
    Reads `*.json` files from a directory, sorted by file name.

    Each file holds one document object, or a list of them:
        {"id": "...", "title": "...", "subject": "...", "content": "..."}
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def list(self, filter: Optional[DocumentFilter] = None) -> list[Document]:
        if not self.directory.is_dir():
            raise RepositoryError(f"Documents directory not found: {self.directory}")

        try:
            paths = sorted(self.directory.glob("*.json"))
        except OSError as exc:
            raise RepositoryError(f"Cannot list {self.directory}: {exc}") from exc

        documents: list[Document] = []
        for path in paths:
            try:
                raw: Any = load_json(path)
            except OSError as exc:
                raise RepositoryError(f"Cannot read {path}: {exc}") from exc
            except orjson.JSONDecodeError as exc:
                logger.warning(f"[Repository] Skipping {path.name}: invalid JSON ({exc})")
                continue

            for item in raw if isinstance(raw, list) else [raw]:
                try:
                    documents.append(Document.model_validate(item))
                except ValidationError as exc:
                    logger.warning(f"[Repository] Skipping entry in {path.name}: {exc.error_count()} error(s)")

        logger.info(f"[Repository] Loaded {len(documents)} documents from {self.directory}")
        return [d for d in documents if filter is None or filter(d)]

    def get(self, document_id: str) -> Optional[Document]:
        return next((d for d in self.list() if d.id == document_id), None)
