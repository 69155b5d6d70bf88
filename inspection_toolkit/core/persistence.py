from __future__ import annotations

"""Local document persistence adapters.

Both classes satisfy :class:`~inspection_toolkit.core.interfaces.DocumentPersistence`.
``InMemoryPersistence`` backs tests and throwaway sessions;
``JsonFilePersistence`` stores one ``<document_id>.json`` file per document.

Public API:
- InMemoryPersistence(documents=None)
- JsonFilePersistence(base_dir)
- .load(document_id) -> Document
- .save(document_id, document) -> datetime
"""

from datetime import datetime
import json
import logging
import os
from pathlib import Path
import tempfile
import threading
from typing import Dict, Iterable, List, Optional

from inspection_toolkit.core.errors import InvalidFieldError, PathNotFoundError, SaveError
from inspection_toolkit.core.models import Document, utcnow
from inspection_toolkit.core.serialization import document_from_dict, document_to_dict

__all__ = ["InMemoryPersistence", "JsonFilePersistence"]

logger = logging.getLogger(__name__)


class InMemoryPersistence:
    """Keep documents in a process-local dict.

    Documents are immutable, so stored values are shared with callers
    without copying.
    """

    def __init__(self, documents: Optional[Iterable[Document]] = None) -> None:
        self._documents: Dict[str, Document] = {d.id: d for d in (documents or ())}
        self._lock = threading.Lock()

    def load(self, document_id: str) -> Document:
        with self._lock:
            try:
                return self._documents[document_id]
            except KeyError:
                raise PathNotFoundError(f"No document with id '{document_id}'") from None

    def save(self, document_id: str, document: Document) -> datetime:
        with self._lock:
            self._documents[document_id] = document
        return utcnow()

    def list_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._documents)


class JsonFilePersistence:
    """Store each document as UTF-8 JSON under *base_dir*.

    Writes go to a temporary file in the same directory that is then renamed
    over the target, so a failed save leaves the previous version intact.
    """

    def __init__(self, base_dir) -> None:
        self._base_dir = Path(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def path_for(self, document_id: str) -> Path:
        safe = document_id.replace(os.sep, "_").replace("/", "_")
        return self._base_dir / f"{safe}.json"

    def load(self, document_id: str) -> Document:
        path = self.path_for(document_id)
        if not path.exists():
            raise PathNotFoundError(f"No document with id '{document_id}'", str(path))
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise InvalidFieldError(f"Invalid JSON in {path.name}: {exc}", str(path)) from exc
        except OSError as exc:
            raise SaveError(f"Cannot read {path}: {exc}", str(path), cause=exc) from exc
        logger.info("Loaded document '%s' from %s", document_id, path)
        return document_from_dict(data)

    def save(self, document_id: str, document: Document) -> datetime:
        path = self.path_for(document_id)
        payload = document_to_dict(document)
        tmp_name = None
        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".tmp_", suffix=".json", dir=self._base_dir)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Saving document '%s' failed: %s", document_id, exc)
            raise SaveError(f"Cannot save document '{document_id}': {exc}", str(path), cause=exc) from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
        logger.info("Saved document '%s' to %s", document_id, path)
        return utcnow()
