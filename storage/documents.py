# storage/documents.py
from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union
from uuid import uuid4

import pytz

logger = logging.getLogger(__name__)


@dataclass
class Document:
    uuid: str
    kind: str
    payload: Dict[str, Any]
    search_key: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    created_at: str = ""

    @property
    def created_at_dt(self) -> datetime:
        return datetime.fromisoformat(self.created_at)


class DocumentStore(Protocol):
    """Key-value/document persistence used by the feed (entries) and LinkedIn (OAuth tokens)."""

    def create(
        self,
        kind: str,
        payload: Dict[str, Any],
        search_key: Optional[str] = None,
        tags: Sequence[str] = (),
    ) -> Document: ...

    def search_by_key(self, search_key: str) -> Optional[Document]: ...

    def get_all(self, kind: Optional[str] = None) -> List[Document]: ...


class JsonDocumentStore:
    """
    DocumentStore backed by a single JSON file (or memory only when `path` is None).

    - create() with a search_key that already exists replaces that document's
      payload/tags in place (same uuid), so tokens can be saved repeatedly.
    - Writes go to a temp file first and are then moved over the real file.
    - A lock serializes access; adapters call this from worker threads.
    """

    def __init__(self, path: Union[str, Path, None] = None):
        self.path = Path(path) if path else None
        self._lock = threading.Lock()
        self._docs: List[Document] = self._load()

    # ---------------- persistence ----------------

    def _load(self) -> List[Document]:
        if self.path is None or not self.path.exists():
            return []
        raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        docs = [Document(**item) for item in raw]
        logger.info("Loaded %d document(s) from %s", len(docs), self.path)
        return docs

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps([asdict(d) for d in self._docs], indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    # ---------------- public API ----------------

    def create(
        self,
        kind: str,
        payload: Dict[str, Any],
        search_key: Optional[str] = None,
        tags: Sequence[str] = (),
    ) -> Document:
        with self._lock:
            if search_key is not None:
                for doc in self._docs:
                    if doc.search_key == search_key:
                        doc.kind = kind
                        doc.payload = dict(payload)
                        doc.tags = list(tags)
                        self._save()
                        return doc

            doc = Document(
                uuid=str(uuid4()),
                kind=kind,
                payload=dict(payload),
                search_key=search_key,
                tags=list(tags),
                created_at=datetime.now(pytz.utc).isoformat(),
            )
            self._docs.append(doc)
            self._save()
            logger.debug("Stored %s document %s", kind, doc.uuid)
            return doc

    def search_by_key(self, search_key: str) -> Optional[Document]:
        with self._lock:
            return next((d for d in self._docs if d.search_key == search_key), None)

    def get(self, uuid: str) -> Optional[Document]:
        with self._lock:
            return next((d for d in self._docs if d.uuid == uuid), None)

    def get_all(self, kind: Optional[str] = None) -> List[Document]:
        with self._lock:
            return [d for d in self._docs if kind is None or d.kind == kind]
