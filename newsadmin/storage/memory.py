from __future__ import annotations

import copy
import threading
from typing import Any, Dict, Iterable, List, Optional, Sequence

from newsadmin.logging import get_logger
from newsadmin.storage.common import (
    COLLECTIONS,
    UNIQUE_FIELDS,
    DocumentQuery,
    Metric,
    UserRecordsMixin,
    group_documents,
    matches,
    sort_documents,
    validate_metrics,
    window,
)
from newsadmin.storage.errors import ConstraintViolation
from newsadmin.storage.models import utcnow


class MemoryStore(UserRecordsMixin):
    """In-process document store used for tests and local development."""

    def __init__(self) -> None:
        self.logger = get_logger(__name__)
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {
            name: {} for name in COLLECTIONS
        }
        # Reentrant so composite operations can nest single-document calls
        self._data_lock = threading.RLock()

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        try:
            return self.collections[name]
        except KeyError as exc:
            raise KeyError(f"unknown collection '{name}'") from exc

    def _check_unique(self, collection: str, doc: Dict[str, Any]) -> None:
        for field_name in UNIQUE_FIELDS.get(collection, ()):
            value = doc.get(field_name)
            if value is None:
                continue
            for other in self._collection(collection).values():
                if other["id"] != doc["id"] and other.get(field_name) == value:
                    raise ConstraintViolation(
                        f"{field_name} already exists",
                        {"collection": collection, "field": field_name},
                        field=field_name,
                    )

    def insert(self, collection: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        with self._data_lock:
            docs = self._collection(collection)
            if doc["id"] in docs:
                raise ConstraintViolation(
                    "id already exists", {"collection": collection}, field="id"
                )
            stored = copy.deepcopy(doc)
            now = utcnow()
            stored.setdefault("created_at", now)
            stored.setdefault("updated_at", now)
            self._check_unique(collection, stored)
            docs[stored["id"]] = stored
            return copy.deepcopy(stored)

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._data_lock:
            doc = self._collection(collection).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def find_one(self, collection: str, match: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        found = self.find(collection, DocumentQuery(match=match, limit=1))
        return found[0] if found else None

    def find(self, collection: str, query: DocumentQuery) -> List[Dict[str, Any]]:
        with self._data_lock:
            hits = [
                doc for doc in self._collection(collection).values() if matches(doc, query)
            ]
            hits = sort_documents(hits, query.sort)
            return copy.deepcopy(window(hits, query.skip, query.limit))

    def count(self, collection: str, query: Optional[DocumentQuery] = None) -> int:
        query = query or DocumentQuery()
        with self._data_lock:
            return sum(
                1 for doc in self._collection(collection).values() if matches(doc, query)
            )

    def update(
        self, collection: str, doc_id: str, changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Apply ``changes`` to one document (last write wins)."""
        with self._data_lock:
            docs = self._collection(collection)
            current = docs.get(doc_id)
            if current is None:
                return None
            updated = {**current, **copy.deepcopy(changes)}
            updated["id"] = doc_id
            updated["updated_at"] = utcnow()
            self._check_unique(collection, updated)
            docs[doc_id] = updated
            return copy.deepcopy(updated)

    def delete(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._data_lock:
            return self._collection(collection).pop(doc_id, None)

    def delete_many(self, collection: str, ids: Iterable[str]) -> int:
        with self._data_lock:
            docs = self._collection(collection)
            removed = 0
            for doc_id in set(ids):
                if docs.pop(doc_id, None) is not None:
                    removed += 1
            return removed

    def group(
        self,
        collection: str,
        metrics: Sequence[Metric],
        *,
        query: Optional[DocumentQuery] = None,
        key: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        validate_metrics(metrics)
        query = query or DocumentQuery()
        with self._data_lock:
            hits = [
                doc for doc in self._collection(collection).values() if matches(doc, query)
            ]
            return group_documents(hits, metrics, key=key)

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        return None
