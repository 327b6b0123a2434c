"""Query and grouping primitives shared by the memory and postgres stores.

Both backends accept the same :class:`DocumentQuery` and :class:`Metric`
descriptions; the memory store evaluates them with the helpers below while
the postgres store translates them to SQL over JSONB bodies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from newsadmin.storage.models import User, new_id, parse_datetime

USERS = "users"
CREDENTIALS = "credentials"
NEWS = "news"
VIDEOS = "videos"
FEEDBACK = "feedback"

COLLECTIONS = (USERS, CREDENTIALS, NEWS, VIDEOS, FEEDBACK)

# collection -> fields that must be unique across its documents
UNIQUE_FIELDS: Dict[str, Tuple[str, ...]] = {
    USERS: ("email",),
    VIDEOS: ("youtube_id",),
}

ASCENDING = 1
DESCENDING = -1


@dataclass
class DocumentQuery:
    """A filtered, sorted, windowed read against one collection.

    ``match`` holds exact-match predicates; a list, tuple or set value means
    membership. ``search`` is a case-insensitive substring tested against
    ``search_fields`` and combined with OR. ``since`` bounds ``created_at``
    from below (inclusive).
    """

    match: Dict[str, Any] = field(default_factory=dict)
    search: Optional[str] = None
    search_fields: Tuple[str, ...] = ()
    since: Optional[datetime] = None
    sort: List[Tuple[str, int]] = field(default_factory=list)
    skip: int = 0
    limit: Optional[int] = None

    def without_window(self) -> "DocumentQuery":
        """Same predicates, no sort/skip/limit (used for counts)."""
        return DocumentQuery(
            match=dict(self.match),
            search=self.search,
            search_fields=self.search_fields,
            since=self.since,
        )


@dataclass(frozen=True)
class Metric:
    """One accumulator of a grouping pipeline.

    ``op`` is one of ``count``, ``sum``, ``avg``, ``count_eq`` or
    ``count_truthy``. ``field`` may be a tuple for ``sum`` to add several
    fields per document before summing.
    """

    name: str
    op: str
    field: Union[str, Tuple[str, ...], None] = None
    equals: Any = None


METRIC_OPS = frozenset({"count", "sum", "avg", "count_eq", "count_truthy"})

DAY_KEY = "$day"


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def jsonable(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a document to JSON-safe primitives (datetimes to ISO strings)."""
    result: Dict[str, Any] = {}
    for key, value in doc.items():
        if isinstance(value, datetime):
            result[key] = value.isoformat()
        elif isinstance(value, dict):
            result[key] = jsonable(value)
        elif isinstance(value, list):
            result[key] = [
                v.isoformat() if isinstance(v, datetime) else _plain(v) for v in value
            ]
        else:
            result[key] = _plain(value)
    return result


def _field_matches(value: Any, expected: Any) -> bool:
    value = _plain(value)
    if isinstance(expected, (list, tuple, set, frozenset)):
        return value in {_plain(e) for e in expected}
    return value == _plain(expected)


def matches(doc: Dict[str, Any], query: DocumentQuery) -> bool:
    for key, expected in query.match.items():
        if not _field_matches(doc.get(key), expected):
            return False
    if query.since is not None:
        created = parse_datetime(doc.get("created_at"))
        if created is None or created < query.since:
            return False
    if query.search:
        needle = query.search.lower()
        if not any(
            needle in str(doc.get(name) or "").lower() for name in query.search_fields
        ):
            return False
    return True


def _sort_key(value: Any) -> Tuple[int, Any]:
    # Missing values sort first in ascending order, as in a document store
    value = _plain(value)
    if value is None:
        return (0, 0)
    if isinstance(value, str):
        return (2, value)
    if isinstance(value, datetime):
        return (3, value)
    return (1, value)


def sort_documents(
    docs: Iterable[Dict[str, Any]], sort: Sequence[Tuple[str, int]]
) -> List[Dict[str, Any]]:
    ordered = list(docs)
    # Stable sorts applied from the least significant key
    for name, direction in reversed(list(sort)):
        ordered.sort(key=lambda d: _sort_key(d.get(name)), reverse=direction == DESCENDING)
    return ordered


def window(
    docs: List[Dict[str, Any]], skip: int, limit: Optional[int]
) -> List[Dict[str, Any]]:
    if skip:
        docs = docs[skip:]
    if limit is not None:
        docs = docs[:limit]
    return docs


def _numeric(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return value
    return None


def group_key(doc: Dict[str, Any], key: Optional[str]) -> Any:
    if key is None:
        return None
    if key == DAY_KEY:
        created = parse_datetime(doc.get("created_at"))
        return created.strftime("%Y-%m-%d") if created else None
    return _plain(doc.get(key))


def accumulate(docs: Sequence[Dict[str, Any]], metrics: Sequence[Metric]) -> Dict[str, Any]:
    """Evaluate ``metrics`` over one group of documents."""
    row: Dict[str, Any] = {}
    for metric in metrics:
        if metric.op == "count":
            row[metric.name] = len(docs)
        elif metric.op == "sum":
            names = metric.field if isinstance(metric.field, tuple) else (metric.field,)
            total = 0
            for doc in docs:
                for name in names:
                    total += _numeric(doc.get(name)) or 0
            row[metric.name] = total
        elif metric.op == "avg":
            values = [
                v for v in (_numeric(doc.get(metric.field)) for doc in docs) if v is not None
            ]
            row[metric.name] = sum(values) / len(values) if values else None
        elif metric.op == "count_eq":
            row[metric.name] = sum(
                1 for doc in docs if _field_matches(doc.get(metric.field), metric.equals)
            )
        elif metric.op == "count_truthy":
            row[metric.name] = sum(1 for doc in docs if doc.get(metric.field))
        else:
            raise ValueError(f"unsupported metric op '{metric.op}'")
    return row


def group_documents(
    docs: Iterable[Dict[str, Any]],
    metrics: Sequence[Metric],
    *,
    key: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Group documents by ``key`` and evaluate metrics per group.

    A ``None`` key yields a single group, and no rows at all when there
    are no documents.
    """
    buckets: Dict[Any, List[Dict[str, Any]]] = {}
    for doc in docs:
        buckets.setdefault(group_key(doc, key), []).append(doc)
    rows = []
    for bucket_key, bucket in buckets.items():
        row = {"key": bucket_key}
        row.update(accumulate(bucket, metrics))
        rows.append(row)
    return rows


def validate_metrics(metrics: Sequence[Metric]) -> None:
    for metric in metrics:
        if metric.op not in METRIC_OPS:
            raise ValueError(f"unsupported metric op '{metric.op}'")
        if metric.op != "count" and not metric.field:
            raise ValueError(f"metric '{metric.name}' requires a field")


class UserRecordsMixin:
    """Typed user/credential helpers layered on the generic document API.

    Expects ``insert``, ``get``, ``find_one`` and ``update`` from the
    concrete store.
    """

    def create_user(
        self,
        name: str,
        email: str,
        *,
        role: str = "user",
        status: str = "active",
        phone: Optional[str] = None,
        email_verified: bool = False,
    ) -> User:
        user = User(
            id=new_id(),
            name=name,
            email=email,
            role=role,
            status=status,
            phone=phone,
            email_verified=email_verified,
        )
        self.insert(USERS, user.to_document())  # type: ignore[attr-defined]
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        doc = self.get(USERS, user_id)  # type: ignore[attr-defined]
        return User.from_document(doc) if doc else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        doc = self.find_one(USERS, {"email": email.strip().lower()})  # type: ignore[attr-defined]
        return User.from_document(doc) if doc else None

    def update_user(self, user_id: str, **changes: Any) -> Optional[User]:
        doc = self.update(USERS, user_id, changes)  # type: ignore[attr-defined]
        return User.from_document(doc) if doc else None

    def save_password(self, user_id: str, password_hash: str, password_algo: str) -> None:
        record = {"id": user_id, "password_hash": password_hash, "password_algo": password_algo}
        if self.get(CREDENTIALS, user_id) is None:  # type: ignore[attr-defined]
            self.insert(CREDENTIALS, record)  # type: ignore[attr-defined]
        else:
            self.update(CREDENTIALS, user_id, record)  # type: ignore[attr-defined]

    def get_password_record(self, user_id: str) -> Optional[Tuple[str, str]]:
        record = self.get(CREDENTIALS, user_id)  # type: ignore[attr-defined]
        if not record:
            return None
        return record["password_hash"], record["password_algo"]
