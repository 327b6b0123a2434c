from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from psycopg import errors
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from newsadmin.logging import get_logger
from newsadmin.storage.common import (
    COLLECTIONS,
    DAY_KEY,
    DESCENDING,
    UNIQUE_FIELDS,
    DocumentQuery,
    Metric,
    UserRecordsMixin,
    jsonable,
    validate_metrics,
)
from newsadmin.storage.errors import ConstraintViolation
from newsadmin.storage.models import parse_datetime, utcnow

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    body JSONB NOT NULL,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL,
    PRIMARY KEY (collection, id)
)
"""

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS documents_collection_created_idx "
    "ON documents (collection, created_at DESC)",
]


def _unique_index_name(collection: str, field_name: str) -> str:
    return f"documents_{collection}_{field_name}_key"


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _number(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


class PostgresStore(UserRecordsMixin):
    """Document store over a single JSONB table, one row per document."""

    def __init__(self, dsn: str) -> None:
        self.dsn = dsn
        self.logger = get_logger(__name__)
        self.pool = ConnectionPool(
            self.dsn,
            min_size=2,
            max_size=10,
            kwargs={"row_factory": dict_row, "autocommit": False},
        )
        self._ensure_schema()

    def _connect(self):
        return self.pool.connection()

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(_SCHEMA)
            for statement in _INDEXES:
                conn.execute(statement)
            for collection, unique_fields in UNIQUE_FIELDS.items():
                for field_name in unique_fields:
                    # Identifiers come from the static UNIQUE_FIELDS table
                    conn.execute(
                        f"CREATE UNIQUE INDEX IF NOT EXISTS "
                        f"{_unique_index_name(collection, field_name)} "
                        f"ON documents ((body->>'{field_name}')) "
                        f"WHERE collection = '{collection}'"
                    )

    @staticmethod
    def _check_collection(collection: str) -> None:
        if collection not in COLLECTIONS:
            raise KeyError(f"unknown collection '{collection}'")

    def _constraint_violation(
        self, collection: str, exc: errors.UniqueViolation
    ) -> ConstraintViolation:
        constraint = getattr(exc.diag, "constraint_name", None) or ""
        field_name = "id"
        for candidate in UNIQUE_FIELDS.get(collection, ()):
            if constraint == _unique_index_name(collection, candidate):
                field_name = candidate
        self.logger.warning(
            "document_unique_violation", collection=collection, field=field_name
        )
        return ConstraintViolation(
            f"{field_name} already exists",
            {"collection": collection, "field": field_name},
            field=field_name,
        )

    def _where(self, collection: str, query: DocumentQuery) -> Tuple[str, List[Any]]:
        clauses = ["collection = %s"]
        params: List[Any] = [collection]
        for key, expected in query.match.items():
            if isinstance(expected, (list, tuple, set, frozenset)):
                values = [str(getattr(v, "value", v)) for v in expected]
                if key == "id":
                    clauses.append("id = ANY(%s)")
                    params.append(values)
                else:
                    clauses.append("(body->>%s::text) = ANY(%s)")
                    params.extend([key, values])
            else:
                clauses.append("body @> %s")
                params.append(Jsonb(jsonable({key: expected})))
        if query.since is not None:
            clauses.append("created_at >= %s")
            params.append(query.since)
        if query.search and query.search_fields:
            pattern = f"%{_escape_like(query.search)}%"
            ors = []
            for name in query.search_fields:
                ors.append("(body->>%s::text) ILIKE %s")
                params.extend([name, pattern])
            clauses.append("(" + " OR ".join(ors) + ")")
        return " AND ".join(clauses), params

    @staticmethod
    def _order_by(query: DocumentQuery) -> Tuple[str, List[Any]]:
        if not query.sort:
            return "", []
        parts = []
        params: List[Any] = []
        for name, direction in query.sort:
            order = "DESC" if direction == DESCENDING else "ASC"
            if name == "created_at":
                parts.append(f"created_at {order}")
            else:
                # NULLS FIRST ascending keeps the memory store's ordering
                nulls = "NULLS LAST" if direction == DESCENDING else "NULLS FIRST"
                parts.append(f"body -> %s::text {order} {nulls}")
                params.append(name)
        return " ORDER BY " + ", ".join(parts), params

    @staticmethod
    def _timestamps(doc: Dict[str, Any]) -> Tuple[Any, Any]:
        now = utcnow()
        created = parse_datetime(doc.get("created_at")) or now
        updated = parse_datetime(doc.get("updated_at")) or now
        return created, updated

    def insert(self, collection: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        self._check_collection(collection)
        created, updated = self._timestamps(doc)
        body = jsonable({**doc, "created_at": created, "updated_at": updated})
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO documents (collection, id, body, created_at, updated_at) "
                    "VALUES (%s, %s, %s, %s, %s)",
                    (collection, doc["id"], Jsonb(body), created, updated),
                )
        except errors.UniqueViolation as exc:
            raise self._constraint_violation(collection, exc) from exc
        return body

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        self._check_collection(collection)
        with self._connect() as conn:
            row = conn.execute(
                "SELECT body FROM documents WHERE collection = %s AND id = %s",
                (collection, doc_id),
            ).fetchone()
        return row["body"] if row else None

    def find_one(self, collection: str, match: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        found = self.find(collection, DocumentQuery(match=match, limit=1))
        return found[0] if found else None

    def find(self, collection: str, query: DocumentQuery) -> List[Dict[str, Any]]:
        self._check_collection(collection)
        where, params = self._where(collection, query)
        order_by, order_params = self._order_by(query)
        sql = f"SELECT body FROM documents WHERE {where}{order_by}"
        params.extend(order_params)
        if query.limit is not None:
            sql += " LIMIT %s"
            params.append(query.limit)
        if query.skip:
            sql += " OFFSET %s"
            params.append(query.skip)
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [row["body"] for row in rows]

    def count(self, collection: str, query: Optional[DocumentQuery] = None) -> int:
        self._check_collection(collection)
        where, params = self._where(collection, query or DocumentQuery())
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) AS total FROM documents WHERE {where}", params
            ).fetchone()
        return int(row["total"]) if row else 0

    def update(
        self, collection: str, doc_id: str, changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Merge ``changes`` into one document atomically (last write wins)."""
        self._check_collection(collection)
        now = utcnow()
        patch = jsonable({**changes, "id": doc_id, "updated_at": now})
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "UPDATE documents SET body = body || %s, updated_at = %s "
                    "WHERE collection = %s AND id = %s RETURNING body",
                    (Jsonb(patch), now, collection, doc_id),
                ).fetchone()
        except errors.UniqueViolation as exc:
            raise self._constraint_violation(collection, exc) from exc
        return row["body"] if row else None

    def delete(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        self._check_collection(collection)
        with self._connect() as conn:
            row = conn.execute(
                "DELETE FROM documents WHERE collection = %s AND id = %s RETURNING body",
                (collection, doc_id),
            ).fetchone()
        return row["body"] if row else None

    def delete_many(self, collection: str, ids: Iterable[str]) -> int:
        self._check_collection(collection)
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM documents WHERE collection = %s AND id = ANY(%s)",
                (collection, list(set(ids))),
            )
            return cur.rowcount

    def _metric_sql(self, metric: Metric) -> Tuple[str, List[Any]]:
        if metric.op == "count":
            return "COUNT(*)", []
        if metric.op == "sum":
            names = metric.field if isinstance(metric.field, tuple) else (metric.field,)
            terms = " + ".join("COALESCE((body->>%s::text)::numeric, 0)" for _ in names)
            return f"COALESCE(SUM({terms}), 0)", list(names)
        if metric.op == "avg":
            return "AVG((body->>%s::text)::numeric)", [metric.field]
        if metric.op == "count_eq":
            return "COUNT(*) FILTER (WHERE body @> %s)", [
                Jsonb(jsonable({metric.field: metric.equals}))
            ]
        if metric.op == "count_truthy":
            return (
                "COUNT(*) FILTER (WHERE COALESCE((body->>%s::text)::boolean, false))",
                [metric.field],
            )
        raise ValueError(f"unsupported metric op '{metric.op}'")

    def group(
        self,
        collection: str,
        metrics: Sequence[Metric],
        *,
        query: Optional[DocumentQuery] = None,
        key: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        self._check_collection(collection)
        validate_metrics(metrics)
        select_parts: List[str] = []
        params: List[Any] = []
        if key is None:
            select_parts.append("NULL AS key")
        elif key == DAY_KEY:
            select_parts.append("to_char(created_at AT TIME ZONE 'UTC', 'YYYY-MM-DD') AS key")
        else:
            select_parts.append("body -> %s::text AS key")
            params.append(key)
        for metric in metrics:
            expr, metric_params = self._metric_sql(metric)
            select_parts.append(f'{expr} AS "{metric.name}"')
            params.extend(metric_params)
        where, where_params = self._where(collection, query or DocumentQuery())
        params.extend(where_params)
        sql = f"SELECT {', '.join(select_parts)} FROM documents WHERE {where}"
        if key is not None:
            sql += " GROUP BY 1"
        else:
            # An ungrouped aggregate always yields one row; drop it when empty
            sql += " HAVING COUNT(*) > 0"
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [{name: _number(value) for name, value in row.items()} for row in rows]

    def ping(self) -> bool:
        with self._connect() as conn:
            conn.execute("SELECT 1")
        return True

    def close(self) -> None:
        self.pool.close()
