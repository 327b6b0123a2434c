"""Filtered, sorted and paginated listing shared by every list endpoint."""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from newsadmin.service.errors import ValidationError
from newsadmin.storage.common import (
    ASCENDING,
    DESCENDING,
    FEEDBACK,
    NEWS,
    USERS,
    VIDEOS,
    DocumentQuery,
)
from newsadmin.storage.models import (
    NEWS_CATEGORIES,
    VIDEO_CATEGORIES,
    ContentStatus,
    Role,
    UserStatus,
)

ALL = "all"

_DIRECTIONS = {"asc": ASCENDING, "desc": DESCENDING}

# Query-string spellings accepted for sort fields
SORT_ALIASES = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "lastLogin": "last_login",
}


@dataclass(frozen=True)
class FilterField:
    name: str
    choices: Optional[Tuple[Any, ...]] = None
    coerce: Callable[[str], Any] = str


@dataclass(frozen=True)
class ListingSpec:
    collection: str
    filters: Tuple[FilterField, ...]
    search_fields: Tuple[str, ...]
    sort_fields: Tuple[str, ...]
    default_sort: str = "created_at"


def _rating(raw: str) -> int:
    return int(raw)


_STATUS_CHOICES = tuple(s.value for s in ContentStatus)

NEWS_LISTING = ListingSpec(
    collection=NEWS,
    filters=(
        FilterField("category", NEWS_CATEGORIES),
        FilterField("status", _STATUS_CHOICES),
    ),
    search_fields=("title", "summary"),
    sort_fields=("created_at", "updated_at", "title", "views", "shares", "category", "status"),
)

VIDEO_LISTING = ListingSpec(
    collection=VIDEOS,
    filters=(
        FilterField("category", VIDEO_CATEGORIES),
        FilterField("status", _STATUS_CHOICES),
    ),
    search_fields=("title", "description"),
    sort_fields=("created_at", "updated_at", "title", "views", "likes", "shares"),
)

USER_LISTING = ListingSpec(
    collection=USERS,
    filters=(
        FilterField("role", tuple(r.value for r in Role)),
        FilterField("status", tuple(s.value for s in UserStatus)),
    ),
    search_fields=("name", "email"),
    sort_fields=("created_at", "name", "email", "last_login"),
)

FEEDBACK_LISTING = ListingSpec(
    collection=FEEDBACK,
    filters=(FilterField("rating", (1, 2, 3, 4, 5), _rating),),
    search_fields=("feedback",),
    sort_fields=("created_at", "rating", "feedback"),
)


@dataclass
class ListParams:
    page: int = 1
    limit: Optional[int] = None
    sort: Optional[str] = None
    order: str = "desc"
    search: Optional[str] = None
    filters: Dict[str, Optional[str]] = field(default_factory=dict)


@dataclass
class Page:
    items: List[Dict[str, Any]]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> Dict[str, int]:
        return {
            "current_page": self.page,
            "total_pages": self.total_pages,
            "total_count": self.total,
            "limit": self.limit,
        }


def _resolve_filters(spec: ListingSpec, raw: Mapping[str, Optional[str]]) -> Dict[str, Any]:
    match: Dict[str, Any] = {}
    for filter_field in spec.filters:
        value = raw.get(filter_field.name)
        if value is None or value == "" or value == ALL:
            continue
        try:
            coerced = filter_field.coerce(value)
        except (TypeError, ValueError):
            raise ValidationError.for_field(
                filter_field.name, f"Invalid {filter_field.name} filter"
            ) from None
        if filter_field.choices is not None and coerced not in filter_field.choices:
            raise ValidationError.for_field(
                filter_field.name, f"Invalid {filter_field.name} filter"
            )
        match[filter_field.name] = coerced
    return match


def _resolve_sort(spec: ListingSpec, sort: Optional[str], order: str) -> List[Tuple[str, int]]:
    name = SORT_ALIASES.get(sort, sort) if sort else spec.default_sort
    if name not in spec.sort_fields:
        raise ValidationError.for_field(
            "sort", f"Sort field must be one of: {', '.join(spec.sort_fields)}"
        )
    direction = _DIRECTIONS.get((order or "").lower())
    if direction is None:
        raise ValidationError.for_field("order", "Order must be either asc or desc")
    sort_keys = [(name, direction)]
    if name != "created_at":
        # Stable page boundaries across equal sort values
        sort_keys.append(("created_at", direction))
    return sort_keys


def build_query(
    spec: ListingSpec,
    params: ListParams,
    *,
    default_limit: int = 20,
    max_limit: int = 100,
) -> Tuple[DocumentQuery, int, int]:
    """Validate ``params`` and return ``(query, page, limit)``."""
    if params.page is None or params.page < 1:
        raise ValidationError.for_field("page", "Page must be a positive integer")
    limit = default_limit if params.limit is None else params.limit
    if limit < 1:
        raise ValidationError.for_field("limit", "Limit must be a positive integer")
    limit = min(limit, max_limit)
    search = (params.search or "").strip() or None
    query = DocumentQuery(
        match=_resolve_filters(spec, params.filters),
        search=search,
        search_fields=spec.search_fields if search else (),
        sort=_resolve_sort(spec, params.sort, params.order),
        skip=(params.page - 1) * limit,
        limit=limit,
    )
    return query, params.page, limit


async def paginate(
    store: Any,
    spec: ListingSpec,
    params: ListParams,
    *,
    default_limit: int = 20,
    max_limit: int = 100,
    extra_match: Optional[Mapping[str, Any]] = None,
) -> Page:
    query, page, limit = build_query(
        spec, params, default_limit=default_limit, max_limit=max_limit
    )
    if extra_match:
        query.match.update(extra_match)
    items, total = await asyncio.gather(
        asyncio.to_thread(store.find, spec.collection, query),
        asyncio.to_thread(store.count, spec.collection, query.without_window()),
    )
    return Page(items=items, total=total, page=page, limit=limit)


__all__ = [
    "FEEDBACK_LISTING",
    "ListParams",
    "ListingSpec",
    "NEWS_LISTING",
    "Page",
    "USER_LISTING",
    "VIDEO_LISTING",
    "build_query",
    "paginate",
]
