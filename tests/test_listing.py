"""Tests for the shared filter/sort/paginate listing."""

from datetime import datetime, timedelta, timezone

import pytest

from newsadmin.service.errors import ValidationError
from newsadmin.service.listing import (
    FEEDBACK_LISTING,
    NEWS_LISTING,
    USER_LISTING,
    ListParams,
    Page,
    build_query,
    paginate,
)
from newsadmin.storage.common import ASCENDING, DESCENDING, NEWS
from newsadmin.storage.memory import MemoryStore

BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _seed_news(store, count):
    for i in range(count):
        store.insert(
            NEWS,
            {
                "id": f"n{i}",
                "title": f"Headline number {i}",
                "summary": "Summary text" if i % 2 else "Other blurb",
                "content": "x" * 60,
                "category": "Sports" if i % 3 == 0 else "Politics",
                "status": "published" if i % 2 == 0 else "draft",
                "views": i * 10,
                "created_at": BASE + timedelta(hours=i),
            },
        )


class TestBuildQuery:
    def test_defaults(self):
        query, page, limit = build_query(NEWS_LISTING, ListParams())

        assert (page, limit) == (1, 20)
        assert query.sort == [("created_at", DESCENDING)]
        assert query.skip == 0
        assert query.match == {}

    def test_all_filter_is_ignored(self):
        query, _, _ = build_query(
            NEWS_LISTING, ListParams(filters={"category": "all", "status": "draft"})
        )
        assert query.match == {"status": "draft"}

    def test_limit_is_capped(self):
        _, _, limit = build_query(NEWS_LISTING, ListParams(limit=500), max_limit=100)
        assert limit == 100

    def test_skip_from_page(self):
        query, _, _ = build_query(NEWS_LISTING, ListParams(page=3, limit=10))
        assert query.skip == 20

    def test_sort_alias_and_secondary_key(self):
        query, _, _ = build_query(USER_LISTING, ListParams(sort="lastLogin", order="asc"))
        assert query.sort == [("last_login", ASCENDING), ("created_at", ASCENDING)]

    @pytest.mark.parametrize(
        "params",
        [
            ListParams(page=0),
            ListParams(limit=0),
            ListParams(sort="password_hash"),
            ListParams(order="sideways"),
            ListParams(filters={"category": "Gossip"}),
        ],
    )
    def test_invalid_params(self, params):
        with pytest.raises(ValidationError):
            build_query(NEWS_LISTING, params)

    def test_rating_filter_coerced(self):
        query, _, _ = build_query(FEEDBACK_LISTING, ListParams(filters={"rating": "4"}))
        assert query.match == {"rating": 4}

    def test_rating_filter_out_of_range(self):
        with pytest.raises(ValidationError):
            build_query(FEEDBACK_LISTING, ListParams(filters={"rating": "9"}))

    def test_blank_search_is_dropped(self):
        query, _, _ = build_query(NEWS_LISTING, ListParams(search="   "))
        assert query.search is None


class TestPage:
    @pytest.mark.parametrize(
        "total,limit,pages", [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (45, 20, 3)]
    )
    def test_total_pages_is_ceiling(self, total, limit, pages):
        assert Page(items=[], total=total, page=1, limit=limit).total_pages == pages

    def test_pagination_shape(self):
        assert Page(items=[], total=45, page=2, limit=20).pagination() == {
            "current_page": 2,
            "total_pages": 3,
            "total_count": 45,
            "limit": 20,
        }


class TestPaginate:
    async def test_pages_never_exceed_limit(self):
        store = MemoryStore()
        _seed_news(store, 25)

        first = await paginate(store, NEWS_LISTING, ListParams(page=1, limit=10))
        last = await paginate(store, NEWS_LISTING, ListParams(page=3, limit=10))

        assert len(first.items) == 10
        assert len(last.items) == 5
        assert first.total == 25
        assert first.total_pages == 3

    async def test_newest_first_by_default(self):
        store = MemoryStore()
        _seed_news(store, 5)

        page = await paginate(store, NEWS_LISTING, ListParams())

        assert [item["id"] for item in page.items] == ["n4", "n3", "n2", "n1", "n0"]

    async def test_filter_and_search_count_together(self):
        store = MemoryStore()
        _seed_news(store, 10)

        page = await paginate(
            store,
            NEWS_LISTING,
            ListParams(search="summary", filters={"status": "draft"}),
        )

        assert page.total == 5
        assert all(item["status"] == "draft" for item in page.items)

    async def test_sort_by_views_ascending(self):
        store = MemoryStore()
        _seed_news(store, 4)

        page = await paginate(store, NEWS_LISTING, ListParams(sort="views", order="asc"))

        assert [item["views"] for item in page.items] == [0, 10, 20, 30]

    async def test_page_past_end_is_empty(self):
        store = MemoryStore()
        _seed_news(store, 3)

        page = await paginate(store, NEWS_LISTING, ListParams(page=5, limit=10))

        assert page.items == []
        assert page.total == 3
