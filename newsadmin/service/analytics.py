"""Dashboard, analytics and feedback reports built on store grouping."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from newsadmin.logging import get_logger
from newsadmin.service.errors import ValidationError
from newsadmin.storage.common import (
    DAY_KEY,
    DESCENDING,
    FEEDBACK,
    NEWS,
    USERS,
    VIDEOS,
    DocumentQuery,
    Metric,
)
from newsadmin.storage.models import ContentStatus, Role, UserStatus, utcnow

logger = get_logger(__name__)

PERIODS = (7, 30, 90, 365)
MAX_PERIOD_DAYS = 3650
REPORT_TYPES = ("news", "videos", "users", "all")
RATINGS = (1, 2, 3, 4, 5)

_PUBLISHED = ContentStatus.PUBLISHED.value


def round2(value: Optional[float]) -> float:
    """Round an average to two decimals; missing averages report 0."""
    if value is None:
        return 0
    return round(float(value), 2)


def zero_filled_histogram(rows: Sequence[Dict[str, Any]]) -> Dict[int, int]:
    histogram = {rating: 0 for rating in RATINGS}
    for row in rows:
        try:
            rating = int(row["key"])
        except (TypeError, ValueError):
            continue
        if rating in histogram:
            histogram[rating] += row["count"]
    return histogram


def _single(rows: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    return dict(rows[0]) if rows else {}


def _daily(rows: Sequence[Dict[str, Any]], *, averages: Sequence[str] = ()) -> List[Dict[str, Any]]:
    trend = []
    for row in sorted(rows, key=lambda r: r["key"] or ""):
        entry = {"date": row["key"]}
        for name, value in row.items():
            if name == "key":
                continue
            entry[name] = round2(value) if name in averages else value
        trend.append(entry)
    return trend


def _pick(doc: Dict[str, Any], names: Sequence[str]) -> Dict[str, Any]:
    return {name: doc.get(name) for name in names}


class AnalyticsReporter:
    """Aggregation reports over the document store.

    Store calls are synchronous, so independent reads are fanned out with
    ``asyncio.to_thread`` and gathered.
    """

    def __init__(self, store: Any, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.store = store
        self._clock = clock or utcnow

    def _since(self, days: int) -> datetime:
        return self._clock() - timedelta(days=days)

    async def _run(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        return await asyncio.to_thread(fn, *args, **kwargs)

    @staticmethod
    def parse_period(raw: Any, *, choices: Sequence[int] = PERIODS, field: str = "period") -> int:
        try:
            days = int(raw)
        except (TypeError, ValueError):
            raise ValidationError.for_field(field, "Invalid period") from None
        if choices and days not in choices:
            raise ValidationError.for_field(field, "Invalid period")
        if days < 1 or days > MAX_PERIOD_DAYS:
            raise ValidationError.for_field(field, "Invalid period")
        return days

    async def dashboard(self) -> Dict[str, Any]:
        recent_query = DocumentQuery(sort=[("created_at", DESCENDING)], limit=5)
        (
            total_news,
            total_videos,
            total_users,
            recent_news,
            recent_videos,
            news_stats,
            video_stats,
        ) = await asyncio.gather(
            self._run(self.store.count, NEWS),
            self._run(self.store.count, VIDEOS),
            self._run(self.store.count, USERS, DocumentQuery(match={"role": Role.USER.value})),
            self._run(self.store.find, NEWS, recent_query),
            self._run(self.store.find, VIDEOS, recent_query),
            self._run(
                self.store.group,
                NEWS,
                [Metric("views", "sum", "views"), Metric("shares", "sum", "shares")],
            ),
            self._run(
                self.store.group,
                VIDEOS,
                [
                    Metric("views", "sum", "views"),
                    Metric("shares", "sum", "shares"),
                    Metric("likes", "sum", "likes"),
                ],
            ),
        )
        news_totals = _single(news_stats)
        video_totals = _single(video_stats)
        return {
            "overview": {
                "total_news": total_news,
                "total_videos": total_videos,
                "total_users": total_users,
                "total_views": news_totals.get("views", 0) + video_totals.get("views", 0),
                "total_shares": news_totals.get("shares", 0) + video_totals.get("shares", 0),
                "total_likes": video_totals.get("likes", 0),
            },
            "recent_content": {
                "news": [
                    _pick(doc, ("id", "title", "category", "created_at", "views"))
                    for doc in recent_news
                ],
                "videos": [
                    _pick(doc, ("id", "title", "created_at", "views")) for doc in recent_videos
                ],
            },
        }

    async def _content_analytics(self, collection: str, since: datetime) -> Dict[str, Any]:
        engagement = [Metric("views", "sum", "views"), Metric("shares", "sum", "shares")]
        if collection == VIDEOS:
            engagement.append(Metric("likes", "sum", "likes"))
        totals_rows, categories, daily = await asyncio.gather(
            self._run(
                self.store.group,
                collection,
                [
                    Metric("total", "count"),
                    Metric("published", "count_eq", "status", _PUBLISHED),
                    *[Metric(f"total_{m.name}", m.op, m.field) for m in engagement],
                ],
            ),
            self._run(
                self.store.group,
                collection,
                [Metric("count", "count"), *engagement],
                query=DocumentQuery(match={"status": _PUBLISHED}),
                key="category",
            ),
            self._run(
                self.store.group,
                collection,
                [Metric("count", "count"), Metric("published", "count_eq", "status", _PUBLISHED)],
                query=DocumentQuery(since=since),
                key=DAY_KEY,
            ),
        )
        totals = {"total": 0, "published": 0}
        totals.update({f"total_{m.name}": 0 for m in engagement})
        totals.update({k: v for k, v in _single(totals_rows).items() if k != "key"})
        breakdown = [
            {"category": row["key"], **{k: v for k, v in row.items() if k != "key"}}
            for row in sorted(categories, key=lambda r: (-r["count"], str(r["key"])))
        ]
        return {
            "total_stats": totals,
            "category_breakdown": breakdown,
            "daily_stats": _daily(daily),
        }

    async def _user_analytics(self, since: datetime) -> Dict[str, Any]:
        totals_rows, roles, daily = await asyncio.gather(
            self._run(
                self.store.group,
                USERS,
                [
                    Metric("total", "count"),
                    Metric("active", "count_eq", "status", UserStatus.ACTIVE.value),
                    Metric("verified", "count_truthy", "email_verified"),
                ],
            ),
            self._run(self.store.group, USERS, [Metric("count", "count")], key="role"),
            self._run(
                self.store.group,
                USERS,
                [Metric("count", "count")],
                query=DocumentQuery(since=since),
                key=DAY_KEY,
            ),
        )
        totals = {"total": 0, "active": 0, "verified": 0}
        totals.update({k: v for k, v in _single(totals_rows).items() if k != "key"})
        return {
            "total_stats": totals,
            "role_breakdown": [
                {"role": row["key"], "count": row["count"]}
                for row in sorted(roles, key=lambda r: (-r["count"], str(r["key"])))
            ],
            "daily_registrations": _daily(daily),
        }

    async def analytics(self, period: Any = 30, report_type: str = "all") -> Dict[str, Any]:
        days = self.parse_period(period)
        if report_type not in REPORT_TYPES:
            raise ValidationError.for_field("type", "Invalid type")
        since = self._since(days)
        report: Dict[str, Any] = {}
        if report_type in ("news", "all"):
            report["news"] = await self._content_analytics(NEWS, since)
        if report_type in ("videos", "all"):
            report["videos"] = await self._content_analytics(VIDEOS, since)
        if report_type in ("users", "all"):
            report["users"] = await self._user_analytics(since)
        logger.info("analytics_generated", period=days, type=report_type)
        return {
            "analytics": report,
            "period": days,
            "type": report_type,
            "generated_at": self._clock().isoformat(),
        }

    async def content_stats(self, period: Any = 30) -> Dict[str, Any]:
        days = self.parse_period(period, choices=())
        since = self._since(days)
        published = {"status": _PUBLISHED}
        top_news, top_videos, news_rows, video_rows = await asyncio.gather(
            self._run(
                self.store.find,
                NEWS,
                DocumentQuery(
                    match=published,
                    sort=[("views", DESCENDING), ("shares", DESCENDING)],
                    limit=10,
                ),
            ),
            self._run(
                self.store.find,
                VIDEOS,
                DocumentQuery(
                    match=published,
                    sort=[("views", DESCENDING), ("likes", DESCENDING)],
                    limit=10,
                ),
            ),
            self._run(
                self.store.group,
                NEWS,
                [
                    Metric("avg_views", "avg", "views"),
                    Metric("avg_shares", "avg", "shares"),
                    Metric("total_engagement", "sum", ("views", "shares")),
                ],
                query=DocumentQuery(match=published, since=since),
            ),
            self._run(
                self.store.group,
                VIDEOS,
                [
                    Metric("avg_views", "avg", "views"),
                    Metric("avg_likes", "avg", "likes"),
                    Metric("avg_shares", "avg", "shares"),
                    Metric("total_engagement", "sum", ("views", "likes", "shares")),
                ],
                query=DocumentQuery(match=published, since=since),
            ),
        )

        def engagement(rows: Sequence[Dict[str, Any]], averages: Sequence[str]) -> Dict[str, Any]:
            row = _single(rows)
            result: Dict[str, Any] = {name: round2(row.get(name)) for name in averages}
            result["total_engagement"] = row.get("total_engagement", 0)
            return result

        return {
            "top_performing": {
                "news": [
                    _pick(doc, ("id", "title", "views", "shares", "created_at", "category"))
                    for doc in top_news
                ],
                "videos": [
                    _pick(
                        doc,
                        ("id", "title", "views", "likes", "shares", "created_at", "category", "duration"),
                    )
                    for doc in top_videos
                ],
            },
            "engagement": {
                "news": engagement(news_rows, ("avg_views", "avg_shares")),
                "videos": engagement(video_rows, ("avg_views", "avg_likes", "avg_shares")),
            },
            "period": days,
        }

    async def feedback_stats(self) -> Dict[str, Any]:
        """Overall average, total and rating histogram of all feedback."""
        totals, histogram = await asyncio.gather(
            self._run(
                self.store.group,
                FEEDBACK,
                [Metric("total", "count"), Metric("avg_rating", "avg", "rating")],
            ),
            self._run(self.store.group, FEEDBACK, [Metric("count", "count")], key="rating"),
        )
        row = _single(totals)
        return {
            "average_rating": round2(row.get("avg_rating")),
            "total_feedback": row.get("total", 0),
            "rating_distribution": zero_filled_histogram(histogram),
        }

    async def feedback_summary(self, days: Any = 30) -> Dict[str, Any]:
        days = self.parse_period(days, choices=(), field="days")
        since = self._since(days)
        recent_query = DocumentQuery(since=since)
        recent, recent_histogram, overall, trend = await asyncio.gather(
            self._run(
                self.store.group,
                FEEDBACK,
                [Metric("count", "count"), Metric("avg_rating", "avg", "rating")],
                query=recent_query,
            ),
            self._run(
                self.store.group,
                FEEDBACK,
                [Metric("count", "count")],
                query=recent_query,
                key="rating",
            ),
            self._run(
                self.store.group,
                FEEDBACK,
                [Metric("count", "count"), Metric("avg_rating", "avg", "rating")],
            ),
            self._run(
                self.store.group,
                FEEDBACK,
                [Metric("count", "count"), Metric("avg_rating", "avg", "rating")],
                query=recent_query,
                key=DAY_KEY,
            ),
        )
        recent_row = _single(recent)
        overall_row = _single(overall)
        return {
            "period": f"Last {days} days",
            "recent": {
                "count": recent_row.get("count", 0),
                "average_rating": round2(recent_row.get("avg_rating")),
                "rating_distribution": zero_filled_histogram(recent_histogram),
            },
            "overall": {
                "total_count": overall_row.get("count", 0),
                "average_rating": round2(overall_row.get("avg_rating")),
            },
            "trend": _daily(trend, averages=("avg_rating",)),
        }


__all__ = [
    "AnalyticsReporter",
    "MAX_PERIOD_DAYS",
    "PERIODS",
    "REPORT_TYPES",
    "round2",
    "zero_filled_histogram",
]
