from __future__ import annotations

import re
from typing import Any, Dict, Iterable, Optional, Type

from newsadmin.logging import get_logger
from newsadmin.service.errors import ConflictError, NotFoundError, ValidationError
from newsadmin.service.listing import (
    FEEDBACK_LISTING,
    NEWS_LISTING,
    VIDEO_LISTING,
    ListingSpec,
    ListParams,
    Page,
    paginate,
)
from newsadmin.storage.common import FEEDBACK, NEWS, VIDEOS
from newsadmin.storage.errors import ConstraintViolation
from newsadmin.storage.models import (
    ContentStatus,
    Feedback,
    NewsArticle,
    Video,
    new_id,
)

logger = get_logger(__name__)

YOUTUBE_ID_PATTERN = re.compile(
    r"(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?)/|.*[?&]v=)|youtu\.be/)([^\"&?/\s]{11})"
)


def extract_youtube_id(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    match = YOUTUBE_ID_PATTERN.search(url)
    return match.group(1) if match else None


def youtube_thumbnail(youtube_id: str) -> str:
    return f"https://img.youtube.com/vi/{youtube_id}/maxresdefault.jpg"


class ContentResource:
    """CRUD over one content collection with author population."""

    collection: str = ""
    model: Type[Any] = object
    listing: ListingSpec
    author_field: Optional[str] = "created_by"
    label: str = "Item"

    def __init__(self, store: Any) -> None:
        self.store = store

    def _not_found(self) -> NotFoundError:
        return NotFoundError(f"{self.label} not found")

    def _author(self, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not user_id:
            return None
        user = self.store.get_user(user_id)
        if not user:
            return None
        return {"id": user.id, "name": user.name, "email": user.email}

    def serialize(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        data = self.model.from_document(doc).to_document()
        if self.author_field:
            data[self.author_field] = self._author(data.get(self.author_field))
        return data

    async def list(
        self, params: ListParams, *, default_limit: int = 20, max_limit: int = 100
    ) -> Page:
        page = await paginate(
            self.store,
            self.listing,
            params,
            default_limit=default_limit,
            max_limit=max_limit,
        )
        page.items = [self.serialize(doc) for doc in page.items]
        return page

    def _load(self, item_id: str) -> Dict[str, Any]:
        doc = self.store.get(self.collection, item_id)
        if doc is None:
            raise self._not_found()
        return doc

    def get(self, item_id: str) -> Dict[str, Any]:
        return self.serialize(self._load(item_id))

    def _insert(self, record: Any) -> Dict[str, Any]:
        try:
            doc = self.store.insert(self.collection, record.to_document())
        except ConstraintViolation as exc:
            raise ConflictError(
                f"A {self.label.lower()} with this {exc.field} already exists",
                detail=exc.detail,
            ) from exc
        logger.info("content_created", collection=self.collection, item_id=record.id)
        return self.serialize(doc)

    def _update(self, item_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        try:
            doc = self.store.update(self.collection, item_id, changes)
        except ConstraintViolation as exc:
            raise ConflictError(
                f"A {self.label.lower()} with this {exc.field} already exists",
                detail=exc.detail,
            ) from exc
        if doc is None:
            raise self._not_found()
        return self.serialize(doc)

    def update(self, item_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        self._load(item_id)
        return self._update(item_id, fields)

    def set_status(self, item_id: str, status: str) -> Dict[str, Any]:
        try:
            value = ContentStatus(status).value
        except ValueError:
            raise ValidationError.for_field("status", "Invalid status") from None
        return self._update(item_id, {"status": value})

    def toggle_featured(self, item_id: str) -> Dict[str, Any]:
        current = self._load(item_id)
        return self._update(item_id, {"featured": not current.get("featured", False)})

    def delete(self, item_id: str) -> None:
        if self.store.delete(self.collection, item_id) is None:
            raise self._not_found()
        logger.info("content_deleted", collection=self.collection, item_id=item_id)

    def bulk_delete(self, ids: Iterable[str]) -> int:
        deleted = self.store.delete_many(self.collection, ids)
        logger.info("content_bulk_deleted", collection=self.collection, deleted=deleted)
        return deleted


class NewsService(ContentResource):
    collection = NEWS
    model = NewsArticle
    listing = NEWS_LISTING
    label = "Article"

    def create(self, fields: Dict[str, Any], created_by: Optional[str]) -> Dict[str, Any]:
        article = NewsArticle(id=new_id(), created_by=created_by, **fields)
        return self._insert(article)


class VideoService(ContentResource):
    collection = VIDEOS
    model = Video
    listing = VIDEO_LISTING
    label = "Video"

    @staticmethod
    def _youtube_id(url: Optional[str]) -> str:
        youtube_id = extract_youtube_id(url)
        if not youtube_id:
            raise ValidationError.for_field("youtubeUrl", "Invalid YouTube URL provided.")
        return youtube_id

    def _ensure_unique(self, youtube_id: str, exclude_id: Optional[str] = None) -> None:
        existing = self.store.find_one(VIDEOS, {"youtube_id": youtube_id})
        if existing and existing["id"] != exclude_id:
            raise ConflictError(
                "A video with this YouTube ID already exists.",
                detail={"field": "youtube_id"},
            )

    def create(self, fields: Dict[str, Any], created_by: Optional[str]) -> Dict[str, Any]:
        youtube_id = self._youtube_id(fields.get("youtube_url"))
        self._ensure_unique(youtube_id)
        fields = dict(fields)
        fields.setdefault("thumbnail_url", None)
        if not fields["thumbnail_url"]:
            fields["thumbnail_url"] = youtube_thumbnail(youtube_id)
        video = Video(id=new_id(), youtube_id=youtube_id, created_by=created_by, **fields)
        return self._insert(video)

    def update(self, item_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        self._load(item_id)
        changes = dict(fields)
        if changes.get("youtube_url"):
            youtube_id = self._youtube_id(changes["youtube_url"])
            self._ensure_unique(youtube_id, exclude_id=item_id)
            changes["youtube_id"] = youtube_id
        return self._update(item_id, changes)

    def fetch_youtube_data(self, url: str) -> Dict[str, Any]:
        """Placeholder metadata derived from the URL alone (no external API)."""
        youtube_id = extract_youtube_id(url)
        if not youtube_id:
            raise ValidationError.for_field(
                "youtubeUrl", "Could not extract a valid YouTube ID from the URL."
            )
        return {
            "youtube_id": youtube_id,
            "title": f"Sample Video {youtube_id}",
            "description": f"This is a sample description fetched for video ID: {youtube_id}",
            "thumbnail_url": youtube_thumbnail(youtube_id),
            "duration": None,
        }


class FeedbackService(ContentResource):
    collection = FEEDBACK
    model = Feedback
    listing = FEEDBACK_LISTING
    author_field = "user"
    label = "Feedback"


__all__ = [
    "ContentResource",
    "FeedbackService",
    "NewsService",
    "VideoService",
    "extract_youtube_id",
]
