from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from newsadmin.api.dependencies import get_admin_user, list_params
from newsadmin.api.schemas import (
    BulkDeleteRequest,
    ContentStatusRequest,
    NewsRequest,
    VideoRequest,
    YoutubeLookupRequest,
    ok,
)
from newsadmin.service.auth import IdentityContext
from newsadmin.service.listing import ListParams
from newsadmin.service.runtime import get_runtime

news_router = APIRouter(
    prefix="/api/news", tags=["news"], dependencies=[Depends(get_admin_user)]
)
videos_router = APIRouter(
    prefix="/api/videos", tags=["videos"], dependencies=[Depends(get_admin_user)]
)


def _featured_message(label: str, featured: bool) -> str:
    return f"{label} {'marked as featured' if featured else 'unmarked from featured'}"


@news_router.get("")
async def list_news(
    category: Optional[str] = None,
    status: Optional[str] = None,
    params: ListParams = Depends(list_params),
):
    """List articles in every status, drafts included."""
    runtime = get_runtime()
    params.filters = {"category": category, "status": status}
    page = await runtime.news.list(
        params,
        default_limit=runtime.settings.default_page_size,
        max_limit=runtime.settings.max_page_size,
    )
    return ok({"articles": page.items, "pagination": page.pagination()})


@news_router.get("/{article_id}")
async def get_news(article_id: str):
    runtime = get_runtime()
    return ok({"article": runtime.news.get(article_id)})


@news_router.post("", status_code=201)
async def create_news(
    body: NewsRequest, principal: IdentityContext = Depends(get_admin_user)
):
    runtime = get_runtime()
    article = runtime.news.create(body.model_dump(), created_by=principal.id)
    return ok({"article": article}, "Article created successfully")


@news_router.put("/{article_id}")
async def update_news(article_id: str, body: NewsRequest):
    runtime = get_runtime()
    article = runtime.news.update(article_id, body.model_dump(exclude_unset=True))
    return ok({"article": article}, "Article updated successfully")


@news_router.patch("/{article_id}/status")
async def set_news_status(article_id: str, body: ContentStatusRequest):
    runtime = get_runtime()
    article = runtime.news.set_status(article_id, body.status)
    verb = "published" if body.status == "published" else "saved as draft"
    return ok({"article": article}, f"Article {verb} successfully")


@news_router.patch("/{article_id}/featured")
async def toggle_news_featured(article_id: str):
    runtime = get_runtime()
    article = runtime.news.toggle_featured(article_id)
    return ok({"article": article}, _featured_message("Article", article["featured"]))


@news_router.delete("/{article_id}")
async def delete_news(article_id: str):
    runtime = get_runtime()
    runtime.news.delete(article_id)
    return ok({"deleted_id": article_id}, "Article deleted successfully")


@news_router.post("/bulk-delete")
async def bulk_delete_news(body: BulkDeleteRequest):
    runtime = get_runtime()
    deleted = runtime.news.bulk_delete(body.ids)
    return ok({"deleted_count": deleted}, f"{deleted} article(s) deleted successfully")


@videos_router.get("")
async def list_videos(
    category: Optional[str] = None,
    status: Optional[str] = None,
    params: ListParams = Depends(list_params),
):
    runtime = get_runtime()
    params.filters = {"category": category, "status": status}
    page = await runtime.videos.list(
        params,
        default_limit=runtime.settings.default_page_size,
        max_limit=runtime.settings.max_page_size,
    )
    return ok({"videos": page.items, "pagination": page.pagination()})


@videos_router.post("/fetch-youtube-data")
async def fetch_youtube_data(body: YoutubeLookupRequest):
    runtime = get_runtime()
    return ok(runtime.videos.fetch_youtube_data(body.youtube_url), "Video data fetched successfully")


@videos_router.post("/bulk-delete")
async def bulk_delete_videos(body: BulkDeleteRequest):
    runtime = get_runtime()
    deleted = runtime.videos.bulk_delete(body.ids)
    return ok({"deleted_count": deleted}, f"{deleted} video(s) deleted successfully")


@videos_router.get("/{video_id}")
async def get_video(video_id: str):
    runtime = get_runtime()
    return ok({"video": runtime.videos.get(video_id)})


@videos_router.post("", status_code=201)
async def create_video(
    body: VideoRequest, principal: IdentityContext = Depends(get_admin_user)
):
    runtime = get_runtime()
    video = runtime.videos.create(body.model_dump(), created_by=principal.id)
    return ok({"video": video}, "Video created successfully")


@videos_router.put("/{video_id}")
async def update_video(video_id: str, body: VideoRequest):
    runtime = get_runtime()
    video = runtime.videos.update(video_id, body.model_dump(exclude_unset=True))
    return ok({"video": video}, "Video updated successfully")


@videos_router.patch("/{video_id}/status")
async def set_video_status(video_id: str, body: ContentStatusRequest):
    runtime = get_runtime()
    video = runtime.videos.set_status(video_id, body.status)
    verb = "published" if body.status == "published" else "saved as draft"
    return ok({"video": video}, f"Video {verb} successfully")


@videos_router.patch("/{video_id}/featured")
async def toggle_video_featured(video_id: str):
    runtime = get_runtime()
    video = runtime.videos.toggle_featured(video_id)
    return ok({"video": video}, _featured_message("Video", video["featured"]))


@videos_router.delete("/{video_id}")
async def delete_video(video_id: str):
    runtime = get_runtime()
    runtime.videos.delete(video_id)
    return ok({"deleted_id": video_id}, "Video deleted successfully")
