from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query

from newsadmin.api.dependencies import get_admin_user, list_params
from newsadmin.api.schemas import ok
from newsadmin.service.listing import ListParams
from newsadmin.service.runtime import get_runtime

feedback_router = APIRouter(
    prefix="/api/feedback", tags=["feedback"], dependencies=[Depends(get_admin_user)]
)


@feedback_router.get("")
async def list_feedback(
    rating: Optional[str] = None,
    params: ListParams = Depends(list_params),
):
    runtime = get_runtime()
    params.filters = {"rating": rating}
    page, stats = await asyncio.gather(
        runtime.feedback.list(
            params,
            default_limit=runtime.settings.default_page_size,
            max_limit=runtime.settings.max_page_size,
        ),
        runtime.analytics.feedback_stats(),
    )
    return ok(
        {"feedbacks": page.items, "pagination": page.pagination(), "stats": stats}
    )


@feedback_router.get("/stats/summary")
async def feedback_summary(days: str = Query("30")):
    runtime = get_runtime()
    return ok(await runtime.analytics.feedback_summary(days))


@feedback_router.get("/{feedback_id}")
async def get_feedback(feedback_id: str):
    runtime = get_runtime()
    return ok({"feedback": runtime.feedback.get(feedback_id)})


@feedback_router.delete("/{feedback_id}")
async def delete_feedback(feedback_id: str):
    runtime = get_runtime()
    runtime.feedback.delete(feedback_id)
    return ok({"deleted_id": feedback_id}, "Feedback deleted successfully")
