from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from comment_api.database import STORE_ERRORS, get_db, is_store_unavailable
from comment_api.exceptions import StoreUnavailableError
from comment_api.models import Comment
from comment_api.schemas import MetricsResponse
from comment_api.cache import cache

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])

@router.get("", response_model=MetricsResponse)
async def get_metrics(db: AsyncSession = Depends(get_db)):
    try:
        total_comments = (await db.execute(select(func.count()).select_from(Comment))).scalar_one()

        replies = (
            await db.execute(
                select(func.count()).select_from(Comment).where(Comment.parent_id.is_not(None))
            )
        ).scalar_one()
    except STORE_ERRORS as exc:
        if not is_store_unavailable(exc):
            raise
        raise StoreUnavailableError(str(exc)) from exc

    return MetricsResponse(
        total_comments=total_comments,
        root_comments=total_comments - replies,
        replies=replies,
        cache_info=cache.stats,
    )
