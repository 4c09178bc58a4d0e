"""
Comment service - cache-aside orchestration for the Comment collection.

Design notes
------------
- Only the unfiltered full list is cached, under the single key
  ``settings.CACHE_KEY_COMMENTS``.  Single-comment and reply reads always
  go to the store.
- Writes never refresh the cache: they commit to the store first and then
  delete the list key, so the next list read repopulates it.
- Cache failures never fail a request.  On the read path they count as a
  miss; on the write path the invalidation failure is logged and the
  write still succeeds (a stale entry survives until its TTL expires).
- Store connection failures surface as ``StoreUnavailableError``; other
  SQL errors propagate unchanged.
- Write functions commit themselves instead of leaving the transaction
  to ``get_db``: invalidation must happen after the commit.
"""
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from comment_api.cache import cache
from comment_api.config import settings
from comment_api.database import STORE_ERRORS, is_store_unavailable
from comment_api.exceptions import (
    CacheUnavailableError,
    CommentNotFoundError,
    CommentValidationError,
    StoreUnavailableError,
)
from comment_api.middleware import cache_status_var
from comment_api.models import STATUS_ACTIVE, Comment
from comment_api.schemas import CommentCreate, CommentUpdate

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Serialisation / validation helpers
# ---------------------------------------------------------------------------

def _comment_to_dict(comment: Comment) -> dict:
    """Serialise a Comment ORM instance to the public JSON shape."""
    return {
        "id": comment.id,
        "post_id": comment.post_id,
        "user_id": comment.user_id,
        "content": comment.content,
        "status": comment.status,
        "parent_id": comment.parent_id,
        "created_at": comment.created_at.isoformat() if comment.created_at else None,
        "updated_at": comment.updated_at.isoformat() if comment.updated_at else None,
    }


def _coerce(schema: type[BaseModel], data: BaseModel | Mapping[str, Any]) -> BaseModel:
    """
    Return *data* as an instance of *schema*, validating plain mappings.

    Raises ``CommentValidationError`` naming every offending field.
    """
    if isinstance(data, schema):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return schema.model_validate(dict(data))
    except PydanticValidationError as exc:
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
        raise CommentValidationError(fields or ["__root__"]) from exc


# ---------------------------------------------------------------------------
# Store access helpers
# ---------------------------------------------------------------------------

async def _execute(db: AsyncSession, statement):
    try:
        return await db.execute(statement)
    except STORE_ERRORS as exc:
        if not is_store_unavailable(exc):
            raise
        logger.error("Store unavailable: %s", exc)
        raise StoreUnavailableError(str(exc)) from exc


async def _commit(db: AsyncSession, comment: Comment | None = None) -> None:
    """
    Commit the pending write and reload *comment*, when given, so
    store-managed columns (id, timestamps) are current.

    An integrity failure can only come from the ``parent_id`` foreign key
    and is reported as a validation error; nothing is persisted.
    """
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise CommentValidationError(
            ["parent_id"], "parent_id does not reference an existing comment"
        ) from exc
    except STORE_ERRORS as exc:
        await db.rollback()
        if not is_store_unavailable(exc):
            raise
        logger.error("Store unavailable during commit: %s", exc)
        raise StoreUnavailableError(str(exc)) from exc
    if comment is None:
        return
    try:
        await db.refresh(comment)
    except STORE_ERRORS as exc:
        if not is_store_unavailable(exc):
            raise
        raise StoreUnavailableError(str(exc)) from exc


async def _get_or_raise(db: AsyncSession, comment_id: int) -> Comment:
    result = await _execute(db, select(Comment).where(Comment.id == comment_id))
    comment = result.scalar_one_or_none()
    if comment is None:
        raise CommentNotFoundError(comment_id)
    return comment


async def _check_parent_chain(
    db: AsyncSession, comment_id: int | None, parent_id: int | None
) -> None:
    """
    Reject a ``parent_id`` that does not exist or would close a cycle.

    Walks the ancestor chain of *parent_id* up to
    ``settings.COMMENT_PARENT_MAX_DEPTH`` hops; a chain deeper than that
    is rejected as well.
    """
    if parent_id is None:
        return
    if comment_id is not None and parent_id == comment_id:
        raise CommentValidationError(["parent_id"], "A comment cannot be its own parent")

    current: int | None = parent_id
    for depth in range(settings.COMMENT_PARENT_MAX_DEPTH):
        result = await _execute(db, select(Comment.parent_id).where(Comment.id == current))
        row = result.first()
        if row is None:
            if depth == 0:
                raise CommentValidationError(
                    ["parent_id"], "parent_id does not reference an existing comment"
                )
            # Dangling ancestor: the chain ends here.
            return
        current = row[0]
        if current is None:
            return
        if comment_id is not None and current == comment_id:
            raise CommentValidationError(
                ["parent_id"], "parent_id would make the comment its own ancestor"
            )
    raise CommentValidationError(
        ["parent_id"],
        f"Reply chain deeper than {settings.COMMENT_PARENT_MAX_DEPTH} comments",
    )


# ---------------------------------------------------------------------------
# Cache helpers
# ---------------------------------------------------------------------------

async def invalidate_comment_list() -> None:
    """
    Drop the cached comment list.  Best effort: a cache failure is logged
    and swallowed because the store write it follows has already
    committed.
    """
    key = settings.CACHE_KEY_COMMENTS
    try:
        await cache.delete(key)
    except CacheUnavailableError as exc:
        logger.warning("Comment list invalidation failed, stale entry may survive: %s", exc)


async def _read_cached_list() -> list | None:
    try:
        cached = await cache.get(settings.CACHE_KEY_COMMENTS)
    except CacheUnavailableError as exc:
        logger.warning("Comment list cache read failed, falling back to store: %s", exc)
        return None
    # An empty cached list is indistinguishable from "nothing cached".
    if cached and isinstance(cached, list):
        return cached
    return None


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def list_comments(db: AsyncSession) -> list[dict]:
    """
    Return every comment ordered by id, served from the cache when a
    non-empty snapshot is present.

    On a miss the full list is loaded in one SELECT and written back
    with the cache's default expiry.
    """
    cached = await _read_cached_list()
    if cached is not None:
        cache_status_var.set("HIT")
        return cached

    cache_status_var.set("MISS")
    result = await _execute(db, select(Comment).order_by(Comment.id))
    comments = [_comment_to_dict(c) for c in result.scalars().all()]

    try:
        await cache.set(settings.CACHE_KEY_COMMENTS, comments)
    except CacheUnavailableError as exc:
        logger.warning("Comment list cache write failed: %s", exc)
    return comments


async def get_comment(db: AsyncSession, comment_id: int) -> dict:
    """Return a single comment straight from the store."""
    return _comment_to_dict(await _get_or_raise(db, comment_id))


async def list_replies(db: AsyncSession, comment_id: int) -> list[dict]:
    """Return the direct replies of *comment_id*, oldest first."""
    await _get_or_raise(db, comment_id)
    result = await _execute(
        db, select(Comment).where(Comment.parent_id == comment_id).order_by(Comment.id)
    )
    return [_comment_to_dict(c) for c in result.scalars().all()]


async def create_comment(db: AsyncSession, data: CommentCreate | Mapping[str, Any]) -> dict:
    """
    Persist a new comment and invalidate the cached list.

    ``status`` falls back to ``STATUS_ACTIVE`` when not supplied.
    ``parent_id`` is only checked when ``COMMENT_PARENT_CHECK`` is on.
    """
    payload: CommentCreate = _coerce(CommentCreate, data)

    if settings.COMMENT_PARENT_CHECK:
        await _check_parent_chain(db, None, payload.parent_id)

    comment = Comment(
        post_id=payload.post_id,
        user_id=payload.user_id,
        content=payload.content,
        status=payload.status if payload.status is not None else STATUS_ACTIVE,
        parent_id=payload.parent_id,
    )
    db.add(comment)
    await _commit(db, comment)

    await invalidate_comment_list()
    logger.info("Created comment id=%s post_id=%s", comment.id, comment.post_id)
    return _comment_to_dict(comment)


async def update_comment(
    db: AsyncSession, comment_id: int, data: CommentUpdate | Mapping[str, Any]
) -> dict:
    """
    Partially update a comment and invalidate the cached list.

    Only fields explicitly present in *data* are merged.  An explicit
    null for post_id, user_id or status fails validation;
    ``parent_id: null`` detaches the reply from its thread.
    """
    payload: CommentUpdate = _coerce(CommentUpdate, data)
    comment = await _get_or_raise(db, comment_id)

    changes = payload.model_dump(exclude_unset=True)

    if settings.COMMENT_PARENT_CHECK and changes.get("parent_id") is not None:
        await _check_parent_chain(db, comment.id, changes["parent_id"])

    for field, value in changes.items():
        setattr(comment, field, value)
    # Touch updated_at even when the merged values equal the stored ones.
    comment.updated_at = datetime.now(timezone.utc)
    await _commit(db, comment)

    await invalidate_comment_list()
    logger.info("Updated comment id=%s fields=%s", comment.id, sorted(changes))
    return _comment_to_dict(comment)


async def delete_comment(db: AsyncSession, comment_id: int) -> None:
    """Delete a comment and invalidate the cached list."""
    comment = await _get_or_raise(db, comment_id)

    await db.delete(comment)
    await _commit(db)

    await invalidate_comment_list()
    logger.info("Deleted comment id=%s", comment_id)
