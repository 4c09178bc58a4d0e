from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession
from comment_api.database import get_db
from comment_api.schemas import CommentCreate, CommentResponse, CommentUpdate
from comment_api.services import comment_service

router = APIRouter(prefix="/api/v1/comments", tags=["comments"])

# Domain errors (not found, validation, store unavailable) are mapped to
# HTTP responses by the handlers registered in comment_api.main.

@router.get("", response_model=list[CommentResponse])
async def list_comments(db: AsyncSession = Depends(get_db)):
    return await comment_service.list_comments(db)

@router.post("", status_code=201, response_model=CommentResponse)
async def create_comment(data: CommentCreate, db: AsyncSession = Depends(get_db)):
    return await comment_service.create_comment(db, data)

@router.get("/{comment_id}", response_model=CommentResponse)
async def get_comment(comment_id: int, db: AsyncSession = Depends(get_db)):
    return await comment_service.get_comment(db, comment_id)

@router.put("/{comment_id}", response_model=CommentResponse)
async def update_comment(comment_id: int, data: CommentUpdate, db: AsyncSession = Depends(get_db)):
    return await comment_service.update_comment(db, comment_id, data)

@router.delete("/{comment_id}", status_code=204)
async def delete_comment(comment_id: int, db: AsyncSession = Depends(get_db)):
    await comment_service.delete_comment(db, comment_id)
    return Response(status_code=204)

@router.get("/{comment_id}/replies", response_model=list[CommentResponse])
async def list_replies(comment_id: int, db: AsyncSession = Depends(get_db)):
    return await comment_service.list_replies(db, comment_id)
