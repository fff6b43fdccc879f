"""Comment router for threaded comments and comment reports."""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Path, status
from sqlalchemy.orm import Session

from socialapp.core.database import get_db
from socialapp.modules.users.models import User
from socialapp.services.comments.service import CommentService

from .. import oauth2, schemas

router = APIRouter(prefix="/comments", tags=["Comments"])


def get_comment_service(db: Session = Depends(get_db)) -> CommentService:
    """Provide a CommentService instance via FastAPI DI."""
    return CommentService(db)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=schemas.CommentOut)
def create_comment(
    comment: schemas.CommentCreate,
    background_tasks: BackgroundTasks,
    service: CommentService = Depends(get_comment_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """
    Create a comment or a reply.

    Parameters:
      - comment: post_id, content and an optional parent_comment_id.
      - background_tasks: Used to push notifications to connected clients.

    Process:
      - Verify the post is visible and the parent belongs to it.
      - Notify the post owner, and the parent author for replies.
    """
    return service.create_comment(
        payload=comment,
        current_user=current_user,
        background_tasks=background_tasks,
    )


@router.get("/{comment_id}/replies", response_model=List[schemas.CommentOut])
def get_replies(
    comment_id: int = Path(..., gt=0),
    service: CommentService = Depends(get_comment_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.list_replies(comment_id=comment_id, current_user=current_user)


@router.put("/{comment_id}", response_model=schemas.CommentOut)
def update_comment(
    payload: schemas.CommentUpdate,
    comment_id: int = Path(..., gt=0),
    service: CommentService = Depends(get_comment_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.update_comment(
        comment_id=comment_id, payload=payload, current_user=current_user
    )


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    comment_id: int = Path(..., gt=0),
    service: CommentService = Depends(get_comment_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Delete a comment together with every reply below it."""
    service.delete_comment(comment_id=comment_id, current_user=current_user)


@router.post(
    "/{comment_id}/reports",
    status_code=status.HTTP_201_CREATED,
    response_model=schemas.CommentReportOut,
)
def report_comment(
    payload: schemas.CommentReportCreate,
    comment_id: int = Path(..., gt=0),
    service: CommentService = Depends(get_comment_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.report_comment(
        comment_id=comment_id, payload=payload, current_user=current_user
    )
