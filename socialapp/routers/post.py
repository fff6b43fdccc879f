"""Post router for creating, reading, updating and deleting posts."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from socialapp.core.database import get_db
from socialapp.modules.users.models import User
from socialapp.services.comments.service import CommentService
from socialapp.services.posts.post_service import PostService

from .. import oauth2, schemas

router = APIRouter(prefix="/posts", tags=["Posts"])


def get_post_service(db: Session = Depends(get_db)) -> PostService:
    """Provide a PostService instance via FastAPI DI."""
    return PostService(db)


def get_comment_service(db: Session = Depends(get_db)) -> CommentService:
    return CommentService(db)


@router.get("", response_model=schemas.PostListOut)
def get_posts(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1),
    username: Optional[str] = Query(None),
    only_following: bool = Query(False),
    service: PostService = Depends(get_post_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """
    Retrieve the post feed.

    Parameters:
      - page / page_size: 1-based paging; page size is clamped to 50.
      - username: Restrict to one author.
      - only_following: Restrict to followed authors plus the caller.

    Returns:
      Posts newest first with page metadata. Privacy and block rules apply.
    """
    return service.list_posts(
        current_user=current_user,
        page=page,
        page_size=page_size,
        username=username,
        only_following=only_following,
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=schemas.PostOut)
def create_post(
    post: schemas.PostCreate,
    service: PostService = Depends(get_post_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Create a post; the media list order becomes each item's order_index."""
    return service.create_post(post=post, current_user=current_user)


@router.get("/{id}", response_model=schemas.PostOut)
def get_post(
    id: int = Path(..., gt=0),
    service: PostService = Depends(get_post_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.get_post(post_id=id, current_user=current_user)


@router.put("/{id}", response_model=schemas.PostOut)
def update_post(
    updated_post: schemas.PostUpdate,
    id: int = Path(..., gt=0),
    service: PostService = Depends(get_post_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """
    Update a post.

    Only the owner may update; anyone else gets 404 so the post's existence
    is not revealed.
    """
    return service.update_post(
        post_id=id, updated_post=updated_post, current_user=current_user
    )


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    id: int = Path(..., gt=0),
    service: PostService = Depends(get_post_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Delete a post with its comments, reactions and notifications."""
    service.delete_post(post_id=id, current_user=current_user)


@router.get("/{id}/comments", response_model=List[schemas.CommentOut])
def get_post_comments(
    id: int = Path(..., gt=0),
    service: CommentService = Depends(get_comment_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Top-level comments of a post, oldest first."""
    return service.list_post_comments(post_id=id, current_user=current_user)
