"""Follow router for follow/unfollow flows and follower listings."""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query, Request, status
from sqlalchemy.orm import Session

from socialapp.core.database import get_db
from socialapp.core.middleware.rate_limit import limiter
from socialapp.modules.social import FollowService
from socialapp.modules.users.models import User

from .. import oauth2, schemas

router = APIRouter(prefix="/follow", tags=["Follow"])


def get_follow_service(db: Session = Depends(get_db)) -> FollowService:
    """Provide a FollowService instance via FastAPI DI."""
    return FollowService(db)


@router.get("/friends", response_model=List[schemas.UserBrief])
def get_friends(
    service: FollowService = Depends(get_follow_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Users the caller follows who also follow the caller back."""
    return service.get_friends(current_user=current_user)


@router.post("/{user_id}", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def follow_user(
    request: Request,
    background_tasks: BackgroundTasks,
    user_id: int = Path(..., gt=0),
    service: FollowService = Depends(get_follow_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """
    Follow a user.

    Parameters:
      - request: HTTP request object (required for rate limiting).
      - user_id: ID of the user to follow.
      - background_tasks: Used to push the follow notification.

    Process:
      - Prevent following oneself.
      - Check the user to follow exists and is not deleted.
      - Refuse when either side has blocked the other.
      - Verify the user is not already followed.
      - Create the follow record and notify the target.

    Returns:
      A success message.
    """
    return service.follow_user(
        current_user=current_user,
        target_user_id=user_id,
        background_tasks=background_tasks,
    )


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def unfollow_user(
    user_id: int = Path(..., gt=0),
    service: FollowService = Depends(get_follow_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """
    Unfollow a user.

    Returns 404 when the caller does not follow the user.
    """
    service.unfollow_user(current_user=current_user, target_user_id=user_id)


@router.get("/{user_id}/followers", response_model=schemas.FollowListOut)
def get_followers(
    user_id: int = Path(..., gt=0),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1),
    service: FollowService = Depends(get_follow_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.get_followers(
        current_user=current_user, user_id=user_id, page=page, page_size=page_size
    )


@router.get("/{user_id}/following", response_model=schemas.FollowListOut)
def get_following(
    user_id: int = Path(..., gt=0),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1),
    service: FollowService = Depends(get_follow_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.get_following(
        current_user=current_user, user_id=user_id, page=page, page_size=page_size
    )


@router.get("/{user_id}/status", response_model=schemas.FollowStatus)
def get_follow_status(
    user_id: int = Path(..., gt=0),
    service: FollowService = Depends(get_follow_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.get_status(current_user=current_user, user_id=user_id)
