"""User router: profiles, profile edits, search and account deletion."""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from socialapp.core.database import get_db
from socialapp.modules.users import UserService
from socialapp.modules.users.models import User
from socialapp.services.posts.post_service import PostService

from .. import oauth2, schemas

router = APIRouter(prefix="/users", tags=["Users"])


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    """Provide a UserService instance via FastAPI DI."""
    return UserService(db)


def get_post_service(db: Session = Depends(get_db)) -> PostService:
    return PostService(db)


# Static paths are declared before /{user_id} so they are not captured by it.
@router.get("/search", response_model=schemas.UserSearchResult)
def search_users(
    q: str = Query(..., min_length=1, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1),
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """
    Search users by username, first name or last name.

    Deleted users, the caller and anyone on either side of a block are left out.
    """
    return service.search_users(
        current_user=current_user, q=q, page=page, page_size=page_size
    )


@router.get("/friends/search", response_model=schemas.UserSearchResult)
def search_friends(
    q: str = Query(..., min_length=1, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1),
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Search restricted to mutual followers."""
    return service.search_users(
        current_user=current_user,
        q=q,
        page=page,
        page_size=page_size,
        friends_only=True,
    )


@router.get("/check-username", response_model=schemas.AvailabilityOut)
def check_username(
    username: str = Query(..., min_length=1, max_length=50),
    service: UserService = Depends(get_user_service),
    current_user: Optional[User] = Depends(oauth2.get_optional_user),
):
    """Whether `username` is free. Signed-in callers may keep their own."""
    return {
        "is_available": service.is_username_available(
            username, current_user=current_user
        )
    }


@router.get("/check-email", response_model=schemas.AvailabilityOut)
def check_email(
    email: str = Query(..., min_length=3, max_length=255),
    service: UserService = Depends(get_user_service),
    current_user: Optional[User] = Depends(oauth2.get_optional_user),
):
    return {"is_available": service.is_email_available(email, current_user=current_user)}


@router.put("/me", response_model=schemas.UserOut)
def update_me(
    update: schemas.UserUpdate,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.update_profile(current_user, update)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_me(
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Soft-delete the caller's account."""
    service.soft_delete(current_user)


@router.get("/by-username/{username}", response_model=schemas.UserProfileOut)
def get_user_by_username(
    username: str,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.get_profile_by_username(current_user=current_user, username=username)


@router.get("/{user_id}", response_model=schemas.UserProfileOut)
def get_user(
    user_id: int = Path(..., gt=0),
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """
    Retrieve a user's profile.

    Parameters:
      - user_id: ID of the user.

    Returns:
      Profile with follower/following/post counts and relationship flags.
      Deleted users and users on either side of a block return 404.
    """
    return service.get_profile(current_user=current_user, user_id=user_id)


@router.get("/{user_id}/posts", response_model=schemas.PostListOut)
def get_user_posts(
    user_id: int = Path(..., gt=0),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1),
    service: PostService = Depends(get_post_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.list_user_posts(
        user_id=user_id, current_user=current_user, page=page, page_size=page_size
    )
