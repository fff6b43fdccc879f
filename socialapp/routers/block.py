"""Block router: block/unblock users and inspect block state."""

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.orm import Session

from socialapp.core.database import get_db
from socialapp.modules.social import BlockService
from socialapp.modules.users.models import User

from .. import oauth2, schemas

router = APIRouter(prefix="/block", tags=["Block"])


def get_block_service(db: Session = Depends(get_db)) -> BlockService:
    """Provide a BlockService instance via FastAPI DI."""
    return BlockService(db)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=schemas.BlockOut)
def block_user(
    payload: schemas.BlockCreate,
    response: Response,
    service: BlockService = Depends(get_block_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """
    Block a user.

    Process:
      - Refuse self-blocks and unknown users.
      - Return the existing block with 200 when it is already in place.
      - Otherwise create it (201) and drop follows in both directions.
    """
    block, created = service.block_user(current_user=current_user, payload=payload)
    if not created:
        response.status_code = status.HTTP_200_OK
    return schemas.BlockOut(
        blocker_id=block.blocker_id,
        blocked_user_id=block.blocked_user_id,
        reason=block.reason,
        created_at=block.created_at,
        already_blocked=not created,
    )


@router.get("/blocked-users", response_model=schemas.BlockedUsersPage)
def list_blocked_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1),
    service: BlockService = Depends(get_block_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.list_blocked(
        current_user=current_user, page=page, page_size=page_size
    )


@router.get("/status/{user_id}", response_model=schemas.BlockStatus)
def get_block_status(
    user_id: int = Path(..., gt=0),
    service: BlockService = Depends(get_block_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.get_status(current_user=current_user, user_id=user_id)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def unblock_user(
    user_id: int = Path(..., gt=0),
    service: BlockService = Depends(get_block_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    service.unblock_user(current_user=current_user, user_id=user_id)
