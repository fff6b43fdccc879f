"""Authentication router: registration, login and password changes."""

# =====================================================
# ==================== Imports ========================
# =====================================================
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.security.oauth2 import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from socialapp.core.database import get_db
from socialapp.core.middleware.rate_limit import limiter
from socialapp.modules.users import UserService
from socialapp.modules.users.models import User

from .. import oauth2, schemas

# =====================================================
# =============== Global Constants ====================
# =====================================================
router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = logging.getLogger(__name__)


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    """Provide a UserService instance via FastAPI DI."""
    return UserService(db)


# =====================================================
# ==================== Endpoints ======================
# =====================================================
@router.post(
    "/register", status_code=status.HTTP_201_CREATED, response_model=schemas.UserOut
)
@limiter.limit("10/minute")
def register_user(
    request: Request,
    user: schemas.UserCreate,
    background_tasks: BackgroundTasks,
    service: UserService = Depends(get_user_service),
):
    """
    Register a new account.

    Parameters:
      - request: HTTP request object (required for rate limiting).
      - user: Registration payload.
      - background_tasks: Used to push the welcome notification.

    Returns:
      The created user.
    """
    return service.create_user(user, background_tasks=background_tasks)


@router.post("/login", response_model=schemas.LoginResponse)
@limiter.limit("10/minute")
def login(
    request: Request,
    user_credentials: OAuth2PasswordRequestForm = Depends(),
    service: UserService = Depends(get_user_service),
):
    """
    Log a user in with a username or email plus password.

    Process:
      - Resolve the account by username or email.
      - Reject bad credentials and deleted accounts with 403.
      - Issue a bearer token.
    """
    user = service.authenticate(user_credentials.username, user_credentials.password)
    access_token = oauth2.create_access_token(data={"user_id": user.id})
    logger.info("User %s logged in", user.id)
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": user,
    }


@router.get("/me", response_model=schemas.UserOut)
def read_me(current_user: User = Depends(oauth2.get_current_user)):
    return current_user


@router.post("/change-password")
def change_password(
    payload: schemas.PasswordChange,
    service: UserService = Depends(get_user_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Change the caller's password after checking the current one."""
    service.change_password(current_user, payload)
    return {"message": "Password changed successfully"}
