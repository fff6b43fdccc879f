"""JWT utilities for auth and session enforcement.

Responsibilities:
- Create and verify signed access tokens with expirations.
- Resolve the current user/admin, rejecting soft-deleted accounts.
- Surface HTTP-friendly errors for invalid/expired tokens.
"""

# ============================================
# Imports and Dependencies
# ============================================
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from socialapp.core.config import settings
from socialapp.core.database import get_db
from socialapp.core.exceptions import InvalidTokenException
from socialapp.core.logging_config import bind_user
from socialapp.modules.users.models import User, UserRole
from socialapp.modules.users.schemas import TokenData

logger = logging.getLogger(__name__)

# Configure OAuth2 to retrieve the token from the "login" endpoint
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)

ALGORITHM = settings.algorithm
ACCESS_TOKEN_EXPIRE_MINUTES = settings.access_token_expire_minutes


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid Credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


# ============================================
# Token Creation Function
# ============================================
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT access token.

    - Clones payload, normalizes user_id to int, and sets exp claim.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})

    if "user_id" in to_encode:
        try:
            to_encode["user_id"] = int(to_encode["user_id"])
        except (TypeError, ValueError):
            logger.error(f"Invalid user_id format: {to_encode['user_id']}")
            raise ValueError("Invalid user_id format")

    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


# ============================================
# Token Verification Function
# ============================================
def verify_access_token(token: str, credentials_exception) -> TokenData:
    """Verify JWT access token (exp/user_id) and return TokenData or raise."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT Error: {str(e)}")
        raise credentials_exception

    user_id = payload.get("user_id")
    if user_id is None:
        logger.warning("User ID not found in token payload")
        raise credentials_exception
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        logger.warning(f"Invalid user_id in token payload: {user_id}")
        raise credentials_exception

    return TokenData(id=user_id)


def get_user_from_token(token: str, db: Session) -> User:
    """Resolve the active user behind a raw token (websocket handshakes)."""
    token_data = verify_access_token(token, InvalidTokenException())
    user = db.query(User).filter(User.id == token_data.id).first()
    if user is None or user.is_deleted:
        raise InvalidTokenException()
    return user


# ============================================
# Current User Retrieval Function
# ============================================
def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Return the authenticated, non-deleted user and refresh `last_active`."""
    credentials_exception = _credentials_exception()
    token_data = verify_access_token(token, credentials_exception)

    user = db.query(User).filter(User.id == token_data.id).first()
    if user is None or user.is_deleted:
        raise credentials_exception

    user.last_active = datetime.now(timezone.utc)
    db.commit()

    request.state.user_id = user.id
    bind_user(user.id)
    return user


def get_optional_user(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Caller behind a valid token, or None for anonymous and bad tokens."""
    if not token:
        return None
    try:
        return get_user_from_token(token, db)
    except InvalidTokenException:
        return None


# ============================================
# Admin User Retrieval Function
# ============================================
def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    """Return current user if admin; otherwise raise 403."""
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required"
        )
    return current_user
