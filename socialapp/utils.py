"""
File: utils.py
Description: Small shared helpers: password hashing and text/pair utilities
used by several services.
"""

from typing import Optional, Tuple

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash(password: str) -> str:
    """
    Encrypts the password using bcrypt.
    """
    return pwd_context.hash(password)


def verify(plain_password: str, hashed_password: str) -> bool:
    """
    Verifies a plain password against its hashed version.
    """
    return pwd_context.verify(plain_password, hashed_password)


def ordered_pair(first_id: int, second_id: int) -> Tuple[int, int]:
    """Return the two user ids as (smaller, larger) for pair-keyed tables."""
    return (first_id, second_id) if first_id < second_id else (second_id, first_id)


def truncate_preview(text: Optional[str], limit: int = 100) -> Optional[str]:
    """Cut a message preview to `limit` characters, marking the cut with '...'."""
    if text is None:
        return None
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
