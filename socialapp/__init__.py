"""SocialApp package init."""

from socialapp.core.config import Settings, settings
from socialapp.core.database import Base, SessionLocal, engine, get_db

__all__ = [
    "settings",
    "Settings",
    "Base",
    "SessionLocal",
    "engine",
    "get_db",
]
