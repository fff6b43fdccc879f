"""User domain package exports."""

from .models import User, UserRole

__all__ = ["User", "UserRole"]


def __getattr__(name: str):
    if name == "UserService":
        from socialapp.services.users.service import UserService as _UserService

        return _UserService
    raise AttributeError(f"module 'socialapp.modules.users' has no attribute {name!r}")
