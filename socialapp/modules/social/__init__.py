"""Social graph exports."""

from .models import UserBlock, UserFollower

__all__ = ["UserBlock", "UserFollower"]


def __getattr__(name: str):
    if name == "FollowService":
        from socialapp.services.social.follow_service import FollowService

        return FollowService
    if name == "BlockService":
        from socialapp.services.social.block_service import BlockService

        return BlockService
    raise AttributeError(f"module 'socialapp.modules.social' has no attribute {name!r}")
