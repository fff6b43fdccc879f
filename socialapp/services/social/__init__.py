"""Follow and block services plus the shared relationship queries."""

from .block_service import BlockService
from .follow_service import FollowService

__all__ = ["BlockService", "FollowService"]
