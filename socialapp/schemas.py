# ruff: noqa: F401,F403
"""
File: schemas.py
Description: Single import point for the project's Pydantic schemas.

Note:
- Canonical schemas live under `socialapp.modules.*.schemas`; this file re-exports
  them so routers can `from socialapp import schemas`.
"""

from __future__ import annotations

from socialapp.modules.messaging.schemas import *  # noqa: F401,F403
from socialapp.modules.notifications.schemas import *  # noqa: F401,F403
from socialapp.modules.posts.schemas import *  # noqa: F401,F403
from socialapp.modules.social.schemas import *  # noqa: F401,F403
from socialapp.modules.users.schemas import *  # noqa: F401,F403
from socialapp.modules.users.schemas import TokenData, UserBrief, UserOut
