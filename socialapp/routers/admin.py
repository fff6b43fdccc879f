"""
Admin Router Module
Role management, account moderation, comment-report review and system
notifications. Every endpoint requires an admin token.
"""

# =====================================================
# ==================== Imports ========================
# =====================================================
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Query
from sqlalchemy.orm import Session

from socialapp.core.database import get_db
from socialapp.modules.notifications.service import NotificationService
from socialapp.modules.posts.models import ReportStatus
from socialapp.modules.users import UserService
from socialapp.modules.users.models import User
from socialapp.services.comments.service import CommentService

from .. import oauth2, schemas

# =====================================================
# =============== Global Variables ====================
# =====================================================
router = APIRouter(prefix="/admin", tags=["Admin"])


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)


def get_comment_service(db: Session = Depends(get_db)) -> CommentService:
    return CommentService(db)


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


# =====================================================
# =================== Endpoints =======================
# =====================================================


@router.get("/users/{user_id}", response_model=schemas.AdminUserOut)
def get_user_detail(
    user_id: int = Path(..., gt=0),
    service: UserService = Depends(get_user_service),
    current_admin: User = Depends(oauth2.get_current_admin),
):
    """Account details for any user, soft-deleted ones included."""
    return service.admin_get(user_id)


@router.put("/users/{user_id}", response_model=schemas.AdminUserOut)
def update_user_profile(
    update: schemas.UserUpdate,
    user_id: int = Path(..., gt=0),
    service: UserService = Depends(get_user_service),
    current_admin: User = Depends(oauth2.get_current_admin),
):
    """Edit another user's profile. A taken username returns 409."""
    return service.admin_update_profile(user_id, update)


@router.put("/users/{user_id}/role", response_model=schemas.UserOut)
def update_user_role(
    payload: schemas.RoleUpdate,
    user_id: int = Path(..., gt=0),
    service: UserService = Depends(get_user_service),
    current_admin: User = Depends(oauth2.get_current_admin),
):
    """Change a user's role to `user` or `admin`."""
    return service.set_role(user_id, payload.role)


@router.delete("/users/{user_id}", response_model=schemas.UserOut)
def delete_user(
    user_id: int = Path(..., gt=0),
    service: UserService = Depends(get_user_service),
    current_admin: User = Depends(oauth2.get_current_admin),
):
    """Soft-delete a user account."""
    return service.admin_delete(user_id)


@router.post("/users/{user_id}/restore", response_model=schemas.UserOut)
def restore_user(
    user_id: int = Path(..., gt=0),
    service: UserService = Depends(get_user_service),
    current_admin: User = Depends(oauth2.get_current_admin),
):
    return service.restore(user_id)


@router.get("/comment-reports", response_model=List[schemas.CommentReportOut])
def list_comment_reports(
    status: Optional[ReportStatus] = Query(None),
    service: CommentService = Depends(get_comment_service),
    current_admin: User = Depends(oauth2.get_current_admin),
):
    """
    List comment reports, newest first.
    Optionally filtered by review status.
    """
    return service.list_reports(status_filter=status)


@router.put("/comment-reports/{report_id}", response_model=schemas.CommentReportOut)
def update_comment_report(
    payload: schemas.CommentReportStatusUpdate,
    report_id: int = Path(..., gt=0),
    service: CommentService = Depends(get_comment_service),
    current_admin: User = Depends(oauth2.get_current_admin),
):
    return service.update_report_status(report_id=report_id, new_status=payload.status)


@router.post("/notifications/system")
def send_system_notification(
    payload: schemas.SystemNotificationCreate,
    background_tasks: BackgroundTasks,
    service: NotificationService = Depends(get_notification_service),
    current_admin: User = Depends(oauth2.get_current_admin),
):
    """Send a System notification to every active user."""
    sent = service.send_system_notification(
        content=payload.content,
        sender=current_admin,
        background_tasks=background_tasks,
    )
    return {"sent": sent}
