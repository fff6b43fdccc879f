"""Notifications domain exports."""

from .models import Notification, NotificationType

__all__ = ["Notification", "NotificationType"]
