"""
Notifications module - In-app messages for students.

Created as a side effect of payment reconciliation, manual payment
verification and deadline reminders, and consumed by the student dashboard.
"""

from apply4me.modules.notifications.models import Notification, NotificationType

__all__ = ["Notification", "NotificationType"]
