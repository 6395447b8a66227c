"""
Notification Service

Notification records are written as side effects of portal workflows
(application submitted, application reviewed) and read back per user.
"""

from typing import Any, Dict, List, Optional

from core.errors import NotAuthorizedError, PortalError
from services.collections import CollectionService
from services.session import CurrentUser


def is_addressed_to(notification: Dict[str, Any], user: CurrentUser) -> bool:
    """A direct notification reaches only its target user; otherwise the role decides."""
    target_user = notification.get("targetUser")
    if target_user:
        return target_user == user.uid
    return notification.get("targetRole") in (None, "all", user.role)


class NotificationService:
    """Service for notification records."""

    COLLECTION = "notifications"

    def __init__(self, collections: CollectionService):
        self.collections = collections

    async def notify(
        self,
        title: str,
        message: str,
        notification_type: str = "info",
        target_role: Optional[str] = None,
        target_user: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a notification for a role, a single user, or everyone."""
        return await self.collections.create(self.COLLECTION, {
            "title": title,
            "message": message,
            "type": notification_type,
            "targetRole": target_role,
            "targetUser": target_user,
        })

    async def get_notifications(self) -> List[Dict[str, Any]]:
        """Get every notification record."""
        try:
            return await self.collections.read(self.COLLECTION)
        except PortalError as e:
            print(f"[ERROR] Could not load notifications: {e}")
            return []

    async def get_notifications_for_current_user(self) -> List[Dict[str, Any]]:
        """
        Notifications addressed to the current user, directly or through
        their role, newest first.
        """
        user = self.collections.session.user
        if user is None:
            return []

        matching = [n for n in await self.get_notifications() if is_addressed_to(n, user)]
        matching.sort(key=lambda n: n.get("createdAt", ""), reverse=True)
        return matching

    async def mark_notification_as_read(self, notification_id: str) -> Dict[str, Any]:
        """Flag a notification as read. Only its recipients may do so."""
        def mark_read(user, notification):
            if not is_addressed_to(notification, user):
                raise NotAuthorizedError("This notification is addressed to another user")
            if notification.get("read") is True:
                return None
            return {"read": True}

        return await self.collections.update_as_participant(
            self.COLLECTION, notification_id, mark_read
        )
