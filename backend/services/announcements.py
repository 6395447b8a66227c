"""
Announcement Service

Staff publish announcements to everyone or to one audience; each reader is
recorded in readBy so unread counts can be shown per user.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from core.errors import PortalError
from services.collections import CollectionService

AUDIENCE_ALL = "all"

# Accepted spellings for each audience
AUDIENCE_ALIASES = {
    "students": "student",
    "student": "student",
    "staff": "staff",
    "all": AUDIENCE_ALL,
}


def normalize_audience(audience: Optional[str]) -> str:
    if not audience:
        return AUDIENCE_ALL
    return AUDIENCE_ALIASES.get(audience.strip().lower(), audience)


class AnnouncementService:
    """Service for announcements and read tracking."""

    COLLECTION = "announcements"

    def __init__(self, collections: CollectionService):
        self.collections = collections

    async def create_announcement(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Publish an announcement (staff only)."""
        record = dict(data)
        record["targetAudience"] = normalize_audience(record.get("targetAudience"))
        record["publishDate"] = datetime.utcnow().isoformat()
        return await self.collections.create(self.COLLECTION, record)

    async def update_announcement(self, announcement_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        changes = dict(data)
        if "targetAudience" in changes:
            changes["targetAudience"] = normalize_audience(changes["targetAudience"])
        return await self.collections.update(self.COLLECTION, announcement_id, changes)

    async def delete_announcement(self, announcement_id: str) -> Dict[str, Any]:
        return await self.collections.delete(self.COLLECTION, announcement_id)

    async def get_announcements(self) -> List[Dict[str, Any]]:
        """Get all announcements."""
        try:
            announcements = await self.collections.read(self.COLLECTION)
            print(f"[ANNOUNCEMENTS] Retrieved {len(announcements)} announcements")
            return announcements
        except PortalError as e:
            print(f"[ERROR] Could not load announcements: {e}")
            return []

    async def get_announcements_by_audience(self, audience: str) -> List[Dict[str, Any]]:
        """Announcements for an audience, including those sent to everyone."""
        audience = normalize_audience(audience)
        return [
            a for a in await self.get_announcements()
            if normalize_audience(a.get("targetAudience")) in (audience, AUDIENCE_ALL)
        ]

    async def get_announcements_for_current_user(self) -> List[Dict[str, Any]]:
        user = self.collections.session.user
        if user is None:
            return []
        return await self.get_announcements_by_audience(user.role)

    async def mark_announcement_as_read(self, announcement_id: str) -> Dict[str, Any]:
        """
        Add the current user to an announcement's readBy list.

        Marking the same announcement twice leaves a single entry. This is the
        only way non-staff users can change an announcement.
        """
        def add_reader(user, announcement):
            read_by = list(announcement.get("readBy") or [])
            if user.uid in read_by:
                return None
            return {"readBy": read_by + [user.uid]}

        return await self.collections.update_as_participant(
            self.COLLECTION, announcement_id, add_reader
        )

    async def get_unread_announcements(self, user_id: str, audience: Optional[str] = None) -> List[Dict[str, Any]]:
        """Announcements the user has not read yet, optionally limited to an audience."""
        if audience:
            announcements = await self.get_announcements_by_audience(audience)
        else:
            announcements = await self.get_announcements()
        return [a for a in announcements if user_id not in (a.get("readBy") or [])]
