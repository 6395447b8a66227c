"""
User Directory Service

Profiles live in two collections, staff and students. Lookups check staff
first, the same order used to resolve a login.
"""

from typing import Any, Dict, List, Optional

from core.auth import PROFILE_COLLECTIONS
from core.errors import InvalidInputError, PortalError, failure
from services.collections import CollectionService
from services.session import ROLE_PROBE_ORDER

# Fields a user may never change on their own profile
PROTECTED_FIELDS = ("role", "uid", "portal")


class UserDirectoryService:
    """Service for looking up and editing user profiles."""

    def __init__(self, collections: CollectionService):
        self.collections = collections

    async def get_user_profile(self, uid: str) -> Optional[Dict[str, Any]]:
        """Get a profile from staff or students, with its role filled in."""
        try:
            for role in ROLE_PROBE_ORDER:
                profile = await self.collections.read(PROFILE_COLLECTIONS[role], uid)
                if profile:
                    profile.setdefault("role", role)
                    return profile
        except PortalError as e:
            print(f"[ERROR] Could not load profile {uid}: {e}")
            return None

        print(f"[USERS] No profile found for {uid}")
        return None

    async def update_user_profile(self, uid: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update the current user's own profile.

        role, uid and portal are dropped from the patch.
        """
        try:
            user = self.collections.session.require_user()
            changes = {k: v for k, v in (data or {}).items() if k not in PROTECTED_FIELDS}
            if not changes:
                raise InvalidInputError("Nothing to update")
        except Exception as e:
            print(f"[ERROR] Could not update profile {uid}: {e}")
            return failure(e)

        collection = PROFILE_COLLECTIONS.get(user.role, PROFILE_COLLECTIONS["student"])
        return await self.collections.update(collection, uid, changes)

    async def get_all_users(self) -> List[Dict[str, Any]]:
        """Every staff and student profile."""
        users = []
        for role in ROLE_PROBE_ORDER:
            try:
                profiles = await self.collections.read(PROFILE_COLLECTIONS[role])
            except PortalError as e:
                print(f"[ERROR] Could not load {role} profiles: {e}")
                continue
            for profile in profiles:
                profile.setdefault("role", role)
                users.append(profile)

        print(f"[USERS] Retrieved {len(users)} users")
        return users

    async def get_users_by_role(self, role: str) -> List[Dict[str, Any]]:
        return [u for u in await self.get_all_users() if u.get("role") == role]
