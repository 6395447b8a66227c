"""
Campus Portal

Wires the store, auth gateway, caches and domain services together. One
CampusPortal is one browser-like client session.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

from core.auth import AuthGateway, FirebaseAuthGateway
from services.announcements import AnnouncementService
from services.applications import ApplicationService
from services.assignments import AssignmentService
from services.cache import RedisCache, get_local_cache, get_session_cache
from services.collections import CollectionService
from services.firebase import RemoteStore, get_remote_store
from services.notifications import NotificationService
from services.schedules import ScheduleService
from services.session import SessionContext, SessionManager
from services.sync import LocalCacheSync
from services.users import UserDirectoryService


class CampusPortal:
    """Composition root for the portal services."""

    def __init__(
        self,
        store: RemoteStore,
        gateway: AuthGateway,
        local_cache: RedisCache,
        session_cache: RedisCache
    ):
        self.store = store
        self.gateway = gateway
        self.context = SessionContext()

        self.session = SessionManager(store, gateway, self.context, local_cache, session_cache)
        self.collections = CollectionService(store, self.context)
        self.notifications = NotificationService(self.collections)
        self.assignments = AssignmentService(self.collections)
        self.applications = ApplicationService(self.collections, self.notifications)
        self.announcements = AnnouncementService(self.collections)
        self.schedules = ScheduleService(self.collections)
        self.users = UserDirectoryService(self.collections)
        self.sync = LocalCacheSync(store, local_cache, self.collections, self.assignments)

        # Mutation + refresh pairs and scheduled refreshes never interleave
        self._refresh_lock = asyncio.Lock()

    @property
    def current_user(self):
        return self.context.user

    async def start(self) -> Dict[str, Any]:
        """Connect the store, populate the local cache and restore the session."""
        connected = await self.store.connect()
        if not connected:
            print("[PORTAL] Starting in offline mode")
        bootstrap = await self.sync.bootstrap()
        self.session.start()
        return {"connected": connected, "bootstrap": bootstrap}

    def stop(self):
        self.session.stop()

    async def refresh(self) -> Dict[str, Any]:
        async with self._refresh_lock:
            return await self.sync.refresh_all()

    async def run_and_refresh(
        self,
        mutation: Callable[..., Awaitable[Dict[str, Any]]],
        *args,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Run a mutation, then refresh the local cache once it has completed.

        The refresh is skipped when the mutation fails.
        """
        async with self._refresh_lock:
            result = await mutation(*args, **kwargs)
            if result.get("success"):
                result["refresh"] = await self.sync.refresh_all()
            return result


_portal_instance: Optional[CampusPortal] = None


def build_portal() -> CampusPortal:
    """Build a portal wired to Firebase and Redis."""
    return CampusPortal(
        store=get_remote_store(),
        gateway=FirebaseAuthGateway(),
        local_cache=get_local_cache(),
        session_cache=get_session_cache()
    )


def get_portal() -> CampusPortal:
    """Get the singleton portal instance."""
    global _portal_instance
    if _portal_instance is None:
        _portal_instance = build_portal()
    return _portal_instance
