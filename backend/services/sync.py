"""
Local Cache Sync

Mirrors the tracked portal collections into the persisted local cache so the
portal can render from cache when the Realtime Database is unreachable.

Refresh rules:
- Collections are refreshed one at a time, in TRACKED_KEYS order
- An empty remote result never overwrites a cached entry
- A failed read is logged and the refresh moves on
"""

import copy
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.seed import SEED_DATA
from services.assignments import AssignmentService
from services.cache import (
    ANNOUNCEMENTS_KEY,
    APPLICATIONS_KEY,
    ASSIGNMENTS_KEY,
    NOTIFICATIONS_KEY,
    SCHEDULES_KEY,
    SUBMISSIONS_KEY,
    RedisCache,
)
from services.collections import CollectionService
from services.firebase import RemoteStore

TRACKED_KEYS = (
    ASSIGNMENTS_KEY,
    SUBMISSIONS_KEY,
    APPLICATIONS_KEY,
    ANNOUNCEMENTS_KEY,
    SCHEDULES_KEY,
    NOTIFICATIONS_KEY,
)

Reader = Callable[[], Awaitable[List[Dict[str, Any]]]]


class LocalCacheSync:
    """Keeps collection snapshots in the local cache and in memory."""

    def __init__(
        self,
        store: RemoteStore,
        cache: RedisCache,
        collections: CollectionService,
        assignments: AssignmentService,
        seed: Optional[Dict[str, List[Dict[str, Any]]]] = None
    ):
        self.store = store
        self.cache = cache
        self.seed = seed if seed is not None else SEED_DATA
        self.snapshots: Dict[str, List[Dict[str, Any]]] = {}

        def reader(collection: str) -> Reader:
            return lambda: collections.read(collection)

        # Cache key -> coroutine that reads the remote collection
        self.sources: Dict[str, Reader] = {
            ASSIGNMENTS_KEY: reader("assignments"),
            SUBMISSIONS_KEY: assignments.get_all_submissions,
            APPLICATIONS_KEY: reader("applications"),
            ANNOUNCEMENTS_KEY: reader("announcements"),
            SCHEDULES_KEY: reader("schedules"),
            NOTIFICATIONS_KEY: reader("notifications"),
        }

    async def refresh_all(self) -> Dict[str, List[str]]:
        """
        Re-read every tracked collection and update the cache.

        Returns:
            {"refreshed": [...], "skipped": [...], "errors": [...]} of cache keys
        """
        summary = {"refreshed": [], "skipped": [], "errors": []}

        for key in TRACKED_KEYS:
            try:
                records = await self.sources[key]()
            except Exception as e:
                print(f"[SYNC] Could not refresh {key}: {e}")
                summary["errors"].append(key)
                continue

            if not records:
                summary["skipped"].append(key)
                continue

            self.snapshots[key] = records
            self.cache.set(key, records)
            summary["refreshed"].append(key)

        print(f"[SYNC] Refreshed {len(summary['refreshed'])} collections, "
              f"skipped {len(summary['skipped'])}, errors {len(summary['errors'])}")
        return summary

    def load_cached(self) -> List[str]:
        """Load cached snapshots into memory. Returns the keys found."""
        found = []
        for key in TRACKED_KEYS:
            cached = self.cache.get(key)
            if isinstance(cached, list):
                self.snapshots[key] = cached
                found.append(key)
        return found

    async def bootstrap(self) -> Dict[str, Any]:
        """
        Populate the snapshots at startup.

        With the store reachable, cached entries are loaded and then refreshed
        from the remote. Otherwise each entry comes from the cache, falling
        back to the seed dataset (which is then written to the cache).
        """
        found = self.load_cached()

        if self.store.is_ready:
            summary = await self.refresh_all()
            return {"source": "remote", "cached": found, **summary}

        seeded = []
        for key in TRACKED_KEYS:
            if key in found:
                continue
            records = copy.deepcopy(self.seed.get(key, []))
            self.snapshots[key] = records
            self.cache.set(key, records)
            seeded.append(key)

        print(f"[SYNC] Offline bootstrap: {len(found)} from cache, {len(seeded)} from seed data")
        return {"source": "local", "cached": found, "seeded": seeded}

    def get(self, key: str) -> List[Dict[str, Any]]:
        """Current snapshot for a key, read through to the cache."""
        if key not in self.snapshots:
            cached = self.cache.get(key)
            if not isinstance(cached, list):
                return []
            self.snapshots[key] = cached
        return self.snapshots[key]

    def invalidate(self, key: Optional[str] = None):
        """Drop one snapshot (or all of them) from memory and the cache."""
        keys = [key] if key else list(TRACKED_KEYS)
        for k in keys:
            self.snapshots.pop(k, None)
            self.cache.delete(k)
