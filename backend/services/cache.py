"""
Redis Local Cache

Persisted key/value mirror used by the portal for the current user and for
collection snapshots, so later loads can render without a round trip.

Features:
- JSON-encoded string values
- Durable namespace (no TTL) and session namespace (expiring)
- Malformed entries read as absent, never fatal
- Graceful fallback if Redis unavailable
"""

import json
import secrets
from typing import Any, Dict, Optional

import redis

from core.config import (
    CACHE_PREFIX,
    REDIS_DB,
    REDIS_HOST,
    REDIS_PASSWORD,
    REDIS_PORT,
    REDIS_URL,
    SESSION_TTL,
)

# Cache keys
CURRENT_USER_KEY = "currentUser"
ASSIGNMENTS_KEY = "assignments"
SUBMISSIONS_KEY = "submissions"
APPLICATIONS_KEY = "applications"
ANNOUNCEMENTS_KEY = "announcements"
SCHEDULES_KEY = "scheduleEvents"
NOTIFICATIONS_KEY = "notifications"


class RedisCache:
    """Redis-backed JSON key/value cache under one namespace."""

    def __init__(
        self,
        namespace: str = "local",
        ttl: Optional[int] = None,
        client: Optional[redis.Redis] = None
    ):
        self.namespace = namespace
        self.ttl = ttl
        self._client: Optional[redis.Redis] = client
        self._connected = False

    def connect(self) -> bool:
        """
        Connect to Redis server.

        Returns:
            True if connected successfully, False otherwise
        """
        try:
            if self._client is None:
                # Try URL first, then host/port
                if REDIS_URL and REDIS_URL != "redis://localhost:6379/0":
                    self._client = redis.from_url(
                        REDIS_URL,
                        decode_responses=True,
                        socket_timeout=5,
                        socket_connect_timeout=5
                    )
                else:
                    self._client = redis.Redis(
                        host=REDIS_HOST,
                        port=REDIS_PORT,
                        db=REDIS_DB,
                        password=REDIS_PASSWORD,
                        decode_responses=True,
                        socket_timeout=5,
                        socket_connect_timeout=5
                    )

            # Test connection
            self._client.ping()
            self._connected = True
            print(f"[CACHE] Connected to Redis ({self.namespace})")
            return True

        except Exception as e:
            print(f"[CACHE] Failed to connect to Redis: {e}")
            self._client = None
            self._connected = False
            return False

    @property
    def is_connected(self) -> bool:
        """Check if Redis is connected"""
        if not self._connected or not self._client:
            return False
        try:
            self._client.ping()
            return True
        except Exception:
            self._connected = False
            return False

    def _ensure_connected(self) -> bool:
        """Ensure Redis is connected, attempt reconnect if not"""
        if self.is_connected:
            return True
        return self.connect()

    def _key(self, key: str) -> str:
        return f"{CACHE_PREFIX}{self.namespace}:{self._sanitize_key(key)}"

    def _sanitize_key(self, key: str) -> str:
        """Sanitize a string for use as Redis key"""
        return key.replace(" ", "_").replace("/", "-")

    def get(self, key: str) -> Optional[Any]:
        """
        Get a JSON value from cache.

        Missing keys, malformed JSON and connection errors all return None.
        """
        if not self._ensure_connected():
            return None

        try:
            data = self._client.get(self._key(key))
        except Exception as e:
            print(f"[CACHE] Get error for {key}: {e}")
            return None

        if data is None:
            return None
        try:
            return json.loads(data)
        except (TypeError, ValueError) as e:
            print(f"[CACHE] Ignoring malformed entry for {key}: {e}")
            return None

    def set(self, key: str, value: Any) -> bool:
        """Store a JSON value, overwriting any previous one"""
        if not self._ensure_connected():
            return False

        try:
            payload = json.dumps(value)
            if self.ttl:
                self._client.setex(self._key(key), self.ttl, payload)
            else:
                self._client.set(self._key(key), payload)
            return True
        except Exception as e:
            print(f"[CACHE] Set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        """Delete a key from cache"""
        if not self._ensure_connected():
            return False

        try:
            self._client.delete(self._key(key))
            return True
        except Exception as e:
            print(f"[CACHE] Delete error for {key}: {e}")
            return False

    def clear_all(self) -> int:
        """Clear every key in this namespace"""
        if not self._ensure_connected():
            return 0

        try:
            keys = list(self._client.scan_iter(match=f"{CACHE_PREFIX}{self.namespace}:*"))
            deleted = self._client.delete(*keys) if keys else 0
            print(f"[CACHE] Cleared {deleted} keys ({self.namespace})")
            return deleted
        except Exception as e:
            print(f"[CACHE] Clear error: {e}")
            return 0

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        if not self._ensure_connected():
            return {"connected": False}

        try:
            keys = list(self._client.scan_iter(match=f"{CACHE_PREFIX}{self.namespace}:*"))
            return {
                "connected": True,
                "namespace": self.namespace,
                "ttl": self.ttl,
                "total_keys": len(keys)
            }
        except Exception as e:
            return {"connected": True, "error": str(e)}


_local_cache: Optional[RedisCache] = None
_session_cache: Optional[RedisCache] = None

# One session namespace per process
SESSION_ID = secrets.token_hex(8)


def get_local_cache() -> RedisCache:
    """Get the durable cache instance"""
    global _local_cache
    if _local_cache is None:
        _local_cache = RedisCache(namespace="local")
        _local_cache.connect()
    return _local_cache


def get_session_cache() -> RedisCache:
    """Get the session-scoped (expiring) cache instance"""
    global _session_cache
    if _session_cache is None:
        _session_cache = RedisCache(namespace=f"session:{SESSION_ID}", ttl=SESSION_TTL)
        _session_cache.connect()
    return _session_cache
