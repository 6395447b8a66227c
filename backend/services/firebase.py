"""
Firebase Realtime Database Store

Path-addressed collection store used by every portal service. Paths are
"/"-joined segments; each segment is trimmed and must be non-empty.

The Admin SDK is blocking, so every call runs on the default executor and the
store methods are coroutines.
"""

import asyncio
import functools
import secrets
import time
from typing import Any, Dict, Optional

from firebase_admin import db
from firebase_admin.exceptions import FirebaseError

from core.config import wait_for_firebase
from core.errors import BackendUnavailableError, InvalidInputError, RemoteStoreError


PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"


def build_path(*segments: Any) -> str:
    """
    Join path segments with "/".

    Raises:
        InvalidInputError: If any segment is empty after trimming
    """
    if not segments:
        raise InvalidInputError("Invalid path: no segments given")

    cleaned = []
    for segment in segments:
        value = "" if segment is None else str(segment).strip().strip("/")
        if not value:
            raise InvalidInputError(f'Invalid path segment: "{segment}"')
        cleaned.append(value)
    return "/".join(cleaned)


class PushIdGenerator:
    """
    Generates chronologically ordered 20-character keys, the same shape the
    Realtime Database uses for pushed children.
    """

    def __init__(self):
        self._last_push_time = 0
        self._last_rand_chars = [0] * 12

    def generate(self) -> str:
        now = int(time.time() * 1000)
        duplicate_time = now == self._last_push_time
        self._last_push_time = now

        time_chars = []
        for _ in range(8):
            time_chars.append(PUSH_CHARS[now % 64])
            now //= 64
        key = "".join(reversed(time_chars))

        if not duplicate_time:
            self._last_rand_chars = [secrets.randbelow(64) for _ in range(12)]
        else:
            # Same millisecond: increment the random part so keys stay ordered
            i = 11
            while i >= 0 and self._last_rand_chars[i] == 63:
                self._last_rand_chars[i] = 0
                i -= 1
            if i >= 0:
                self._last_rand_chars[i] += 1

        return key + "".join(PUSH_CHARS[c] for c in self._last_rand_chars)


class RemoteStore:
    """Interface of the remote key-path store."""

    @property
    def is_ready(self) -> bool:
        raise NotImplementedError

    async def connect(self) -> bool:
        raise NotImplementedError

    async def write(self, path: str, value: Any) -> None:
        raise NotImplementedError

    async def read(self, path: str) -> Optional[Any]:
        raise NotImplementedError

    async def update(self, path: str, patch: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def delete(self, path: str) -> None:
        raise NotImplementedError

    async def generate_key(self, path: str) -> str:
        raise NotImplementedError

    async def create_if_absent(self, path: str, value: Any) -> bool:
        """Write value only if nothing exists at path. Returns True if written."""
        raise NotImplementedError


class FirebaseRealtimeStore(RemoteStore):
    """RemoteStore backed by the Firebase Realtime Database."""

    def __init__(self):
        self._app = None
        self._push_ids = PushIdGenerator()

    @property
    def is_ready(self) -> bool:
        return self._app is not None

    async def connect(self) -> bool:
        """
        Wait for Firebase initialization.

        Returns:
            True if the store is usable, False otherwise
        """
        if self._app is not None:
            return True
        try:
            self._app = await wait_for_firebase()
            print("[STORE] Realtime Database ready")
            return True
        except BackendUnavailableError as e:
            print(f"[STORE] Realtime Database unavailable: {e}")
            return False

    def _ref(self, path: str):
        if self._app is None:
            raise BackendUnavailableError("Firebase not initialized")
        return db.reference(build_path(*path.split("/")), app=self._app)

    async def _run(self, func, *args):
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(func, *args))
        except FirebaseError as e:
            raise RemoteStoreError(f"Realtime Database error: {e}") from e
        except ValueError as e:
            raise InvalidInputError(str(e)) from e

    async def write(self, path: str, value: Any) -> None:
        ref = self._ref(path)
        print(f"[STORE] Writing {ref.path}")
        await self._run(ref.set, value)

    async def read(self, path: str) -> Optional[Any]:
        ref = self._ref(path)
        return await self._run(ref.get)

    async def update(self, path: str, patch: Dict[str, Any]) -> None:
        if not patch:
            raise InvalidInputError("Update patch must not be empty")
        ref = self._ref(path)
        print(f"[STORE] Updating {ref.path}")
        await self._run(ref.update, patch)

    async def delete(self, path: str) -> None:
        ref = self._ref(path)
        print(f"[STORE] Deleting {ref.path}")
        await self._run(ref.delete)

    async def generate_key(self, path: str) -> str:
        # Validates the parent path; the key itself is generated locally like push()
        self._ref(path)
        return self._push_ids.generate()

    async def create_if_absent(self, path: str, value: Any) -> bool:
        ref = self._ref(path)
        state = {"created": False}

        def _create(current):
            state["created"] = current is None
            return value if current is None else current

        await self._run(ref.transaction, _create)
        return state["created"]


_store_instance: Optional[FirebaseRealtimeStore] = None


def get_remote_store() -> FirebaseRealtimeStore:
    """Get the singleton Realtime Database store."""
    global _store_instance
    if _store_instance is None:
        _store_instance = FirebaseRealtimeStore()
    return _store_instance
