"""
Unit test fixtures

In-memory stand-ins for the Realtime Database, Firebase Auth and Redis so the
portal services can be exercised without network access.
"""

import copy
import fnmatch
import itertools
import pytest
import sys
from pathlib import Path

# Add backend to path for imports
backend_dir = Path(__file__).parent.parent.parent
sys.path.insert(0, str(backend_dir))

from core.auth import AuthGateway, Identity, auth_error_message
from core.errors import AuthenticationError, InvalidInputError, RemoteStoreError
from services.cache import RedisCache
from services.firebase import RemoteStore, build_path
from services.portal import CampusPortal


class FakeRemoteStore(RemoteStore):
    """Nested-dict Realtime Database"""

    def __init__(self, data=None, ready=True):
        self.data = data if data is not None else {}
        self.ready = ready
        self.writes = []
        self.failing_paths = set()
        self._keys = itertools.count(1)

    @property
    def is_ready(self):
        return self.ready

    async def connect(self):
        return self.ready

    def _segments(self, path):
        return build_path(*path.split("/")).split("/")

    def _check(self, path):
        for prefix in self.failing_paths:
            if path == prefix or path.startswith(prefix + "/"):
                raise RemoteStoreError(f"Simulated failure at {path}")

    def _node(self, segments, create=False):
        node = self.data
        for segment in segments:
            if not isinstance(node, dict):
                return None
            if segment not in node:
                if not create:
                    return None
                node[segment] = {}
            node = node[segment]
        return node

    async def write(self, path, value):
        self._check(path)
        *parents, leaf = self._segments(path)
        self._node(parents, create=True)[leaf] = copy.deepcopy(value)
        self.writes.append(("write", path))

    async def read(self, path):
        self._check(path)
        return copy.deepcopy(self._node(self._segments(path)))

    async def update(self, path, patch):
        self._check(path)
        if not patch:
            raise InvalidInputError("Update patch must not be empty")
        node = self._node(self._segments(path), create=True)
        node.update(copy.deepcopy(patch))
        self.writes.append(("update", path))

    async def delete(self, path):
        self._check(path)
        *parents, leaf = self._segments(path)
        parent = self._node(parents)
        if isinstance(parent, dict):
            parent.pop(leaf, None)
        self.writes.append(("delete", path))

    async def generate_key(self, path):
        self._segments(path)
        return f"key{next(self._keys):03d}"

    async def create_if_absent(self, path, value):
        if await self.read(path) is not None:
            return False
        await self.write(path, value)
        return True


class FakeAuthGateway(AuthGateway):
    """Email/password accounts held in a dict"""

    def __init__(self):
        super().__init__()
        self.accounts = {}
        self._uids = itertools.count(1)

    def add_account(self, email, password, uid=None):
        uid = uid or f"uid{next(self._uids)}"
        self.accounts[email] = {"uid": uid, "password": password}
        return uid

    async def register(self, email, password):
        if email in self.accounts:
            raise AuthenticationError(auth_error_message("EMAIL_EXISTS"))
        if len(password or "") < 6:
            raise AuthenticationError(auth_error_message("WEAK_PASSWORD"))
        uid = self.add_account(email, password)
        identity = Identity(uid=uid, email=email)
        await self._set_identity(identity)
        return identity

    async def sign_in(self, email, password):
        account = self.accounts.get(email)
        if account is None or account["password"] != password:
            raise AuthenticationError(auth_error_message("INVALID_LOGIN_CREDENTIALS"))
        identity = Identity(uid=account["uid"], email=email)
        await self._set_identity(identity)
        return identity

    async def sign_out(self):
        await self._set_identity(None)


class FakeRedis:
    """Just enough of redis.Redis for RedisCache"""

    def __init__(self):
        self.store = {}
        self.expiry = {}

    def ping(self):
        return True

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value):
        self.store[key] = value
        return True

    def setex(self, key, ttl, value):
        self.expiry[key] = ttl
        return self.set(key, value)

    def delete(self, *keys):
        count = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                count += 1
        return count

    def scan_iter(self, match="*"):
        return [k for k in list(self.store) if fnmatch.fnmatch(k, match)]


@pytest.fixture
def store():
    return FakeRemoteStore()


@pytest.fixture
def gateway():
    return FakeAuthGateway()


@pytest.fixture
def redis_client():
    return FakeRedis()


@pytest.fixture
def local_cache(redis_client):
    return RedisCache(namespace="local", client=redis_client)


@pytest.fixture
def session_cache(redis_client):
    return RedisCache(namespace="session:test", ttl=60, client=redis_client)


@pytest.fixture
def portal(store, gateway, local_cache, session_cache):
    return CampusPortal(store, gateway, local_cache, session_cache)


@pytest.fixture
def as_staff(portal):
    portal.session.set_current_user(
        {"uid": "staff1", "name": "Sarah Wilson", "role": "staff", "email": "sarah@uni.edu"}
    )
    return portal.current_user


@pytest.fixture
def as_student(portal):
    portal.session.set_current_user(
        {"uid": "student1", "name": "John Smith", "role": "student", "email": "john@uni.edu"}
    )
    return portal.current_user


@pytest.fixture
def login_as(portal):
    """Switch the portal's current user"""
    def _login(uid, role, name=None):
        portal.session.set_current_user({"uid": uid, "role": role, "name": name or uid})
        return portal.current_user
    return _login
