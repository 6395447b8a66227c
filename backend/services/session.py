"""
Session Management

SessionManager is the only writer of the current user. It keeps the value in
sync across memory (the SessionContext every service reads), the durable local
cache and the session-scoped cache, and decides which portal (staff or
student) an authenticated identity belongs to.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union

from core.auth import (
    PROFILE_COLLECTIONS,
    AuthGateway,
    Identity,
    UserRole,
    email_local_part,
)
from core.errors import (
    AccountNotProvisionedError,
    InvalidInputError,
    InvalidUserError,
    NotAuthorizedError,
    NotFoundError,
    PortalError,
    WrongPortalError,
    failure,
)
from services.cache import CURRENT_USER_KEY, RedisCache
from services.firebase import RemoteStore, build_path

DEFAULT_DEPARTMENT = "General"

# Probe order for portal auto-detection: staff takes precedence
ROLE_PROBE_ORDER = (UserRole.STAFF.value, UserRole.STUDENT.value)


@dataclass
class CurrentUser:
    """The resolved identity, role and profile of the acting user."""
    uid: str
    name: str
    role: str
    email: Optional[str]
    department: str = DEFAULT_DEPARTMENT
    portal: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role == UserRole.STAFF.value

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT.value

    def created_by(self) -> Dict[str, str]:
        """The createdBy stamp written on records this user creates."""
        return {"uid": self.uid, "name": self.name, "role": self.role}

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_user(user: Union[CurrentUser, Dict[str, Any], None]) -> CurrentUser:
    """
    Build the canonical CurrentUser shape.

    Raises:
        InvalidUserError: If the user has no uid
    """
    if isinstance(user, CurrentUser):
        user = user.to_dict()
    if not user or not user.get("uid"):
        raise InvalidUserError("Invalid user object: uid is required")

    email = user.get("email")
    role = user.get("role") or UserRole.STUDENT.value
    return CurrentUser(
        uid=str(user["uid"]),
        name=user.get("name") or user.get("displayName") or email_local_part(email) or "Unknown User",
        role=role,
        email=email,
        department=user.get("department") or DEFAULT_DEPARTMENT,
        portal=user.get("portal") or role
    )


class SessionContext:
    """
    Holds the current user for every service.

    Services only read it; SessionManager is the one component that sets it.
    """

    def __init__(self):
        self._user: Optional[CurrentUser] = None

    @property
    def user(self) -> Optional[CurrentUser]:
        return self._user

    def _publish(self, user: Optional[CurrentUser]):
        self._user = user

    def require_user(self) -> CurrentUser:
        """
        Raises:
            NotFoundError: If nobody is logged in
        """
        if self._user is None:
            raise NotFoundError("User not logged in or role not found. Please log in again.")
        return self._user

    def has_role(self, role: str) -> bool:
        return self._user is not None and self._user.role == role

    def require_role(self, role: str, operation: str) -> CurrentUser:
        """
        Raises:
            NotFoundError: If nobody is logged in
            NotAuthorizedError: If the current user's role differs
        """
        user = self.require_user()
        if user.role != role:
            raise NotAuthorizedError(f"Only {role} users can {operation}")
        return user


class SessionManager:
    """Owns the current user and the login/registration/logout flows."""

    def __init__(
        self,
        store: RemoteStore,
        gateway: AuthGateway,
        context: SessionContext,
        local_cache: RedisCache,
        session_cache: RedisCache
    ):
        self.store = store
        self.gateway = gateway
        self.context = context
        self.local_cache = local_cache
        self.session_cache = session_cache
        self._flow_in_progress = False
        self._unsubscribe = None

    # --- Current User ---

    def set_current_user(self, user: Union[CurrentUser, Dict[str, Any], None]) -> bool:
        """Normalize, persist and publish the current user. Returns False on an invalid user."""
        try:
            current = normalize_user(user)
        except InvalidUserError as e:
            print(f"[SESSION] {e}")
            return False

        payload = current.to_dict()
        self.local_cache.set(CURRENT_USER_KEY, payload)
        self.session_cache.set(CURRENT_USER_KEY, payload)
        self.context._publish(current)

        print(f"[SESSION] Current user set: {current.name} ({current.role})")
        return True

    def get_current_user(self) -> Optional[CurrentUser]:
        """Return the current user, restoring it from the durable cache if needed."""
        if self.context.user is not None:
            return self.context.user

        saved = self.local_cache.get(CURRENT_USER_KEY)
        if saved is None:
            return None

        try:
            restored = normalize_user(saved if isinstance(saved, dict) else None)
        except InvalidUserError as e:
            print(f"[SESSION] Ignoring cached user: {e}")
            return None

        self.context._publish(restored)
        print(f"[SESSION] Restored current user {restored.uid} from cache")
        return restored

    def clear_current_user(self):
        self.context._publish(None)
        self.local_cache.delete(CURRENT_USER_KEY)
        self.session_cache.delete(CURRENT_USER_KEY)

    # --- Profiles ---

    async def _read_profile(self, role: str, uid: str) -> Optional[Dict[str, Any]]:
        return await self.store.read(build_path(PROFILE_COLLECTIONS[role], uid))

    async def find_profile(self, uid: str) -> Tuple[Optional[str], Optional[Dict[str, Any]]]:
        """Probe the staff collection, then students. Returns (role, profile)."""
        for role in ROLE_PROBE_ORDER:
            profile = await self._read_profile(role, uid)
            if profile:
                return role, profile
        return None, None

    def _default_profile(self, identity: Identity, role: str, name: Optional[str] = None) -> Dict[str, Any]:
        now = datetime.utcnow().isoformat()
        return {
            "uid": identity.uid,
            "name": name or email_local_part(identity.email) or "Unknown User",
            "email": identity.email,
            "role": role,
            "department": DEFAULT_DEPARTMENT,
            "createdAt": now,
            "updatedAt": now,
            "lastLogin": now
        }

    async def _guard_exclusive(self, uid: str, role: str):
        """
        Raises:
            InvalidInputError: If the uid already has a profile under the other role
        """
        for other in ROLE_PROBE_ORDER:
            if other != role and await self._read_profile(other, uid):
                raise InvalidInputError(f"This account is already registered as {other}.")

    async def ensure_profile(self, identity: Identity) -> Dict[str, Any]:
        """
        Make sure the identity has a profile, creating a default student one
        if neither collection has it. Safe to call repeatedly.
        """
        try:
            role, profile = await self.find_profile(identity.uid)
            if profile:
                return {"success": True, "created": False, "role": role, "profile": profile}

            role = UserRole.STUDENT.value
            profile = self._default_profile(identity, role)
            created = await self.store.create_if_absent(
                build_path(PROFILE_COLLECTIONS[role], identity.uid), profile
            )
            if created:
                print(f"[SESSION] Default student profile created for {identity.email}")
            else:
                profile = await self._read_profile(role, identity.uid) or profile

            return {"success": True, "created": created, "role": role, "profile": profile}
        except Exception as e:
            print(f"[ERROR] Could not ensure profile for {identity.uid}: {e}")
            return failure(e)

    # --- Login Flows ---

    async def resolve_role_and_login(
        self, identity: Identity, portal_hint: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Decide which portal the identity belongs to and make it the current user.

        With a portal hint only that collection is checked. Without one, staff
        is checked first, then students.
        """
        try:
            if portal_hint:
                if portal_hint not in PROFILE_COLLECTIONS:
                    raise InvalidInputError(f"Unknown portal: {portal_hint}")
                role = portal_hint
                profile = await self._read_profile(role, identity.uid)
                if not profile:
                    article = "staff" if role == UserRole.STAFF.value else "a student"
                    other = "student" if role == UserRole.STAFF.value else "staff"
                    raise WrongPortalError(
                        f"This account is not registered as {article}. "
                        f"Please use the {other} portal or contact administrator."
                    )
            else:
                role, profile = await self.find_profile(identity.uid)
                if not profile:
                    raise AccountNotProvisionedError(
                        "User account not found. Please contact administrator to set up your account."
                    )

            now = datetime.utcnow().isoformat()
            await self.store.update(
                build_path(PROFILE_COLLECTIONS[role], identity.uid),
                {"lastLogin": now, "updatedAt": now}
            )

            user = normalize_user({
                "uid": identity.uid,
                "email": identity.email,
                "name": profile.get("name") or profile.get("displayName"),
                "role": role,
                "department": profile.get("department"),
                "portal": role
            })
            self.set_current_user(user)
            print(f"[SESSION] {role.capitalize()} login successful: {user.name}")
            return {"success": True, "user": user}

        except Exception as e:
            print(f"[SESSION] Login resolution failed for {identity.uid}: {e}")
            return failure(e)

    async def login(self, email: str, password: str, portal: Optional[str] = None) -> Dict[str, Any]:
        """Sign in and resolve the portal. A rejected resolution signs the identity back out."""
        print(f"[SESSION] Login for {email} (portal: {portal or 'auto-detect'})")
        self._flow_in_progress = True
        try:
            try:
                identity = await self.gateway.sign_in(email, password)
            except PortalError as e:
                return e.to_result()

            result = await self.resolve_role_and_login(identity, portal)
            if not result["success"]:
                await self._sign_out_rejected("login")
            return result
        finally:
            self._flow_in_progress = False

    async def _sign_out_rejected(self, flow: str):
        try:
            await self.gateway.sign_out()
        except Exception as e:
            print(f"[SESSION] Sign-out after rejected {flow} failed: {e}")

    async def register(self, email: str, password: str, role: Optional[str] = None) -> Dict[str, Any]:
        """Create an account and its profile in the staff or students collection."""
        if role not in PROFILE_COLLECTIONS:
            print(f"[SESSION] Invalid role {role!r}, defaulting to student")
            role = UserRole.STUDENT.value

        self._flow_in_progress = True
        identity = None
        try:
            identity = await self.gateway.register(email, password)
            await self._guard_exclusive(identity.uid, role)

            profile = self._default_profile(identity, role)
            await self.store.write(build_path(PROFILE_COLLECTIONS[role], identity.uid), profile)
            print(f"[SESSION] Registered {role} user: /{PROFILE_COLLECTIONS[role]}/{identity.uid}")

            user = normalize_user({**profile, "portal": role})
            self.set_current_user(user)
            return {"success": True, "user": user}
        except Exception as e:
            print(f"[ERROR] Registration failed for {email}: {e}")
            # The account exists but has no usable profile
            if identity is not None:
                await self._sign_out_rejected("registration")
            return failure(e)
        finally:
            self._flow_in_progress = False

    async def logout(self) -> Dict[str, Any]:
        """Sign out (best effort) and clear every copy of the current user."""
        self._flow_in_progress = True
        try:
            await self.gateway.sign_out()
        except Exception as e:
            print(f"[SESSION] Sign-out failed, clearing local session anyway: {e}")
        finally:
            self._flow_in_progress = False

        self.clear_current_user()
        print("[SESSION] Logged out")
        return {"success": True}

    # --- Auth State ---

    async def handle_auth_state_change(self, identity: Optional[Identity]):
        """React to sign-in/sign-out events that did not come from our own flows."""
        if self._flow_in_progress:
            return

        if identity is None:
            if self.context.user is not None:
                print("[SESSION] Signed out externally, clearing session")
            self.clear_current_user()
            return

        current = self.context.user
        if current is not None and current.uid == identity.uid:
            return

        ensured = await self.ensure_profile(identity)
        if not ensured["success"]:
            return
        await self.resolve_role_and_login(identity)

    def start(self):
        """Restore any cached user and subscribe to auth state changes."""
        self.get_current_user()
        if self._unsubscribe is None:
            self._unsubscribe = self.gateway.on_auth_state_change(self.handle_auth_state_change)

    def stop(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
