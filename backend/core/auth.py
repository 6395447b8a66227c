"""
Firebase Authentication Gateway for the Campus Portal Backend

Email/password registration and sign-in go through the Firebase Identity
Toolkit REST API; sign-out revokes the user's refresh tokens through the
Admin SDK. Listeners registered with on_auth_state_change() are called with
the new Identity (or None) after every state change.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import aiohttp
from firebase_admin import auth

from .config import AUTH_REQUEST_TIMEOUT, FIREBASE_CONFIG, IDENTITY_TOOLKIT_URL
from .errors import AuthenticationError, InvalidInputError


class UserRole(str, Enum):
    """User roles in the system."""
    STAFF = "staff"
    STUDENT = "student"


# Each role's profiles live in their own collection
PROFILE_COLLECTIONS = {
    UserRole.STAFF.value: "staff",
    UserRole.STUDENT.value: "students",
}

# Identity Toolkit error codes -> user-facing messages
AUTH_ERROR_MESSAGES = {
    "EMAIL_EXISTS": "An account with this email already exists.",
    "EMAIL_NOT_FOUND": "Invalid email or password.",
    "INVALID_PASSWORD": "Invalid email or password.",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password.",
    "INVALID_EMAIL": "Please enter a valid email address.",
    "MISSING_PASSWORD": "Please enter a password.",
    "WEAK_PASSWORD": "Password should be at least 6 characters.",
    "USER_DISABLED": "This account has been disabled.",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many failed attempts. Please try again later.",
    "OPERATION_NOT_ALLOWED": "Email/password sign-in is not enabled for this project.",
}


@dataclass(frozen=True)
class Identity:
    """An authenticated account as issued by the identity provider."""
    uid: str
    email: Optional[str]
    id_token: Optional[str] = field(default=None, repr=False, compare=False)
    refresh_token: Optional[str] = field(default=None, repr=False, compare=False)


AuthStateCallback = Callable[[Optional[Identity]], Union[None, Awaitable[None]]]


def validate_email(email: Optional[str]) -> bool:
    """Check that an email has a local part and a domain."""
    if not email:
        return False
    local, sep, domain = email.strip().partition("@")
    return bool(sep and local and "." in domain and not domain.startswith("."))


def email_local_part(email: Optional[str]) -> Optional[str]:
    """Return the part of an email before "@", or None."""
    if not email:
        return None
    local = email.split("@")[0].strip()
    return local or None


def auth_error_message(code: Optional[str]) -> str:
    """Map an Identity Toolkit error code (e.g. "WEAK_PASSWORD : ...") to a message."""
    if not code:
        return "Authentication failed."
    key = code.split(":")[0].strip()
    return AUTH_ERROR_MESSAGES.get(key, f"Authentication failed: {code}")


class AuthGateway:
    """Base gateway: listener bookkeeping plus the operations subclasses provide."""

    def __init__(self):
        self._listeners: List[AuthStateCallback] = []
        self._current: Optional[Identity] = None

    @property
    def current_identity(self) -> Optional[Identity]:
        return self._current

    def on_auth_state_change(self, callback: AuthStateCallback) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def _set_identity(self, identity: Optional[Identity]):
        self._current = identity
        for callback in list(self._listeners):
            try:
                result = callback(identity)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                print(f"[AUTH] Auth state listener failed: {e}")

    async def register(self, email: str, password: str) -> Identity:
        raise NotImplementedError

    async def sign_in(self, email: str, password: str) -> Identity:
        raise NotImplementedError

    async def sign_out(self) -> None:
        raise NotImplementedError


class FirebaseAuthGateway(AuthGateway):
    """AuthGateway backed by Firebase Auth."""

    def __init__(self, api_key: Optional[str] = None, base_url: str = IDENTITY_TOOLKIT_URL):
        super().__init__()
        self.api_key = api_key or FIREBASE_CONFIG["apiKey"]
        self.base_url = base_url.rstrip("/")

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST to an Identity Toolkit endpoint.

        Raises:
            AuthenticationError: If the request fails or the API reports an error
        """
        if not self.api_key:
            raise AuthenticationError("FIREBASE_API_KEY is not configured")

        url = f"{self.base_url}/{endpoint}"
        timeout = aiohttp.ClientTimeout(total=AUTH_REQUEST_TIMEOUT)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, params={"key": self.api_key}, json=payload) as response:
                    data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AuthenticationError(f"Could not reach the authentication service: {e}") from e

        if "error" in data:
            raise AuthenticationError(auth_error_message(data["error"].get("message")))
        return data

    def _identity_from(self, data: Dict[str, Any]) -> Identity:
        return Identity(
            uid=data["localId"],
            email=data.get("email"),
            id_token=data.get("idToken"),
            refresh_token=data.get("refreshToken")
        )

    async def register(self, email: str, password: str) -> Identity:
        """Create an email/password account and sign it in."""
        if not validate_email(email):
            raise InvalidInputError(AUTH_ERROR_MESSAGES["INVALID_EMAIL"])

        data = await self._post("accounts:signUp", {
            "email": email.strip(),
            "password": password,
            "returnSecureToken": True
        })
        identity = self._identity_from(data)
        print(f"[AUTH] Registered {identity.email} ({identity.uid})")
        await self._set_identity(identity)
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        """Sign in with email and password."""
        if not validate_email(email):
            raise InvalidInputError(AUTH_ERROR_MESSAGES["INVALID_EMAIL"])

        data = await self._post("accounts:signInWithPassword", {
            "email": email.strip(),
            "password": password,
            "returnSecureToken": True
        })
        identity = self._identity_from(data)
        print(f"[AUTH] Signed in {identity.email}")
        await self._set_identity(identity)
        return identity

    async def sign_out(self) -> None:
        """
        Sign out the current identity.

        Local state is always cleared; a failed token revocation is re-raised
        after listeners have been notified.
        """
        identity = self._current
        error = None

        if identity is not None:
            loop = asyncio.get_event_loop()
            try:
                await loop.run_in_executor(None, auth.revoke_refresh_tokens, identity.uid)
            except Exception as e:
                error = e

        await self._set_identity(None)
        print("[AUTH] Signed out")

        if error is not None:
            raise AuthenticationError(f"Sign-out could not revoke tokens: {error}") from error
