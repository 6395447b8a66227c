"""
Firebase Configuration for the Campus Portal Backend

Uses the Firebase Admin SDK against the Realtime Database. Settings come from
environment variables (optionally loaded from backend/.env).
"""

import asyncio
import os
from pathlib import Path
from typing import Optional

import firebase_admin
from firebase_admin import credentials
from dotenv import load_dotenv

from .errors import BackendUnavailableError

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)

# Firebase configuration from environment variables
FIREBASE_CONFIG = {
    "apiKey": os.getenv("FIREBASE_API_KEY"),
    "authDomain": os.getenv("FIREBASE_AUTH_DOMAIN"),
    "databaseURL": os.getenv("FIREBASE_DATABASE_URL"),
    "projectId": os.getenv("FIREBASE_PROJECT_ID"),
    "storageBucket": os.getenv("FIREBASE_STORAGE_BUCKET"),
    "messagingSenderId": os.getenv("FIREBASE_MESSAGING_SENDER_ID"),
    "appId": os.getenv("FIREBASE_APP_ID")
}

# Service account key path
SERVICE_ACCOUNT_PATH = os.getenv("FIREBASE_SERVICE_ACCOUNT_PATH", "serviceAccountKey.json")

# Identity Toolkit REST endpoint (email/password sign-in is not part of the Admin SDK)
IDENTITY_TOOLKIT_URL = os.getenv(
    "IDENTITY_TOOLKIT_URL", "https://identitytoolkit.googleapis.com/v1"
)
AUTH_REQUEST_TIMEOUT = int(os.getenv("AUTH_REQUEST_TIMEOUT", "10"))

# Local cache (Redis) settings
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)
CACHE_PREFIX = os.getenv("CACHE_PREFIX", "campus_portal:")

# Session-scoped cache entries expire; durable ones do not
SESSION_TTL = int(os.getenv("SESSION_TTL", "43200"))  # 12 hours

# Background cache refresh
CACHE_REFRESH_INTERVAL_MINUTES = int(os.getenv("CACHE_REFRESH_INTERVAL_MINUTES", "10"))

# Global Firebase app
_app: Optional[firebase_admin.App] = None

# Shared readiness future, awaited by every dependent
_init_future: Optional[asyncio.Future] = None


def initialize_firebase() -> firebase_admin.App:
    """
    Initialize Firebase Admin SDK.

    Uses a service account key if one is found, otherwise default credentials
    (for cloud environments). The Realtime Database URL is required.
    """
    global _app

    if _app is not None:
        return _app

    options = {"databaseURL": FIREBASE_CONFIG["databaseURL"]}
    if not options["databaseURL"]:
        raise BackendUnavailableError("FIREBASE_DATABASE_URL is not configured")

    # Build possible paths for service account key
    backend_dir = Path(__file__).parent.parent
    possible_paths = [
        backend_dir / SERVICE_ACCOUNT_PATH,             # backend/key.json
        Path("backend") / SERVICE_ACCOUNT_PATH,         # From project root
        Path(SERVICE_ACCOUNT_PATH)                      # Direct path
    ]

    for path in possible_paths:
        if path.exists():
            cred = credentials.Certificate(str(path))
            _app = firebase_admin.initialize_app(cred, options)
            break
    else:
        options["projectId"] = FIREBASE_CONFIG["projectId"]
        _app = firebase_admin.initialize_app(options=options)

    print(f"[CONFIG] Firebase initialized for {options['databaseURL']}")
    return _app


async def wait_for_firebase() -> firebase_admin.App:
    """
    Await Firebase initialization.

    The first caller schedules initialize_firebase() on the default executor;
    every later caller awaits the same future.

    Raises:
        BackendUnavailableError: If initialization failed
    """
    global _init_future

    if _init_future is None:
        loop = asyncio.get_running_loop()
        _init_future = loop.run_in_executor(None, initialize_firebase)

    try:
        return await asyncio.shield(_init_future)
    except BackendUnavailableError:
        raise
    except Exception as e:
        raise BackendUnavailableError(f"Firebase initialization failed: {e}") from e


def reset_firebase_state():
    """Forget the cached app and readiness future (used by tests)."""
    global _app, _init_future
    _app = None
    _init_future = None
