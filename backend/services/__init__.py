from .firebase import FirebaseRealtimeStore, RemoteStore, build_path, get_remote_store
from .cache import RedisCache, get_local_cache, get_session_cache
from .session import CurrentUser, SessionContext, SessionManager, normalize_user
from .collections import COLLECTION_POLICIES, CollectionPolicy, CollectionService
from .notifications import NotificationService
from .assignments import AssignmentService
from .applications import ApplicationService
from .announcements import AnnouncementService
from .schedules import ScheduleService
from .users import UserDirectoryService
from .sync import LocalCacheSync
from .portal import CampusPortal, build_portal, get_portal
