from .config import initialize_firebase, wait_for_firebase, FIREBASE_CONFIG
from .errors import (
    PortalError,
    NotAuthorizedError,
    AccountNotProvisionedError,
    WrongPortalError,
    InvalidInputError,
    InvalidUserError,
    NotFoundError,
    BackendUnavailableError,
    RemoteStoreError,
    AuthenticationError,
    failure
)
from .auth import (
    AuthGateway,
    FirebaseAuthGateway,
    Identity,
    UserRole,
    PROFILE_COLLECTIONS
)
from .seed import SEED_DATA
