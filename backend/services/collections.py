"""
Collection Service

One generic, role-gated CRUD implementation for every portal collection.
Per-collection rules live in the COLLECTION_POLICIES registry instead of being
scattered across the domain services.

Mutations return {"success": True, "id": ..., "record": ...} or
{"success": False, "error": ..., "code": ...}. Reads return data and raise
typed PortalErrors.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from core.errors import (
    InvalidInputError,
    NotAuthorizedError,
    NotFoundError,
    RemoteStoreError,
    PortalError,
    failure,
)
from services.firebase import RemoteStore, build_path
from services.session import CurrentUser, SessionContext

# Policy roles besides "staff" and "student"
ROLE_SELF = "self"                  # actor uid must equal the record id
ROLE_AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class CollectionPolicy:
    """Access rules and write-time shaping for one collection."""
    name: str
    read_role: Optional[str] = None
    create_role: Optional[str] = ROLE_AUTHENTICATED
    update_role: Optional[str] = ROLE_AUTHENTICATED
    delete_role: Optional[str] = ROLE_AUTHENTICATED
    required_fields: Tuple[str, ...] = ()
    # Applied with setdefault
    defaults: Dict[str, Any] = field(default_factory=dict)
    # Always overwrite caller-supplied values
    stamps: Dict[str, Any] = field(default_factory=dict)
    # Records live under {parent}/{parent_id}/{name}
    parent: Optional[str] = None
    # Record id is the creator's uid (one record per user)
    key_by_uid: bool = False
    label: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.label or self.name


COLLECTION_POLICIES: Dict[str, CollectionPolicy] = {
    "assignments": CollectionPolicy(
        name="assignments",
        create_role="staff",
        update_role="staff",
        delete_role="staff",
        required_fields=("title",),
        stamps={"status": "active"},
    ),
    "submissions": CollectionPolicy(
        name="submissions",
        parent="assignments",
        create_role="student",
        update_role="staff",
        delete_role="staff",
        stamps={"status": "Submitted"},
        key_by_uid=True,
    ),
    "applications": CollectionPolicy(
        name="applications",
        create_role="student",
        update_role="staff",
        delete_role="staff",
        required_fields=("type", "title", "description"),
        stamps={"status": "pending", "reviewedBy": None, "reviewedAt": None},
    ),
    "announcements": CollectionPolicy(
        name="announcements",
        create_role="staff",
        update_role="staff",
        delete_role="staff",
        required_fields=("title", "content"),
        defaults={"targetAudience": "all", "type": "general", "priority": "medium"},
        stamps={"isPublished": True, "readBy": []},
    ),
    "schedules": CollectionPolicy(
        name="schedules",
        create_role="staff",
        update_role="staff",
        delete_role="staff",
        required_fields=("title", "date"),
        label="schedule events",
    ),
    "notifications": CollectionPolicy(
        name="notifications",
        read_role=ROLE_AUTHENTICATED,
        update_role="staff",
        delete_role="staff",
        required_fields=("title", "message"),
        defaults={"type": "info", "targetRole": None, "targetUser": None},
        stamps={"read": False},
    ),
    "staff": CollectionPolicy(
        name="staff",
        create_role=ROLE_SELF,
        update_role=ROLE_SELF,
        delete_role="staff",
        label="staff profiles",
    ),
    "students": CollectionPolicy(
        name="students",
        create_role=ROLE_SELF,
        update_role=ROLE_SELF,
        delete_role="staff",
        label="student profiles",
    ),
    "users": CollectionPolicy(
        name="users",
        create_role=ROLE_SELF,
        update_role=ROLE_SELF,
        delete_role="staff",
        label="user profiles",
    ),
}


def with_id(record_id: str, value: Any) -> Dict[str, Any]:
    """Merge a record's key into its value."""
    data = dict(value) if isinstance(value, dict) else {"value": value}
    data["id"] = record_id
    return data


class CollectionService:
    """Generic role-gated CRUD over the registered collections."""

    def __init__(
        self,
        store: RemoteStore,
        session: SessionContext,
        policies: Optional[Dict[str, CollectionPolicy]] = None
    ):
        self.store = store
        self.session = session
        self.policies = policies if policies is not None else COLLECTION_POLICIES

    # --- Policy & Paths ---

    def policy(self, collection: str) -> CollectionPolicy:
        """
        Raises:
            InvalidInputError: If the collection is not registered
        """
        try:
            return self.policies[collection]
        except KeyError:
            raise InvalidInputError(f"Unknown collection: {collection}")

    def collection_path(self, collection: str, parent_id: Optional[str] = None) -> str:
        policy = self.policy(collection)
        if policy.parent:
            if not parent_id:
                raise InvalidInputError(
                    f"{policy.display_name.capitalize()} require a parent {policy.parent} id"
                )
            return build_path(policy.parent, parent_id, policy.name)
        return build_path(policy.name)

    def authorize(
        self, policy: CollectionPolicy, action: str, record_id: Optional[str] = None
    ) -> Optional[CurrentUser]:
        """
        Check the current user against the policy for an action.

        Raises:
            NotFoundError: If the action needs a user and nobody is logged in
            NotAuthorizedError: If the user's role does not match
        """
        required = getattr(policy, f"{action}_role")
        if required is None:
            return self.session.user

        user = self.session.require_user()
        if required == ROLE_AUTHENTICATED:
            return user
        if required == ROLE_SELF:
            if record_id is None or str(record_id) != user.uid:
                raise NotAuthorizedError(f"Users can only {action} their own profile")
            return user
        if user.role != required:
            raise NotAuthorizedError(
                f"Only {required} users can {action} {policy.display_name}"
            )
        return user

    def _validate(self, policy: CollectionPolicy, record: Dict[str, Any]):
        for name in policy.required_fields:
            value = record.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise InvalidInputError(f"Missing required field: {name}")

    # --- CRUD ---

    async def create(
        self,
        collection: str,
        record: Dict[str, Any],
        explicit_id: Optional[str] = None,
        parent_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a record at an explicit id, the creator's uid, or a generated key."""
        try:
            policy = self.policy(collection)
            if not isinstance(record, dict):
                raise InvalidInputError("Record must be a mapping")

            if policy.key_by_uid:
                user = self.session.require_user()
                if explicit_id is not None and build_path(explicit_id) != user.uid:
                    raise NotAuthorizedError(
                        f"{policy.display_name.capitalize()} can only be created under your own uid"
                    )
                explicit_id = user.uid

            user = self.authorize(policy, "create", explicit_id)
            self._validate(policy, record)

            base_path = self.collection_path(collection, parent_id)
            if explicit_id is not None:
                record_id = build_path(explicit_id)
            else:
                record_id = await self.store.generate_key(base_path)

            value = {k: v for k, v in record.items() if k != "id"}
            for key, default in policy.defaults.items():
                value.setdefault(key, copy.deepcopy(default))
            value.update(copy.deepcopy(policy.stamps))
            if user is not None:
                value["createdBy"] = user.created_by()
            value["createdAt"] = datetime.utcnow().isoformat()

            await self.store.write(build_path(base_path, record_id), value)
            print(f"[COLLECTIONS] Created {base_path}/{record_id}")
            return {"success": True, "id": record_id, "record": with_id(record_id, value)}

        except Exception as e:
            print(f"[ERROR] Could not create {collection} record: {e}")
            return failure(e)

    async def read(
        self,
        collection: str,
        record_id: Optional[str] = None,
        parent_id: Optional[str] = None
    ) -> Union[Optional[Dict[str, Any]], List[Dict[str, Any]]]:
        """
        Read one record (None if absent) or every record in a collection,
        each with its id merged in.

        Raises:
            PortalError: On authorization, validation or store failures
        """
        policy = self.policy(collection)
        self.authorize(policy, "read")
        base_path = self.collection_path(collection, parent_id)

        try:
            if record_id is not None:
                record_id = build_path(record_id)
                value = await self.store.read(build_path(base_path, record_id))
                return with_id(record_id, value) if value is not None else None

            value = await self.store.read(base_path)
        except PortalError:
            raise
        except Exception as e:
            raise RemoteStoreError(f"Could not read {base_path}: {e}") from e

        if not value:
            return []
        if isinstance(value, list):
            # Realtime Database returns integer-keyed children as a list
            return [with_id(str(i), v) for i, v in enumerate(value) if v is not None]
        return [with_id(key, v) for key, v in value.items()]

    async def update(
        self,
        collection: str,
        record_id: str,
        patch: Dict[str, Any],
        parent_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Merge fields into a record. There is no existence check."""
        try:
            policy = self.policy(collection)
            if not isinstance(patch, dict) or not patch:
                raise InvalidInputError("Nothing to update")
            self.authorize(policy, "update", record_id)

            changes = await self._apply_patch(collection, record_id, patch, parent_id)
            return {"success": True, "id": record_id, "changes": changes}

        except Exception as e:
            print(f"[ERROR] Could not update {collection}/{record_id}: {e}")
            return failure(e)

    async def update_as_participant(
        self,
        collection: str,
        record_id: str,
        change: Callable[[CurrentUser, Dict[str, Any]], Optional[Dict[str, Any]]],
        parent_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Apply a change computed from the stored record on behalf of any
        signed-in user, whatever update_role says.

        `change(user, record)` returns the patch, or None when there is nothing
        to do, and raises NotAuthorizedError to refuse the user. Domain services
        use this for narrow per-user updates such as marking something read.
        """
        try:
            user = self.session.require_user()
            record = await self.read(collection, record_id, parent_id)
            if record is None:
                raise NotFoundError(f"No {self.policy(collection).display_name} record {record_id}")

            patch = change(user, record)
            if not patch:
                return {"success": True, "id": record_id, "changed": False}

            changes = await self._apply_patch(collection, record_id, patch, parent_id)
            return {"success": True, "id": record_id, "changes": changes, "changed": True}

        except Exception as e:
            print(f"[ERROR] Could not update {collection}/{record_id}: {e}")
            return failure(e)

    async def _apply_patch(
        self,
        collection: str,
        record_id: str,
        patch: Dict[str, Any],
        parent_id: Optional[str] = None
    ) -> Dict[str, Any]:
        path = build_path(self.collection_path(collection, parent_id), record_id)
        changes = {k: v for k, v in patch.items() if k != "id"}
        changes["updatedAt"] = datetime.utcnow().isoformat()

        await self.store.update(path, changes)
        print(f"[COLLECTIONS] Updated {path}")
        return changes

    async def delete(
        self,
        collection: str,
        record_id: str,
        parent_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Remove a record. Nested children are not cascaded by this call."""
        try:
            policy = self.policy(collection)
            self.authorize(policy, "delete", record_id)

            path = build_path(self.collection_path(collection, parent_id), record_id)
            await self.store.delete(path)
            print(f"[COLLECTIONS] Deleted {path}")
            return {"success": True, "id": record_id}

        except Exception as e:
            print(f"[ERROR] Could not delete {collection}/{record_id}: {e}")
            return failure(e)

    async def delete_all(self, collection: str, parent_id: Optional[str] = None) -> Dict[str, Any]:
        """Remove every record under a collection path."""
        try:
            policy = self.policy(collection)
            self.authorize(policy, "delete")

            path = self.collection_path(collection, parent_id)
            await self.store.delete(path)
            print(f"[COLLECTIONS] Deleted all records under {path}")
            return {"success": True}

        except Exception as e:
            print(f"[ERROR] Could not delete {collection} records: {e}")
            return failure(e)
