"""
Tests for services/collections.py - role-gated generic CRUD
"""

import pytest

from core.errors import InvalidInputError, NotAuthorizedError, NotFoundError, RemoteStoreError
from services.collections import COLLECTION_POLICIES, CollectionPolicy, CollectionService, with_id


class TestPolicies:
    """Tests for the policy registry and path building"""

    def test_every_collection_registered(self):
        for name in ("assignments", "submissions", "applications", "announcements",
                     "schedules", "notifications", "staff", "students", "users"):
            assert name in COLLECTION_POLICIES

    def test_unknown_collection(self, portal):
        with pytest.raises(InvalidInputError):
            portal.collections.policy("grades")

    def test_nested_path_needs_parent(self, portal):
        assert portal.collections.collection_path("submissions", "a1") == "assignments/a1/submissions"
        with pytest.raises(InvalidInputError):
            portal.collections.collection_path("submissions")

    def test_with_id_merges_key(self):
        assert with_id("k1", {"title": "x"}) == {"title": "x", "id": "k1"}


class TestCreate:
    """Tests for create()"""

    @pytest.mark.asyncio
    async def test_staff_creates_assignment(self, portal, store, as_staff):
        result = await portal.collections.create("assignments", {"title": "Essay", "status": "draft"})

        assert result["success"] is True
        saved = store.data["assignments"][result["id"]]
        assert saved["status"] == "active"
        assert saved["createdBy"] == {"uid": "staff1", "name": "Sarah Wilson", "role": "staff"}
        assert "createdAt" in saved
        assert result["record"]["id"] == result["id"]

    @pytest.mark.asyncio
    async def test_student_cannot_create_assignment(self, portal, store, as_student):
        result = await portal.collections.create("assignments", {"title": "Essay"})

        assert result["success"] is False
        assert result["code"] == "NOT_AUTHORIZED"
        assert result["error"] == "Only staff users can create assignments"
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_no_user_is_not_found(self, portal, store):
        result = await portal.collections.create("assignments", {"title": "Essay"})

        assert result["code"] == "NOT_FOUND"
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_missing_required_field(self, portal, store, as_student):
        result = await portal.collections.create("applications", {"type": "internship", "title": "Summer"})

        assert result["code"] == "INVALID_INPUT"
        assert result["error"] == "Missing required field: description"
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_explicit_id(self, portal, store, as_staff):
        result = await portal.collections.create("schedules", {"title": "Exam", "date": "2024-03-01"}, explicit_id="exam1")

        assert result["id"] == "exam1"
        assert store.data["schedules"]["exam1"]["title"] == "Exam"

    @pytest.mark.asyncio
    async def test_blank_explicit_id_rejected(self, portal, store, as_staff):
        result = await portal.collections.create("schedules", {"title": "Exam", "date": "2024-03-01"}, explicit_id="  ")

        assert result["code"] == "INVALID_INPUT"
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_defaults_do_not_override_caller(self, portal, store, as_staff):
        result = await portal.collections.create(
            "announcements", {"title": "Hi", "content": "Welcome", "priority": "high"}
        )

        saved = store.data["announcements"][result["id"]]
        assert saved["priority"] == "high"
        assert saved["type"] == "general"
        assert saved["readBy"] == []
        assert saved["isPublished"] is True

    @pytest.mark.asyncio
    async def test_uid_keyed_collection(self, portal, store, as_student):
        store.data = {"assignments": {"a1": {"title": "Essay"}}}

        result = await portal.collections.create("submissions", {"answerText": "v1"}, parent_id="a1")

        assert result["id"] == "student1"
        assert store.data["assignments"]["a1"]["submissions"]["student1"]["status"] == "Submitted"

    @pytest.mark.asyncio
    async def test_uid_keyed_rejects_another_users_id(self, portal, store, as_student):
        store.data = {"assignments": {"a1": {"title": "Essay"}}}

        result = await portal.collections.create(
            "submissions", {"answerText": "forged"}, explicit_id="student2", parent_id="a1"
        )

        assert result["success"] is False
        assert result["code"] == "NOT_AUTHORIZED"
        assert "submissions" not in store.data["assignments"]["a1"]

    @pytest.mark.asyncio
    async def test_uid_keyed_accepts_own_id(self, portal, store, as_student):
        store.data = {"assignments": {"a1": {"title": "Essay"}}}

        result = await portal.collections.create(
            "submissions", {"answerText": "mine"}, explicit_id="student1", parent_id="a1"
        )

        assert result["id"] == "student1"

    @pytest.mark.asyncio
    async def test_self_role_on_profiles(self, portal, store, as_student):
        own = await portal.collections.create("students", {"name": "John"}, explicit_id="student1")
        other = await portal.collections.create("students", {"name": "Eve"}, explicit_id="student2")

        assert own["success"] is True
        assert other["code"] == "NOT_AUTHORIZED"
        assert "student2" not in store.data["students"]

    @pytest.mark.asyncio
    async def test_store_failure_becomes_result(self, portal, store, as_staff):
        store.failing_paths.add("assignments")

        result = await portal.collections.create("assignments", {"title": "Essay"})

        assert result["code"] == "REMOTE_STORE_FAILURE"


class TestRead:
    """Tests for read()"""

    @pytest.mark.asyncio
    async def test_read_single_and_missing(self, portal, store):
        store.data = {"assignments": {"a1": {"title": "Essay"}}}

        assert await portal.collections.read("assignments", "a1") == {"title": "Essay", "id": "a1"}
        assert await portal.collections.read("assignments", "zzz") is None

    @pytest.mark.asyncio
    async def test_read_all(self, portal, store):
        store.data = {"assignments": {"a1": {"title": "One"}, "a2": {"title": "Two"}}}

        records = await portal.collections.read("assignments")

        assert sorted(r["id"] for r in records) == ["a1", "a2"]

    @pytest.mark.asyncio
    async def test_read_empty_collection(self, portal):
        assert await portal.collections.read("assignments") == []

    @pytest.mark.asyncio
    async def test_read_list_shaped_value(self, portal, store):
        store.data = {"assignments": [None, {"title": "One"}, {"title": "Two"}]}

        records = await portal.collections.read("assignments")

        assert [r["id"] for r in records] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_notifications_need_a_user(self, portal):
        with pytest.raises(NotFoundError):
            await portal.collections.read("notifications")

    @pytest.mark.asyncio
    async def test_store_failure_raises_typed_error(self, portal, store):
        store.failing_paths.add("announcements")

        with pytest.raises(RemoteStoreError):
            await portal.collections.read("announcements")

    @pytest.mark.asyncio
    async def test_raw_backend_errors_wrapped(self, portal, store):
        from unittest.mock import AsyncMock

        store.read = AsyncMock(side_effect=RuntimeError("socket closed"))

        with pytest.raises(RemoteStoreError):
            await portal.collections.read("assignments")


class TestUpdateAndDelete:
    """Tests for update(), delete() and delete_all()"""

    @pytest.mark.asyncio
    async def test_update_merges_and_stamps(self, portal, store, as_staff):
        store.data = {"assignments": {"a1": {"title": "Essay", "maxScore": 100}}}

        result = await portal.collections.update("assignments", "a1", {"title": "Essay v2", "id": "bogus"})

        assert result["success"] is True
        saved = store.data["assignments"]["a1"]
        assert saved["title"] == "Essay v2"
        assert saved["maxScore"] == 100
        assert "updatedAt" in saved
        assert "id" not in saved

    @pytest.mark.asyncio
    async def test_empty_patch_rejected(self, portal, as_staff):
        result = await portal.collections.update("assignments", "a1", {})
        assert result["code"] == "INVALID_INPUT"

    @pytest.mark.asyncio
    async def test_student_cannot_update_application(self, portal, store, as_student):
        store.data = {"applications": {"app1": {"status": "pending"}}}

        result = await portal.collections.update("applications", "app1", {"status": "approved"})

        assert result["code"] == "NOT_AUTHORIZED"
        assert store.data["applications"]["app1"]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_delete(self, portal, store, as_staff):
        store.data = {"schedules": {"s1": {"title": "Exam"}, "s2": {"title": "Quiz"}}}

        result = await portal.collections.delete("schedules", "s1")

        assert result == {"success": True, "id": "s1"}
        assert list(store.data["schedules"]) == ["s2"]

    @pytest.mark.asyncio
    async def test_delete_all_nested(self, portal, store, as_staff):
        store.data = {"assignments": {"a1": {"title": "Essay", "submissions": {"s1": {}, "s2": {}}}}}

        result = await portal.collections.delete_all("submissions", parent_id="a1")

        assert result["success"] is True
        assert "submissions" not in store.data["assignments"]["a1"]


class TestCustomPolicies:
    """CollectionService accepts its own policy registry"""

    @pytest.mark.asyncio
    async def test_open_collection(self, store, portal):
        policies = {"notes": CollectionPolicy(name="notes", create_role=None)}
        service = CollectionService(store, portal.context, policies)

        result = await service.create("notes", {"text": "hello"})

        assert result["success"] is True
        assert "createdBy" not in result["record"]

    def test_authorize_messages(self, portal, as_student):
        policy = COLLECTION_POLICIES["schedules"]

        with pytest.raises(NotAuthorizedError) as exc_info:
            portal.collections.authorize(policy, "delete")
        assert str(exc_info.value) == "Only staff users can delete schedule events"


class TestParticipantUpdates:
    """Per-user changes that bypass update_role"""

    @pytest.mark.asyncio
    async def test_student_cannot_patch_staff_only_fields(self, portal, store, as_student):
        store.data = {"announcements": {"ann1": {"title": "Hi", "readBy": ["staff1", "student9"]}}}

        result = await portal.collections.update("announcements", "ann1", {"readBy": []})

        assert result["code"] == "NOT_AUTHORIZED"
        assert store.data["announcements"]["ann1"]["readBy"] == ["staff1", "student9"]

    @pytest.mark.asyncio
    async def test_change_sees_user_and_record(self, portal, store, as_student):
        store.data = {"announcements": {"ann1": {"title": "Hi", "readBy": ["staff1"]}}}
        seen = []

        def change(user, record):
            seen.append((user.uid, record["id"]))
            return {"readBy": record["readBy"] + [user.uid]}

        result = await portal.collections.update_as_participant("announcements", "ann1", change)

        assert result["changed"] is True
        assert seen == [("student1", "ann1")]
        assert store.data["announcements"]["ann1"]["readBy"] == ["staff1", "student1"]
        assert "id" not in store.data["announcements"]["ann1"]

    @pytest.mark.asyncio
    async def test_no_patch_writes_nothing(self, portal, store, as_student):
        store.data = {"announcements": {"ann1": {"title": "Hi"}}}

        result = await portal.collections.update_as_participant("announcements", "ann1", lambda u, r: None)

        assert result == {"success": True, "id": "ann1", "changed": False}
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_change_may_refuse(self, portal, store, as_student):
        store.data = {"announcements": {"ann1": {"title": "Hi"}}}

        def refuse(user, record):
            raise NotAuthorizedError("Not yours")

        result = await portal.collections.update_as_participant("announcements", "ann1", refuse)

        assert result["code"] == "NOT_AUTHORIZED"
        assert store.writes == []

    @pytest.mark.asyncio
    async def test_missing_record(self, portal, as_student):
        result = await portal.collections.update_as_participant("announcements", "nope", lambda u, r: {"x": 1})
        assert result["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_needs_login(self, portal, store):
        store.data = {"announcements": {"ann1": {"title": "Hi"}}}

        result = await portal.collections.update_as_participant("announcements", "ann1", lambda u, r: {"x": 1})

        assert result["code"] == "NOT_FOUND"
        assert store.writes == []
