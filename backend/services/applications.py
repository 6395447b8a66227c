"""
Application Service

Students submit applications (internships, scholarships, ...); staff review
them. Both steps leave a notification for the other side.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from core.errors import InvalidInputError, NotFoundError, PortalError, failure
from services.collections import CollectionService
from services.notifications import NotificationService

REVIEW_STATUSES = ("pending", "under_review", "approved", "rejected")


class ApplicationService:
    """Service for student applications and their review."""

    COLLECTION = "applications"

    def __init__(self, collections: CollectionService, notifications: NotificationService):
        self.collections = collections
        self.notifications = notifications

    async def create_application(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Submit an application (student only). Status starts as pending."""
        user = self.collections.session.user
        record = dict(data)
        if user is not None:
            record["studentId"] = user.uid
            record["submittedBy"] = user.uid
        record["submittedAt"] = datetime.utcnow().isoformat()

        result = await self.collections.create(self.COLLECTION, record)
        if result["success"]:
            application_type = record.get("type", "")
            await self.notifications.notify(
                "New Application Submitted",
                f"Student {user.name} submitted a new {application_type} application: "
                f"\"{record.get('title')}\"",
                target_role="staff"
            )
        return result

    async def get_applications(self) -> List[Dict[str, Any]]:
        """Get all applications."""
        try:
            applications = await self.collections.read(self.COLLECTION)
            print(f"[APPLICATIONS] Retrieved {len(applications)} applications")
            return applications
        except PortalError as e:
            print(f"[ERROR] Could not load applications: {e}")
            return []

    async def get_application(self, application_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.collections.read(self.COLLECTION, application_id)
        except PortalError as e:
            print(f"[ERROR] Could not load application {application_id}: {e}")
            return None

    async def get_student_applications(self, student_id: str) -> List[Dict[str, Any]]:
        """Get the applications a student submitted."""
        return [
            a for a in await self.get_applications()
            if _submitter(a) == student_id
        ]

    async def update_application_status(
        self, application_id: str, status: str, comment: str = ""
    ) -> Dict[str, Any]:
        """
        Review an application (staff only) and notify the submitting student.

        Returns:
            The update result, plus "notificationId" when a notification was sent
        """
        try:
            reviewer = self.collections.session.require_role("staff", "update application status")
            if status not in REVIEW_STATUSES:
                raise InvalidInputError(
                    f"Invalid status: {status}. Must be one of {', '.join(REVIEW_STATUSES)}"
                )
            application = await self.collections.read(self.COLLECTION, application_id)
            if application is None:
                raise NotFoundError("Application not found.")
        except Exception as e:
            print(f"[ERROR] Could not review application {application_id}: {e}")
            return failure(e)

        changes = {
            "status": status,
            "reviewedBy": reviewer.uid,
            "reviewedAt": datetime.utcnow().isoformat()
        }
        if comment:
            changes["reviewComment"] = comment

        result = await self.collections.update(self.COLLECTION, application_id, changes)
        if not result["success"]:
            return result
        print(f"[APPLICATIONS] Application {application_id} marked {status}")

        student_id = _submitter(application)
        if student_id and status in ("approved", "rejected"):
            notice = await self.notifications.notify(
                f"Application {status.capitalize()}",
                f"Your {application.get('type', '')} application \"{application.get('title')}\" "
                f"has been {status}.",
                notification_type="success" if status == "approved" else "warning",
                target_role="student",
                target_user=student_id
            )
            if notice["success"]:
                result["notificationId"] = notice["id"]
        return result

    async def approve_application(self, application_id: str, comment: str = "") -> Dict[str, Any]:
        return await self.update_application_status(application_id, "approved", comment)

    async def reject_application(self, application_id: str, comment: str = "") -> Dict[str, Any]:
        return await self.update_application_status(application_id, "rejected", comment)


def _submitter(application: Dict[str, Any]) -> Optional[str]:
    """The uid of the student who submitted an application."""
    if application.get("studentId"):
        return application["studentId"]
    if application.get("submittedBy"):
        return application["submittedBy"]
    created_by = application.get("createdBy")
    if isinstance(created_by, dict):
        return created_by.get("uid")
    return None
