"""
Assignment Service

Assignments are created by staff. Each student keeps at most one current
submission per assignment, stored under assignments/{id}/submissions/{uid},
so a resubmission replaces the previous one.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from core.errors import InvalidInputError, NotFoundError, PortalError, failure
from services.collections import CollectionService


class AssignmentService:
    """Service for assignments, submissions and grading."""

    ASSIGNMENTS = "assignments"
    SUBMISSIONS = "submissions"

    def __init__(self, collections: CollectionService):
        self.collections = collections

    # --- Assignments ---

    async def create_assignment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create an assignment (staff only)."""
        return await self.collections.create(self.ASSIGNMENTS, data)

    async def get_assignments(self) -> List[Dict[str, Any]]:
        """Get all assignments."""
        try:
            assignments = await self.collections.read(self.ASSIGNMENTS)
            print(f"[ASSIGNMENTS] Retrieved {len(assignments)} assignments")
            return assignments
        except PortalError as e:
            print(f"[ERROR] Could not load assignments: {e}")
            return []

    async def get_assignment(self, assignment_id: str) -> Optional[Dict[str, Any]]:
        """Get a single assignment, or None."""
        try:
            return await self.collections.read(self.ASSIGNMENTS, assignment_id)
        except PortalError as e:
            print(f"[ERROR] Could not load assignment {assignment_id}: {e}")
            return None

    async def get_assignments_by_staff(self, staff_id: str) -> List[Dict[str, Any]]:
        """Get the assignments a staff member created."""
        assignments = await self.get_assignments()
        return [a for a in assignments if _creator_uid(a) == staff_id]

    async def update_assignment(self, assignment_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Update assignment fields (staff only)."""
        return await self.collections.update(self.ASSIGNMENTS, assignment_id, data)

    async def delete_assignment(self, assignment_id: str) -> Dict[str, Any]:
        """
        Delete an assignment together with its submissions (staff only).

        Submissions are removed first so a failure never leaves orphaned
        submissions behind a deleted assignment.
        """
        removed = await self.collections.delete_all(self.SUBMISSIONS, parent_id=assignment_id)
        if not removed["success"]:
            return removed
        return await self.collections.delete(self.ASSIGNMENTS, assignment_id)

    # --- Submissions ---

    async def submit_assignment(self, assignment_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Submit (or resubmit) the current student's solution.

        Raises nothing; failures come back as a result dict.
        """
        try:
            user = self.collections.session.require_role("student", "submit assignments")
            assignment = await self.collections.read(self.ASSIGNMENTS, assignment_id)
            if assignment is None:
                raise NotFoundError("Assignment not found")
        except Exception as e:
            print(f"[ERROR] Could not submit assignment {assignment_id}: {e}")
            return failure(e)

        submission = {
            "studentId": user.uid,
            "studentName": user.name,
            "studentRole": user.role,
            "assignmentId": assignment_id,
            "answerText": data.get("answerText") or "",
            "fileUrl": data.get("fileUrl") or "",
            "submittedAt": datetime.utcnow().isoformat()
        }
        return await self.collections.create(
            self.SUBMISSIONS, submission, parent_id=assignment_id
        )

    async def get_submissions(self, assignment_id: str) -> List[Dict[str, Any]]:
        """Get all submissions for one assignment."""
        try:
            return await self.collections.read(self.SUBMISSIONS, parent_id=assignment_id)
        except PortalError as e:
            print(f"[ERROR] Could not load submissions for {assignment_id}: {e}")
            return []

    async def get_submission(self, assignment_id: str, student_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.collections.read(self.SUBMISSIONS, student_id, parent_id=assignment_id)
        except PortalError as e:
            print(f"[ERROR] Could not load submission {assignment_id}/{student_id}: {e}")
            return None

    async def get_all_submissions(self) -> List[Dict[str, Any]]:
        """
        Flatten the submissions of every assignment.

        Raises:
            PortalError: If the assignment list cannot be read
        """
        submissions = []
        for assignment in await self.collections.read(self.ASSIGNMENTS):
            submissions.extend(
                await self.collections.read(self.SUBMISSIONS, parent_id=assignment["id"])
            )
        return submissions

    async def get_student_submissions(self, student_id: str) -> List[Dict[str, Any]]:
        """Get a student's submissions across all assignments, with assignment details."""
        results = []
        for assignment in await self.get_assignments():
            submission = await self.get_submission(assignment["id"], student_id)
            if submission:
                submission["assignmentTitle"] = assignment.get("title")
                submission["assignmentSubject"] = assignment.get("subject")
                results.append(submission)

        print(f"[ASSIGNMENTS] Retrieved {len(results)} submissions for student {student_id}")
        return results

    async def grade_submission(
        self,
        assignment_id: str,
        student_id: str,
        score: float,
        feedback: str = ""
    ) -> Dict[str, Any]:
        """Record a grade and feedback on a submission (staff only)."""
        try:
            grader = self.collections.session.require_role("staff", "grade submissions")
            try:
                score = float(score)
            except (TypeError, ValueError):
                raise InvalidInputError("Please enter a valid score.")
            if score != score or score < 0:
                raise InvalidInputError("Please enter a valid score.")

            assignment = await self.collections.read(self.ASSIGNMENTS, assignment_id)
            if assignment is None:
                raise NotFoundError("Assignment not found")
            max_score = assignment.get("maxScore")
            if max_score is not None and score > float(max_score):
                raise InvalidInputError(f"Score cannot exceed {max_score}.")

            submission = await self.collections.read(
                self.SUBMISSIONS, student_id, parent_id=assignment_id
            )
            if submission is None:
                raise NotFoundError("Submission not found.")
        except Exception as e:
            print(f"[ERROR] Could not grade {assignment_id}/{student_id}: {e}")
            return failure(e)

        return await self.collections.update(self.SUBMISSIONS, student_id, {
            "grade": score,
            "feedback": feedback or "",
            "gradedAt": datetime.utcnow().isoformat(),
            "gradedBy": grader.uid,
            "status": "Graded"
        }, parent_id=assignment_id)


def _creator_uid(record: Dict[str, Any]) -> Optional[str]:
    created_by = record.get("createdBy")
    if isinstance(created_by, dict):
        return created_by.get("uid")
    return created_by
