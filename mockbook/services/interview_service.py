"""
Interview Service

Interview records and their status transitions. Interviews are only ever
created by the booking flows in BookingService.
"""

from typing import Any, Dict, Iterable, List, Optional

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from mockbook.config import Config
from mockbook.db.mongo import get_database, doc_with_id
from mockbook.schemas.common import InterviewStatus
from mockbook.utils.datetime_utils import format_iso_ist, get_now_ist
from mockbook.utils.exceptions import (
    DuplicateError,
    InvalidStateError,
    NotFoundError,
    StorageError,
)
from mockbook.utils.logger import get_logger

logger = get_logger(__name__)

# Allowed status changes. completed and cancelled are terminal.
TRANSITIONS = {
    InterviewStatus.SCHEDULED: {
        InterviewStatus.IN_PROGRESS,
        InterviewStatus.COMPLETED,
        InterviewStatus.CANCELLED,
    },
    InterviewStatus.IN_PROGRESS: {
        InterviewStatus.COMPLETED,
        InterviewStatus.CANCELLED,
    },
    InterviewStatus.COMPLETED: set(),
    InterviewStatus.CANCELLED: set(),
}


class InterviewService:
    """Service for interview records using MongoDB"""

    def __init__(self, config: Config, db: Optional[Database] = None):
        self.config = config
        self.db = db if db is not None else get_database(config)
        self.col = self.db["interviews"]
        self.feedback = self.db["feedback"]

    def insert(self, interview_doc: Dict[str, Any]) -> Dict[str, Any]:
        now_iso = format_iso_ist(get_now_ist())
        doc = dict(interview_doc)
        doc.setdefault("status", InterviewStatus.SCHEDULED.value)
        doc.setdefault("created_at", now_iso)
        doc["updated_at"] = now_iso
        try:
            self.col.insert_one(doc)
        except PyMongoError as e:
            logger.error(f"[InterviewService] Error creating interview: {e}")
            raise StorageError(f"Failed to create interview: {e}", "InterviewService")
        logger.info(f"[InterviewService] Interview {doc['_id']} created for candidate {doc['candidate_id']}")
        return doc_with_id(doc)

    def delete(self, interview_id: str) -> None:
        """Only used to undo an insert inside a failed booking."""
        try:
            self.col.delete_one({"_id": interview_id})
        except PyMongoError as e:
            logger.error(f"[InterviewService] Error deleting interview {interview_id}: {e}")
            raise StorageError(f"Failed to delete interview: {e}", "InterviewService")

    def get_interview(self, interview_id: str) -> Optional[Dict[str, Any]]:
        try:
            return doc_with_id(self.col.find_one({"_id": interview_id}))
        except PyMongoError as e:
            logger.error(f"[InterviewService] Error fetching interview: {e}")
            raise StorageError(f"Failed to fetch interview: {e}", "InterviewService")

    def require_interview(self, interview_id: str) -> Dict[str, Any]:
        interview = self.get_interview(interview_id)
        if not interview:
            raise NotFoundError("Interview not found", "InterviewService")
        return interview

    def list_for_candidate(
        self,
        candidate_id: str,
        exclude_statuses: Iterable[InterviewStatus] = (),
    ) -> List[Dict[str, Any]]:
        q: Dict[str, Any] = {"candidate_id": candidate_id}
        excluded = [InterviewStatus(s).value for s in exclude_statuses]
        if excluded:
            q["status"] = {"$nin": excluded}
        try:
            return [doc_with_id(d) for d in self.col.find(q).sort("scheduled_date", 1)]
        except PyMongoError as e:
            logger.error(f"[InterviewService] Error fetching candidate interviews: {e}")
            raise StorageError(f"Failed to fetch interviews: {e}", "InterviewService")

    def list_for_user(self, user_id: str, as_interviewer: bool) -> List[Dict[str, Any]]:
        key = "interviewer_id" if as_interviewer else "candidate_id"
        try:
            return [doc_with_id(d) for d in self.col.find({key: user_id}).sort("scheduled_date", 1)]
        except PyMongoError as e:
            logger.error(f"[InterviewService] Error fetching interviews: {e}")
            raise StorageError(f"Failed to fetch interviews: {e}", "InterviewService")

    def list_all(self) -> List[Dict[str, Any]]:
        try:
            return [doc_with_id(d) for d in self.col.find({}).sort("scheduled_date", 1)]
        except PyMongoError as e:
            logger.error(f"[InterviewService] Error fetching interviews: {e}")
            raise StorageError(f"Failed to fetch interviews: {e}", "InterviewService")

    def transition(
        self,
        interview_id: str,
        to_status: InterviewStatus,
        allowed_from: Optional[Iterable[InterviewStatus]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Move the interview to `to_status` if its current status permits it.

        `allowed_from` narrows the permitted source states further than the
        global TRANSITIONS table (e.g. candidates may only cancel scheduled
        interviews). The write is a compare-and-set on the current status.
        """
        to_status = InterviewStatus(to_status)
        interview = self.require_interview(interview_id)
        current = InterviewStatus(interview["status"])

        sources = {s for s, targets in TRANSITIONS.items() if to_status in targets}
        if allowed_from is not None:
            sources &= {InterviewStatus(s) for s in allowed_from}
        if current not in sources:
            raise InvalidStateError(
                f"Cannot change interview from {current.value} to {to_status.value}",
                "InterviewService",
            )

        updates = {"status": to_status.value, "updated_at": format_iso_ist(get_now_ist())}
        if extra:
            updates.update(extra)
        try:
            result = self.col.update_one({"_id": interview_id, "status": current.value}, {"$set": updates})
        except PyMongoError as e:
            logger.error(f"[InterviewService] Error updating interview status: {e}")
            raise StorageError(f"Failed to update interview: {e}", "InterviewService")
        if result.modified_count != 1:
            raise InvalidStateError("Interview was modified concurrently, please retry", "InterviewService")

        logger.info(f"[InterviewService] Interview {interview_id}: {current.value} -> {to_status.value}")
        return self.require_interview(interview_id)

    def set_fields(self, interview_id: str, **fields) -> Dict[str, Any]:
        fields["updated_at"] = format_iso_ist(get_now_ist())
        try:
            result = self.col.update_one({"_id": interview_id}, {"$set": fields})
        except PyMongoError as e:
            logger.error(f"[InterviewService] Error updating interview: {e}")
            raise StorageError(f"Failed to update interview: {e}", "InterviewService")
        if result.matched_count == 0:
            raise NotFoundError("Interview not found", "InterviewService")
        return self.require_interview(interview_id)

    def add_feedback(self, feedback_doc: Dict[str, Any]) -> Dict[str, Any]:
        """Store interviewer feedback; one per interview."""
        doc = dict(feedback_doc, created_at=format_iso_ist(get_now_ist()))
        try:
            self.feedback.insert_one(doc)
        except DuplicateKeyError:
            raise DuplicateError("Feedback already exists for this interview", "InterviewService")
        except PyMongoError as e:
            logger.error(f"[InterviewService] Error saving feedback: {e}")
            raise StorageError(f"Failed to save feedback: {e}", "InterviewService")
        return doc_with_id(doc)

    def remove_feedback(self, interview_id: str) -> None:
        try:
            self.feedback.delete_one({"interview_id": interview_id})
        except PyMongoError as e:
            logger.error(f"[InterviewService] Error removing feedback: {e}")
            raise StorageError(f"Failed to remove feedback: {e}", "InterviewService")

    def get_feedback(self, interview_id: str) -> Optional[Dict[str, Any]]:
        try:
            return doc_with_id(self.feedback.find_one({"interview_id": interview_id}))
        except PyMongoError as e:
            logger.error(f"[InterviewService] Error fetching feedback: {e}")
            raise StorageError(f"Failed to fetch feedback: {e}", "InterviewService")
