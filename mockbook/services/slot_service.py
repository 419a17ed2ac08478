"""
Slot Service

Handles interview slot management with MongoDB: creation under the
duration / non-overlap rules, atomic reservation and release.
"""

from io import BytesIO
from typing import List, Dict, Any, Iterable, Optional, Tuple
from datetime import datetime
import uuid

import pandas as pd
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from mockbook.config import Config
from mockbook.db.mongo import get_database, doc_with_id
from mockbook.schemas.common import INTERVIEW_DURATIONS, InterviewType, Role
from mockbook.services.price_service import PriceService
from mockbook.services.user_service import UserService
from mockbook.utils.logger import get_logger
from mockbook.utils.exceptions import (
    AlreadyBookedError,
    BookingError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from mockbook.utils.datetime_utils import (
    format_iso_ist,
    get_now_ist,
    minutes_between,
    parse_datetime_safe,
)

logger = get_logger(__name__)

IMPORT_COLUMNS = ("interviewer_email", "start_time", "end_time")


def _parse_time(value, label: str) -> datetime:
    try:
        return parse_datetime_safe(value)
    except (ValueError, TypeError):
        raise ValidationError(f"Invalid {label}: {value!r}. Use ISO format.", "SlotService")


class SlotService:
    """Service for managing interview slots using MongoDB"""

    def __init__(
        self,
        config: Config,
        price_service: PriceService,
        user_service: UserService,
        db: Optional[Database] = None,
    ):
        self.config = config
        self.db = db if db is not None else get_database(config)
        self.col = self.db["slots"]
        self.prices = price_service
        self.users = user_service

    # ------------------------------------------------------------------ validation

    def _validate_window(self, start, end, interview_type) -> Tuple[str, str, InterviewType]:
        """Check type, ordering, duration and futurity; return normalized ISO bounds."""
        try:
            interview_type = InterviewType(interview_type)
        except ValueError:
            raise ValidationError(
                f"Interview type must be one of: {', '.join(t.value for t in InterviewType)}",
                "SlotService",
            )
        start_dt = _parse_time(start, "start time")
        end_dt = _parse_time(end, "end time")

        if end_dt <= start_dt:
            raise ValidationError("End time must be after start time", "SlotService")

        expected = INTERVIEW_DURATIONS[interview_type]
        tolerance = self.config.booking.duration_tolerance_minutes
        if abs(minutes_between(start_dt, end_dt) - expected) > tolerance:
            raise ValidationError(
                f"{interview_type.value} interview slots must be {expected} minutes",
                "SlotService",
            )

        if start_dt <= get_now_ist():
            raise ValidationError("Start time must be in the future", "SlotService")

        return format_iso_ist(start_dt), format_iso_ist(end_dt), interview_type

    def _find_overlap(
        self,
        interviewer_id: str,
        start_iso: str,
        end_iso: str,
        exclude_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        # [start, end) intervals overlap iff each starts before the other ends
        q: Dict[str, Any] = {
            "interviewer_id": interviewer_id,
            "start_time": {"$lt": end_iso},
            "end_time": {"$gt": start_iso},
        }
        if exclude_id:
            q["_id"] = {"$ne": exclude_id}
        return self.col.find_one(q)

    # ------------------------------------------------------------------ creation

    def create_slot(
        self,
        interviewer_id: str,
        start,
        end,
        interview_type,
        created_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        start_iso, end_iso, interview_type = self._validate_window(start, end, interview_type)
        try:
            if self._find_overlap(interviewer_id, start_iso, end_iso):
                raise ConflictError("Slot overlaps with an existing slot", "SlotService")

            now_iso = format_iso_ist(get_now_ist())
            slot_id = str(uuid.uuid4())
            slot_doc = {
                "_id": slot_id,
                "interviewer_id": interviewer_id,
                "start_time": start_iso,
                "end_time": end_iso,
                "interview_type": interview_type.value,
                "is_booked": False,
                "interview_id": None,
                "created_by": created_by or interviewer_id,
                "created_at": now_iso,
                "updated_at": now_iso,
            }
            self.col.insert_one(slot_doc)

            # A concurrent create may have passed the same check; neither may stay.
            if self._find_overlap(interviewer_id, start_iso, end_iso, exclude_id=slot_id):
                self.col.delete_one({"_id": slot_id})
                logger.warning(f"[SlotService] Concurrent overlapping slot detected, rolled back {slot_id}")
                raise ConflictError("Slot overlaps with an existing slot", "SlotService")
        except PyMongoError as e:
            logger.error(f"[SlotService] Error creating slot: {e}")
            raise StorageError(f"Failed to create slot: {e}", "SlotService")

        logger.info(f"[SlotService] Slot created: id={slot_id} interviewer={interviewer_id} {start_iso} {interview_type.value}")
        return doc_with_id(slot_doc)

    def create_batch(
        self,
        interviewer_id: str,
        interview_type,
        windows: Iterable[Tuple[Any, Any]],
        created_by: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Create several slots at once: all are validated first and none survive a failure."""
        windows = list(windows)
        if not windows:
            raise ValidationError("At least one slot is required", "SlotService")

        validated = [self._validate_window(start, end, interview_type) for start, end in windows]
        ordered = sorted(validated, key=lambda w: w[0])
        for prev, nxt in zip(ordered, ordered[1:]):
            if nxt[0] < prev[1]:
                raise ConflictError("Slots in the batch overlap each other", "SlotService")

        created: List[Dict[str, Any]] = []
        try:
            for start_iso, end_iso, slot_type in validated:
                created.append(self.create_slot(interviewer_id, start_iso, end_iso, slot_type, created_by))
        except BookingError:
            for slot in created:
                self.col.delete_one({"_id": slot["id"], "is_booked": False})
            logger.warning(f"[SlotService] Batch creation failed, removed {len(created)} slot(s)")
            raise
        return created

    def import_csv(self, content: bytes, created_by: str) -> Dict[str, Any]:
        """
        Bulk-create slots from CSV.

        Expected columns: interviewer_email, start_time, end_time and an
        optional interview_type (defaults to DSA). Rows that fail are reported
        back rather than aborting the import.
        """
        try:
            df = pd.read_csv(BytesIO(content), dtype=str, skip_blank_lines=True)
        except Exception as e:
            raise ValidationError(f"Invalid CSV format: {e}", "SlotService")

        missing = [c for c in IMPORT_COLUMNS if c not in df.columns]
        if missing:
            raise ValidationError(f"CSV is missing required columns: {', '.join(missing)}", "SlotService")
        if df.empty:
            raise ValidationError("No valid records found in CSV data", "SlotService")

        created: List[Dict[str, Any]] = []
        errors: List[str] = []
        for index, row in df.iterrows():
            line = index + 2  # header is line 1
            email = row.get("interviewer_email")
            start = row.get("start_time")
            end = row.get("end_time")
            if pd.isna(email) or pd.isna(start) or pd.isna(end):
                errors.append(f"Line {line}: missing required fields")
                continue
            slot_type = row.get("interview_type")
            slot_type = InterviewType.DSA.value if pd.isna(slot_type) else str(slot_type).strip()

            interviewer = self.users.get_by_email(str(email), role=Role.INTERVIEWER)
            if not interviewer:
                errors.append(f"Line {line}: interviewer not found with email {email}")
                continue
            try:
                created.append(self.create_slot(interviewer["id"], start, end, slot_type, created_by))
            except (ValidationError, ConflictError) as e:
                errors.append(f"Line {line}: {e.message}")

        logger.info(f"[SlotService] CSV import: created={len(created)} errors={len(errors)}")
        return {"created": created, "errors": errors}

    # ------------------------------------------------------------------ reads

    def get_slot(self, slot_id: str) -> Optional[Dict[str, Any]]:
        try:
            return doc_with_id(self.col.find_one({"_id": slot_id}))
        except PyMongoError as e:
            logger.error(f"[SlotService] Error fetching slot: {e}")
            raise StorageError(f"Failed to fetch slot: {e}", "SlotService")

    def require_slot(self, slot_id: str) -> Dict[str, Any]:
        slot = self.get_slot(slot_id)
        if not slot:
            raise NotFoundError("Slot not found", "SlotService")
        return slot

    def _time_filter(self, start_date=None, end_date=None) -> Dict[str, Any]:
        time_q: Dict[str, Any] = {}
        if start_date:
            time_q["$gte"] = format_iso_ist(_parse_time(start_date, "start date"))
        if end_date:
            time_q["$lte"] = format_iso_ist(_parse_time(end_date, "end date"))
        if not time_q:
            # Default to future slots if no dates specified
            time_q["$gte"] = format_iso_ist(get_now_ist())
        return time_q

    def list_available(
        self,
        interviewer_id: Optional[str] = None,
        interview_type: Optional[str] = None,
        start_date=None,
        end_date=None,
    ) -> List[Dict[str, Any]]:
        """Unbooked slots matching the filters, each annotated with its current price."""
        q: Dict[str, Any] = {"is_booked": False, "start_time": self._time_filter(start_date, end_date)}
        if interviewer_id:
            q["interviewer_id"] = interviewer_id
        if interview_type:
            try:
                q["interview_type"] = InterviewType(interview_type).value
            except ValueError:
                raise ValidationError(f"Invalid interview type: {interview_type}", "SlotService")

        try:
            docs = list(self.col.find(q).sort("start_time", 1))
        except PyMongoError as e:
            logger.error(f"[SlotService] Error fetching available slots: {e}")
            raise StorageError(f"Failed to fetch slots: {e}", "SlotService")

        prices = self.prices.price_map()
        slots = []
        for doc in docs:
            slot = doc_with_id(doc)
            price = prices.get(slot["interview_type"])
            if price:
                slot["price"] = price["price"]
                slot["currency"] = price["currency"]
            slots.append(slot)
        return slots

    def list_for_interviewer(self, interviewer_id: str, start_date=None, end_date=None) -> List[Dict[str, Any]]:
        q = {"interviewer_id": interviewer_id, "start_time": self._time_filter(start_date, end_date)}
        try:
            return [doc_with_id(d) for d in self.col.find(q).sort("start_time", 1)]
        except PyMongoError as e:
            logger.error(f"[SlotService] Error fetching interviewer slots: {e}")
            raise StorageError(f"Failed to fetch slots: {e}", "SlotService")

    # ------------------------------------------------------------------ booking state

    def reserve(self, slot_id: str, interview_id: str) -> Dict[str, Any]:
        """Mark the slot booked for `interview_id`; exactly one concurrent caller wins."""
        try:
            updated = self.col.find_one_and_update(
                {"_id": slot_id, "is_booked": False},
                {"$set": {
                    "is_booked": True,
                    "interview_id": interview_id,
                    "updated_at": format_iso_ist(get_now_ist()),
                }},
                return_document=ReturnDocument.AFTER,
            )
            if updated is None:
                exists = self.col.find_one({"_id": slot_id}, {"_id": 1})
        except PyMongoError as e:
            logger.error(f"[SlotService] Error reserving slot: {e}")
            raise StorageError(f"Failed to reserve slot: {e}", "SlotService")

        if updated is None:
            if not exists:
                raise NotFoundError("Slot not found", "SlotService")
            raise AlreadyBookedError("This slot has already been booked", "SlotService")
        logger.info(f"[SlotService] Slot {slot_id} reserved for interview {interview_id}")
        return doc_with_id(updated)

    def release(self, slot_id: str, interview_id: Optional[str] = None) -> bool:
        """
        Make the slot bookable again. Idempotent.

        With `interview_id`, only releases while the slot still belongs to that
        interview, so a late compensation cannot free someone else's booking.
        """
        q: Dict[str, Any] = {"_id": slot_id}
        if interview_id:
            q["interview_id"] = interview_id
        try:
            result = self.col.update_one(q, {"$set": {
                "is_booked": False,
                "interview_id": None,
                "updated_at": format_iso_ist(get_now_ist()),
            }})
        except PyMongoError as e:
            logger.error(f"[SlotService] Error releasing slot: {e}")
            raise StorageError(f"Failed to release slot: {e}", "SlotService")
        if result.matched_count:
            logger.info(f"[SlotService] Slot {slot_id} is available again")
        return bool(result.matched_count)

    def delete_slot(self, slot_id: str) -> None:
        """Delete an unbooked slot."""
        try:
            result = self.col.delete_one({"_id": slot_id, "is_booked": False})
            if result.deleted_count:
                logger.info(f"[SlotService] Slot {slot_id} deleted")
                return
            exists = self.col.find_one({"_id": slot_id}, {"_id": 1})
        except PyMongoError as e:
            logger.error(f"[SlotService] Error deleting slot: {e}")
            raise StorageError(f"Failed to delete slot: {e}", "SlotService")
        if not exists:
            raise NotFoundError("Slot not found", "SlotService")
        raise InvalidStateError("Cannot delete a booked slot", "SlotService")
