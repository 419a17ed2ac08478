"""
Reminder Service

Reminders are stored in Mongo rather than held as in-process timers, so a
restart loses nothing: a periodic sweep fires every reminder that is due.

Lifecycle of a reminder document (one per interview, `_id` = interview id):
    scheduled -> firing -> fired | skipped
    scheduled -> cancelled
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from pymongo import ASCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from mockbook.config import Config
from mockbook.db.mongo import get_database, doc_with_id
from mockbook.schemas.common import InterviewStatus, NotificationEvent
from mockbook.services.interview_service import InterviewService
from mockbook.services.user_service import UserService, public_profile
from mockbook.utils.datetime_utils import format_iso_ist, get_now_ist, parse_datetime_safe
from mockbook.utils.exceptions import StorageError
from mockbook.utils.logger import get_logger
from mockbook.utils.metrics import reminders_total

logger = get_logger(__name__)

SCHEDULED = "scheduled"
FIRING = "firing"
FIRED = "fired"
SKIPPED = "skipped"
CANCELLED = "cancelled"

# A reminder stuck in `firing` this long belongs to a sweeper that died
STALE_FIRING_MINUTES = 5


class ReminderService:
    """Durable interview reminders using MongoDB"""

    def __init__(
        self,
        config: Config,
        interview_service: InterviewService,
        notify: Callable[[NotificationEvent, Dict[str, Any]], None],
        user_service: UserService,
        db: Optional[Database] = None,
    ):
        self.config = config
        self.db = db if db is not None else get_database(config)
        self.col = self.db["reminders"]
        self.interviews = interview_service
        self.notify = notify
        self.users = user_service

    def fire_time_for(self, scheduled_date) -> datetime:
        return parse_datetime_safe(scheduled_date) - timedelta(minutes=self.config.booking.reminder_lead_minutes)

    def schedule(self, interview_id: str, fire_at) -> bool:
        """
        Record a reminder for the interview. Returns False when `fire_at` has
        already passed (nothing is scheduled). Scheduling twice is a no-op.
        """
        fire_at = parse_datetime_safe(fire_at)
        now = get_now_ist()
        if fire_at <= now:
            logger.info(f"[ReminderService] Reminder time for interview {interview_id} already passed, not scheduling")
            return False
        try:
            self.col.update_one(
                {"_id": interview_id},
                {"$setOnInsert": {
                    "interview_id": interview_id,
                    "fire_at": format_iso_ist(fire_at),
                    "status": SCHEDULED,
                    "created_at": format_iso_ist(now),
                }},
                upsert=True,
            )
        except PyMongoError as e:
            logger.error(f"[ReminderService] Error scheduling reminder: {e}")
            raise StorageError(f"Failed to schedule reminder: {e}", "ReminderService")
        logger.info(f"[ReminderService] Reminder for interview {interview_id} at {format_iso_ist(fire_at)}")
        return True

    def cancel(self, interview_id: str) -> bool:
        try:
            result = self.col.update_one(
                {"_id": interview_id, "status": SCHEDULED},
                {"$set": {"status": CANCELLED, "updated_at": format_iso_ist(get_now_ist())}},
            )
        except PyMongoError as e:
            logger.error(f"[ReminderService] Error cancelling reminder: {e}")
            raise StorageError(f"Failed to cancel reminder: {e}", "ReminderService")
        return bool(result.modified_count)

    def get(self, interview_id: str) -> Optional[Dict[str, Any]]:
        return doc_with_id(self.col.find_one({"_id": interview_id}))

    # ------------------------------------------------------------------ sweep

    def _finish(self, reminder_id: str, status: str, now_iso: str, reason: Optional[str] = None) -> None:
        updates = {"status": status, "updated_at": now_iso}
        if status == FIRED:
            updates["fired_at"] = now_iso
        if reason:
            updates["reason"] = reason
        self.col.update_one({"_id": reminder_id, "status": FIRING}, {"$set": updates})
        reminders_total.labels(outcome=status).inc()

    def _recover_stale(self, now: datetime) -> None:
        cutoff = format_iso_ist(now - timedelta(minutes=STALE_FIRING_MINUTES))
        result = self.col.update_many(
            {"status": FIRING, "claimed_at": {"$lt": cutoff}},
            {"$set": {"status": SCHEDULED}},
        )
        if result.modified_count:
            logger.warning(f"[ReminderService] Re-queued {result.modified_count} stale reminder(s)")

    def sweep(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Fire every due reminder once. Each reminder is claimed with a
        compare-and-set before firing so concurrent sweepers never double-send.
        The interview is re-read at fire time; anything no longer `scheduled`
        (cancelled, started, already over) is skipped.
        """
        now = parse_datetime_safe(now) if now is not None else get_now_ist()
        now_iso = format_iso_ist(now)
        counts = {FIRED: 0, SKIPPED: 0}
        try:
            self._recover_stale(now)
            while True:
                reminder = self.col.find_one_and_update(
                    {"status": SCHEDULED, "fire_at": {"$lte": now_iso}},
                    {"$set": {"status": FIRING, "claimed_at": now_iso}},
                    sort=[("fire_at", ASCENDING)],
                    return_document=ReturnDocument.AFTER,
                )
                if reminder is None:
                    break

                interview = self.interviews.get_interview(reminder["interview_id"])
                if not interview or interview["status"] != InterviewStatus.SCHEDULED.value:
                    self._finish(reminder["_id"], SKIPPED, now_iso, "interview no longer scheduled")
                    counts[SKIPPED] += 1
                    continue
                if interview["scheduled_date"] <= now_iso:
                    self._finish(reminder["_id"], SKIPPED, now_iso, "interview already started")
                    counts[SKIPPED] += 1
                    continue

                self.notify(NotificationEvent.INTERVIEW_REMINDER, {
                    "interview": interview,
                    "candidate": public_profile(self.users.get_user(interview["candidate_id"])),
                    "interviewer": public_profile(self.users.get_user(interview["interviewer_id"])),
                })
                self._finish(reminder["_id"], FIRED, now_iso)
                counts[FIRED] += 1
        except PyMongoError as e:
            logger.error(f"[ReminderService] Reminder sweep failed: {e}")
            raise StorageError(f"Reminder sweep failed: {e}", "ReminderService")

        if counts[FIRED] or counts[SKIPPED]:
            logger.info(f"[ReminderService] Sweep fired={counts[FIRED]} skipped={counts[SKIPPED]}")
        return counts

    async def run_forever(self, interval_seconds: Optional[int] = None) -> None:
        """Background loop started with the API process."""
        interval = interval_seconds or self.config.booking.reminder_sweep_seconds
        loop = asyncio.get_running_loop()
        logger.info(f"[ReminderService] Reminder sweep running every {interval}s")
        while True:
            try:
                await loop.run_in_executor(None, self.sweep)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"[ReminderService] Sweep iteration failed: {e}", exc_info=True)
            await asyncio.sleep(interval)
