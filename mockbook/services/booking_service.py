"""
Booking Service

Coordinates slots, interviews and payments for the two booking flows:

  * pay-then-book: a candidate pays for a slot first
    (initiate_prebooking_payment), then uploads proof and the booking is made
    in one step (complete_prebooking_payment).
  * book-then-pay: a candidate books an interviewer directly (book_direct)
    and asks for a payment afterwards (create_payment_request). A candidate
    may hold only one interview whose payment is not yet verified.

Every entry point takes the caller's AuthContext and checks it against the
access policy. Notification and reminder failures are logged, never raised.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple
import uuid

from pymongo.database import Database

from mockbook.config import Config
from mockbook.db.mongo import get_database, lease
from mockbook.schemas.common import (
    INTERVIEW_DURATIONS,
    AuthContext,
    InterviewStatus,
    InterviewType,
    NotificationEvent,
    PaymentStatus,
    Role,
)
from mockbook.services import policy
from mockbook.services.interview_service import InterviewService
from mockbook.services.payment_service import PaymentService
from mockbook.services.price_service import PriceService
from mockbook.services.rating_service import RatingService
from mockbook.services.reminder_service import ReminderService
from mockbook.services.saga import Saga
from mockbook.services.slot_service import SlotService
from mockbook.services.user_service import UserService, public_profile
from mockbook.utils.datetime_utils import format_iso_ist, get_now_ist, parse_datetime_safe
from mockbook.utils.exceptions import (
    AlreadyBookedError,
    BookingError,
    InvalidStateError,
    PendingPaymentExistsError,
    SlotNoLongerAvailableError,
    ValidationError,
)
from mockbook.utils.logger import get_logger
from mockbook.utils.metrics import (
    booking_failures_total,
    bookings_total,
    cancellations_total,
    payments_total,
    ratings_total,
)

logger = get_logger(__name__)

FEEDBACK_SCORES = ("coding_score", "communication_score", "problem_solving_score")
RATING_FEEDBACK_MAX_LENGTH = 500


class BookingService:
    """Booking coordinator"""

    def __init__(
        self,
        config: Config,
        slot_service: SlotService,
        price_service: PriceService,
        payment_service: PaymentService,
        interview_service: InterviewService,
        rating_service: RatingService,
        user_service: UserService,
        reminder_service: ReminderService,
        notifier,
        db: Optional[Database] = None,
    ):
        self.config = config
        self.db = db if db is not None else get_database(config)
        self.leases = self.db["booking_leases"]
        self.slots = slot_service
        self.prices = price_service
        self.payments = payment_service
        self.interviews = interview_service
        self.ratings = rating_service
        self.users = user_service
        self.reminders = reminder_service
        self.notifier = notifier

    # ------------------------------------------------------------------ side effects

    def _notify(self, event: NotificationEvent, interview: Dict[str, Any], **extra) -> None:
        try:
            payload = {
                "interview": interview,
                "candidate": public_profile(self.users.get_user(interview["candidate_id"])),
                "interviewer": public_profile(self.users.get_user(interview["interviewer_id"])),
                "admin_email": self.users.get_admin_email(),
            }
            payload.update(extra)
            self.notifier.notify(event, payload)
        except Exception as e:
            logger.error(f"[BookingService] Failed to send {event.value} notification for {interview.get('id')}: {e}")

    def _schedule_reminder(self, interview: Dict[str, Any]) -> None:
        try:
            fire_at = self.reminders.fire_time_for(interview["scheduled_date"])
            self.reminders.schedule(interview["id"], fire_at)
        except Exception as e:
            logger.error(f"[BookingService] Failed to schedule reminder for interview {interview['id']}: {e}")

    def _cancel_reminder(self, interview_id: str) -> None:
        try:
            self.reminders.cancel(interview_id)
        except Exception as e:
            logger.error(f"[BookingService] Failed to cancel reminder for interview {interview_id}: {e}")

    def _payment_target(self, interviewer_id: str) -> Dict[str, Any]:
        """The interviewer's UPI collection details; ValidationError if not configured."""
        interviewer = self.users.get_interviewer(interviewer_id)
        if not UserService.has_payment_details(interviewer):
            raise ValidationError(
                "Interviewer has not configured payment details yet. Please try again later.",
                "BookingService",
            )
        return interviewer

    def _new_interview_doc(
        self,
        interview_id: str,
        candidate_id: str,
        interviewer: Dict[str, Any],
        interview_type: InterviewType,
        scheduled_date: str,
        duration: int,
        price: float,
        currency: str,
        slot_id: Optional[str] = None,
        payment_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        return {
            "_id": interview_id,
            "candidate_id": candidate_id,
            "interviewer_id": interviewer["id"],
            "slot_id": slot_id,
            "interview_type": interview_type.value,
            "scheduled_date": scheduled_date,
            "duration": duration,
            "price": price,
            "currency": currency,
            "status": InterviewStatus.SCHEDULED.value,
            "payment_id": payment_id,
            "meeting_link": interviewer.get("default_meeting_link") or self.config.booking.default_meeting_link,
            "recording_url": None,
            "cancelled_by": None,
        }

    # ------------------------------------------------------------------ slots, prices, UPI details

    def create_slot(self, actor: AuthContext, start, end, interview_type, interviewer_id: Optional[str] = None) -> Dict[str, Any]:
        policy.require(actor, "slot:create", message="Only interviewers and admins can create slots")
        owner_id = self._slot_owner(actor, interviewer_id)
        return self.slots.create_slot(owner_id, start, end, interview_type, created_by=actor.user_id)

    def create_batch(
        self,
        actor: AuthContext,
        interview_type,
        windows: Iterable[Tuple[Any, Any]],
        interviewer_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        policy.require(actor, "slot:create", message="Only interviewers and admins can create slots")
        owner_id = self._slot_owner(actor, interviewer_id)
        return self.slots.create_batch(owner_id, interview_type, windows, created_by=actor.user_id)

    def _slot_owner(self, actor: AuthContext, interviewer_id: Optional[str]) -> str:
        if actor.role == Role.INTERVIEWER:
            return actor.user_id
        if not interviewer_id:
            raise ValidationError("interviewer_id is required when an admin creates slots", "BookingService")
        return self.users.get_interviewer(interviewer_id)["id"]

    def import_slots(self, actor: AuthContext, content: bytes) -> Dict[str, Any]:
        policy.require(actor, "slot:import", message="Only admins can import slots")
        return self.slots.import_csv(content, created_by=actor.user_id)

    def delete_slot(self, actor: AuthContext, slot_id: str) -> None:
        slot = self.slots.require_slot(slot_id)
        policy.require(actor, "slot:delete", slot, message="Not authorized to delete this slot")
        self.slots.delete_slot(slot_id)

    def set_price(self, actor: AuthContext, interview_type, price: float, currency: Optional[str] = None) -> Dict[str, Any]:
        policy.require(actor, "price:set", message="Only admins can change prices")
        return self.prices.set_price(interview_type, price, currency, updated_by=actor.user_id)

    def set_payment_details(self, actor: AuthContext, upi_id: str, qr_code_url: Optional[str] = None) -> Dict[str, Any]:
        policy.require(actor, "payment_details:set", message="Only interviewers can set UPI details")
        return self.users.set_payment_details(actor.user_id, upi_id, qr_code_url)

    # ------------------------------------------------------------------ flow A: pay, then book

    def initiate_prebooking_payment(self, actor: AuthContext, slot_id: str) -> Dict[str, Any]:
        """
        Start paying for a slot before it is booked.

        Returns the UPI details the candidate pays to out-of-band, plus the
        id of the new `pending` payment.
        """
        policy.require(actor, "payment:prebook", message="Only candidates can book interviews")
        slot = self.slots.require_slot(slot_id)
        if slot["is_booked"]:
            raise SlotNoLongerAvailableError("This slot has already been booked", "BookingService")
        if slot["start_time"] <= format_iso_ist(get_now_ist()):
            raise ValidationError("This slot has already started", "BookingService")

        interviewer = self._payment_target(slot["interviewer_id"])
        price = self.prices.get_price(slot["interview_type"])

        payment = self.payments.create_pending(
            payer_id=actor.user_id,
            amount=price["price"],
            currency=price["currency"],
            slot_id=slot_id,
            upi_id=interviewer["upi_id"],
            qr_code_url=interviewer["qr_code_url"],
        )
        payments_total.labels(status=PaymentStatus.PENDING.value).inc()
        return {
            "payment_id": payment["id"],
            "upi_id": payment["upi_id"],
            "qr_code_url": payment["qr_code_url"],
            "amount": payment["amount"],
            "currency": payment["currency"],
        }

    def check_prebooking_completion(self, actor: AuthContext, payment_id: str, slot_id: str) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """
        Everything complete_prebooking_payment can refuse up front, without
        side effects. The HTTP layer runs it before uploading the screenshot.
        """
        policy.require(actor, "payment:prebook", message="Only candidates can book interviews")
        payment = self.payments.require_payment(payment_id)
        policy.require(actor, "payment:submit", payment, message="Not authorized")
        if not payment.get("is_pre_booking") or payment.get("slot_id") != slot_id:
            raise ValidationError("Payment does not belong to this slot", "BookingService")

        slot = self.slots.require_slot(slot_id)
        if slot["is_booked"]:
            booking_failures_total.labels(flow="prebooking", error=SlotNoLongerAvailableError.kind).inc()
            raise SlotNoLongerAvailableError(
                "This slot is no longer available. Please contact support about your payment.",
                "BookingService",
            )
        if slot["start_time"] <= format_iso_ist(get_now_ist()):
            booking_failures_total.labels(flow="prebooking", error=ValidationError.kind).inc()
            raise ValidationError(
                "This slot has already started. Please contact support about your payment.",
                "BookingService",
            )
        return payment, slot

    def complete_prebooking_payment(
        self,
        actor: AuthContext,
        payment_id: str,
        transaction_id: str,
        screenshot_url: str,
        slot_id: str,
    ) -> Dict[str, Any]:
        """
        Record payment proof and book the slot.

        Runs as a saga: submit proof -> reserve slot -> insert interview ->
        link payment. A failure after the proof step undoes the reservation
        and the interview; the submitted proof itself is kept, so a candidate
        who lost the slot to someone else still has a record of having paid.
        """
        payment, slot = self.check_prebooking_completion(actor, payment_id, slot_id)

        interviewer = self.users.get_interviewer(slot["interviewer_id"])
        interview_type = InterviewType(slot["interview_type"])
        interview_id = str(uuid.uuid4())
        interview_doc = self._new_interview_doc(
            interview_id,
            candidate_id=actor.user_id,
            interviewer=interviewer,
            interview_type=interview_type,
            scheduled_date=slot["start_time"],
            duration=INTERVIEW_DURATIONS[interview_type],
            price=payment["amount"],
            currency=payment["currency"],
            slot_id=slot_id,
            payment_id=payment_id,
        )

        def submit_proof(ctx):
            # A retry after a failed attempt finds the proof already on file
            if payment["status"] == PaymentStatus.SUBMITTED.value:
                return payment
            return self.payments.submit_proof(payment_id, actor.user_id, transaction_id, screenshot_url)

        def reserve(ctx):
            try:
                return self.slots.reserve(slot_id, interview_id)
            except AlreadyBookedError:
                raise SlotNoLongerAvailableError(
                    "This slot was just booked by someone else. Please contact support about your payment.",
                    "BookingService",
                )

        saga = (
            Saga("prebooking")
            .step("proof", submit_proof)
            .step("slot", reserve, compensate=lambda ctx: self.slots.release(slot_id, interview_id))
            .step("interview", lambda ctx: self.interviews.insert(interview_doc),
                  compensate=lambda ctx: self.interviews.delete(interview_id))
            .step("payment", lambda ctx: self.payments.link_to_interview(payment_id, interview_id))
        )
        try:
            ctx = saga.run()
        except BookingError as e:
            booking_failures_total.labels(flow="prebooking", error=e.kind).inc()
            raise

        interview, linked = ctx["interview"], ctx["payment"]
        bookings_total.labels(flow="prebooking").inc()
        payments_total.labels(status=PaymentStatus.SUBMITTED.value).inc()
        logger.info(f"[BookingService] Slot {slot_id} booked as interview {interview_id} by {actor.user_id}")

        self._schedule_reminder(interview)
        self._notify(NotificationEvent.BOOKING_CONFIRMED, interview, payment=linked)
        self._notify(NotificationEvent.PAYMENT_SUBMITTED, interview, payment=linked)
        return {"interview": interview, "payment": linked}

    # ------------------------------------------------------------------ flow B: book, then pay

    def pending_payment_interviews(self, candidate_id: str) -> List[Dict[str, Any]]:
        """Non-cancelled interviews of the candidate whose payment is not verified."""
        blocking = []
        for interview in self.interviews.list_for_candidate(candidate_id, exclude_statuses=[InterviewStatus.CANCELLED]):
            payment = self.payments.get_for_interview(interview["id"])
            if payment and payment["status"] == PaymentStatus.VERIFIED.value:
                continue
            blocking.append({
                "id": interview["id"],
                "scheduled_date": interview["scheduled_date"],
                "status": interview["status"],
                "payment_status": payment["status"] if payment else None,
            })
        return blocking

    def book_direct(
        self,
        actor: AuthContext,
        interviewer_id: str,
        scheduled_date,
        duration: Optional[int] = None,
        interview_type=InterviewType.DSA,
    ) -> Dict[str, Any]:
        policy.require(actor, "interview:book", message="Only candidates can book interviews")
        try:
            interview_type = InterviewType(interview_type)
        except ValueError:
            raise ValidationError(f"Invalid interview type: {interview_type}", "BookingService")
        try:
            when = parse_datetime_safe(scheduled_date)
        except (ValueError, TypeError):
            raise ValidationError(f"Invalid scheduled date: {scheduled_date!r}", "BookingService")
        if when <= get_now_ist():
            raise ValidationError("Interview must be scheduled in the future", "BookingService")
        if duration is None:
            duration = INTERVIEW_DURATIONS[interview_type]
        if duration <= 0:
            raise ValidationError("Duration must be positive", "BookingService")

        interviewer = self.users.get_interviewer(interviewer_id)
        price = self.prices.get_price(interview_type)

        # The gate check and the insert must not interleave with another booking by the same candidate
        with lease(self.leases, f"book:{actor.user_id}", self.config.booking.booking_lease_seconds, "BookingService"):
            blocking = self.pending_payment_interviews(actor.user_id)
            if blocking:
                booking_failures_total.labels(flow="direct", error=PendingPaymentExistsError.kind).inc()
                raise PendingPaymentExistsError(
                    "You have an interview with pending payment. Please complete the payment before booking another interview.",
                    "BookingService",
                    blocking_interviews=blocking,
                )
            interview = self.interviews.insert(self._new_interview_doc(
                str(uuid.uuid4()),
                candidate_id=actor.user_id,
                interviewer=interviewer,
                interview_type=interview_type,
                scheduled_date=format_iso_ist(when),
                duration=duration,
                price=price["price"],
                currency=price["currency"],
            ))

        bookings_total.labels(flow="direct").inc()
        self._schedule_reminder(interview)
        self._notify(NotificationEvent.BOOKING_CONFIRMED, interview)
        return interview

    def create_payment_request(self, actor: AuthContext, interview_id: str) -> Dict[str, Any]:
        interview = self.interviews.require_interview(interview_id)
        policy.require(actor, "payment:request", interview, message="Not authorized")
        if interview["status"] == InterviewStatus.CANCELLED.value:
            raise InvalidStateError("Cannot request payment for a cancelled interview", "BookingService")

        interviewer = self._payment_target(interview["interviewer_id"])
        payment = self.payments.create_pending(
            payer_id=actor.user_id,
            amount=interview["price"],
            currency=interview["currency"],
            interview_id=interview_id,
            upi_id=interviewer["upi_id"],
            qr_code_url=interviewer["qr_code_url"],
        )
        self.interviews.set_fields(interview_id, payment_id=payment["id"])
        payments_total.labels(status=PaymentStatus.PENDING.value).inc()
        return {
            "payment_id": payment["id"],
            "upi_id": payment["upi_id"],
            "qr_code_url": payment["qr_code_url"],
            "amount": payment["amount"],
            "currency": payment["currency"],
        }

    def check_payment_proof(self, actor: AuthContext, payment_id: str) -> Dict[str, Any]:
        """Side-effect-free checks for submit_payment_proof."""
        payment = self.payments.require_payment(payment_id)
        policy.require(actor, "payment:submit", payment, message="Not authorized")
        if payment.get("is_pre_booking"):
            raise ValidationError(
                "Pre-booking payments are completed together with the slot booking",
                "BookingService",
            )
        if payment["status"] not in (PaymentStatus.PENDING.value, PaymentStatus.REJECTED.value):
            raise InvalidStateError(
                f"Payment proof cannot be submitted while payment is {payment['status']}",
                "BookingService",
            )
        return payment

    def submit_payment_proof(
        self,
        actor: AuthContext,
        payment_id: str,
        transaction_id: str,
        screenshot_url: str,
    ) -> Dict[str, Any]:
        """Upload proof for an interview's payment (first submission or resubmission after rejection)."""
        self.check_payment_proof(actor, payment_id)
        updated = self.payments.submit_proof(payment_id, actor.user_id, transaction_id, screenshot_url)
        payments_total.labels(status=PaymentStatus.SUBMITTED.value).inc()

        interview = self.interviews.get_interview(updated["interview_id"])
        if interview:
            if interview.get("payment_id") != payment_id:
                interview = self.interviews.set_fields(interview["id"], payment_id=payment_id)
            self._notify(NotificationEvent.PAYMENT_SUBMITTED, interview, payment=updated)
        return updated

    # ------------------------------------------------------------------ payment review

    def _payment_interviewer(self, payment: Dict[str, Any]) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """(interview or None, id of the interviewer who collects this payment)"""
        if payment.get("interview_id"):
            interview = self.interviews.require_interview(payment["interview_id"])
            return interview, interview["interviewer_id"]
        slot = self.slots.get_slot(payment["slot_id"]) if payment.get("slot_id") else None
        return None, slot["interviewer_id"] if slot else None

    def verify_payment(self, actor: AuthContext, payment_id: str, approved: bool) -> Dict[str, Any]:
        payment = self.payments.require_payment(payment_id)
        interview, interviewer_id = self._payment_interviewer(payment)
        policy.require(
            actor, "payment:verify", {"interviewer_id": interviewer_id},
            message="Only the interviewer or an admin can verify this payment",
        )

        updated = self.payments.verify(payment_id, actor.user_id, approved)
        payments_total.labels(status=updated["status"]).inc()
        if approved and interview:
            self._notify(NotificationEvent.PAYMENT_VERIFIED, interview, payment=updated)
        return updated

    def refund_payment(self, actor: AuthContext, payment_id: str) -> Dict[str, Any]:
        policy.require(actor, "payment:refund", message="Only admins can record refunds")
        updated = self.payments.refund(payment_id, actor.user_id)
        payments_total.labels(status=PaymentStatus.REFUNDED.value).inc()
        return updated

    def get_payment_for_interview(self, actor: AuthContext, interview_id: str) -> Optional[Dict[str, Any]]:
        interview = self.interviews.require_interview(interview_id)
        policy.require(actor, "payment:read", interview, message="Not authorized")
        return self.payments.get_for_interview(interview_id)

    # ------------------------------------------------------------------ interviews

    def get_interview(self, actor: AuthContext, interview_id: str) -> Dict[str, Any]:
        interview = self.interviews.require_interview(interview_id)
        policy.require(actor, "interview:read", interview, message="Not authorized")
        return interview

    def list_my_interviews(self, actor: AuthContext) -> List[Dict[str, Any]]:
        """The caller's own interviews; admins see every interview."""
        if actor.is_admin:
            return self.interviews.list_all()
        return self.interviews.list_for_user(actor.user_id, as_interviewer=actor.role == Role.INTERVIEWER)

    def _after_cancel(self, interview: Dict[str, Any], actor: AuthContext) -> None:
        if interview.get("slot_id"):
            self.slots.release(interview["slot_id"], interview["id"])
        self._cancel_reminder(interview["id"])
        cancellations_total.labels(by=actor.role.value).inc()
        self._notify(NotificationEvent.BOOKING_CANCELLED, interview, cancelled_by=actor.role.value)

    def cancel(self, actor: AuthContext, interview_id: str) -> Dict[str, Any]:
        """Cancel a scheduled interview. The payment is left as is; refunds are handled by an operator."""
        interview = self.interviews.require_interview(interview_id)
        policy.require(actor, "interview:cancel", interview, message="Not authorized to cancel this interview")
        if interview["status"] != InterviewStatus.SCHEDULED.value:
            raise InvalidStateError(f"Cannot cancel a {interview['status']} interview", "BookingService")

        updated = self.interviews.transition(
            interview_id,
            InterviewStatus.CANCELLED,
            allowed_from=[InterviewStatus.SCHEDULED],
            extra={"cancelled_by": actor.role.value, "cancelled_at": format_iso_ist(get_now_ist())},
        )
        logger.info(f"[BookingService] Interview {interview_id} cancelled by {actor.role.value} {actor.user_id}")
        self._after_cancel(updated, actor)
        return updated

    def update_status(self, actor: AuthContext, interview_id: str, status) -> Dict[str, Any]:
        interview = self.interviews.require_interview(interview_id)
        policy.require(actor, "interview:update_status", interview, message="Not authorized to update this interview")
        try:
            status = InterviewStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid status: {status}", "BookingService")

        extra = None
        if status == InterviewStatus.CANCELLED:
            extra = {"cancelled_by": actor.role.value, "cancelled_at": format_iso_ist(get_now_ist())}
        updated = self.interviews.transition(interview_id, status, extra=extra)

        if status == InterviewStatus.CANCELLED:
            self._after_cancel(updated, actor)
        else:
            self._cancel_reminder(interview_id)
        return updated

    def submit_feedback(self, actor: AuthContext, interview_id: str, feedback: Dict[str, Any]) -> Dict[str, Any]:
        """Store the interviewer's feedback and complete the interview."""
        interview = self.interviews.require_interview(interview_id)
        policy.require(actor, "interview:feedback", interview, message="Only the interviewer can submit feedback")
        if interview["status"] not in (InterviewStatus.SCHEDULED.value, InterviewStatus.IN_PROGRESS.value):
            raise InvalidStateError(f"Cannot submit feedback for a {interview['status']} interview", "BookingService")
        for key in FEEDBACK_SCORES:
            score = feedback.get(key)
            if isinstance(score, bool) or not isinstance(score, int) or not 1 <= score <= 5:
                raise ValidationError(f"{key} must be an integer from 1 to 5", "BookingService")

        feedback_doc = {
            "_id": interview_id,
            "interview_id": interview_id,
            "interviewer_id": interview["interviewer_id"],
            "candidate_id": interview["candidate_id"],
            "coding_score": feedback["coding_score"],
            "communication_score": feedback["communication_score"],
            "problem_solving_score": feedback["problem_solving_score"],
            "strengths": feedback.get("strengths", ""),
            "areas_of_improvement": feedback.get("areas_of_improvement", ""),
            "additional_comments": feedback.get("additional_comments"),
        }
        ctx = (
            Saga("feedback")
            .step("feedback", lambda ctx: self.interviews.add_feedback(feedback_doc),
                  compensate=lambda ctx: self.interviews.remove_feedback(interview_id))
            .step("interview", lambda ctx: self.interviews.transition(
                interview_id,
                InterviewStatus.COMPLETED,
                allowed_from=[InterviewStatus.SCHEDULED, InterviewStatus.IN_PROGRESS],
            ))
            .run()
        )

        self._cancel_reminder(interview_id)
        self._notify(NotificationEvent.FEEDBACK_SUBMITTED, ctx["interview"], feedback=ctx["feedback"])
        return {"interview": ctx["interview"], "feedback": ctx["feedback"]}

    def add_recording(self, actor: AuthContext, interview_id: str, recording_url: str) -> Dict[str, Any]:
        """Attach a recording; an in-progress interview is completed by it."""
        interview = self.interviews.require_interview(interview_id)
        policy.require(actor, "interview:recording", interview, message="Not authorized to add a recording")
        if not recording_url or not recording_url.strip():
            raise ValidationError("Recording URL is required", "BookingService")

        status = InterviewStatus(interview["status"])
        if status == InterviewStatus.IN_PROGRESS:
            return self.interviews.transition(
                interview_id,
                InterviewStatus.COMPLETED,
                allowed_from=[InterviewStatus.IN_PROGRESS],
                extra={"recording_url": recording_url.strip()},
            )
        if status == InterviewStatus.COMPLETED:
            return self.interviews.set_fields(interview_id, recording_url=recording_url.strip())
        raise InvalidStateError(f"Cannot add a recording to a {status.value} interview", "BookingService")

    # ------------------------------------------------------------------ ratings

    def submit_rating(self, actor: AuthContext, interview_id: str, rating: int, feedback: Optional[str] = None) -> Dict[str, Any]:
        """A candidate rates the interviewer of one of their completed interviews, once."""
        interview = self.interviews.require_interview(interview_id)
        policy.require(
            actor, "interview:rate", interview,
            message="You can only rate interviews you participated in as a candidate",
        )
        if interview["status"] != InterviewStatus.COMPLETED.value:
            raise InvalidStateError("You can only rate completed interviews", "BookingService")
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be an integer from 1 to 5", "BookingService")
        feedback = (feedback or "").strip()
        if len(feedback) > RATING_FEEDBACK_MAX_LENGTH:
            raise ValidationError(f"Feedback cannot exceed {RATING_FEEDBACK_MAX_LENGTH} characters", "BookingService")

        saved = self.ratings.add_rating({
            "interview_id": interview_id,
            "candidate_id": actor.user_id,
            "interviewer_id": interview["interviewer_id"],
            "rating": rating,
            "feedback": feedback,
        })
        ratings_total.labels(rating=str(rating)).inc()

        try:
            summary = self.ratings.summary_for(interview["interviewer_id"])
            self.users.set_rating_summary(interview["interviewer_id"], summary["average_rating"], summary["ratings_count"])
        except BookingError as e:
            logger.error(f"[BookingService] Failed to update rating summary for {interview['interviewer_id']}: {e}")

        self._notify(NotificationEvent.RATING_SUBMITTED, interview, rating=saved)
        return saved

    def list_interviewer_ratings(self, interviewer_id: str) -> List[Dict[str, Any]]:
        self.users.get_interviewer(interviewer_id)
        return self.ratings.list_ratings(interviewer_id)

    def interviewer_rating_summary(self, interviewer_id: str) -> Dict[str, Any]:
        self.users.get_interviewer(interviewer_id)
        return self.ratings.summary_for(interviewer_id)

    def list_all_ratings(self, actor: AuthContext) -> List[Dict[str, Any]]:
        policy.require(actor, "rating:list_all", message="Not authorized to view all ratings")
        return self.ratings.list_ratings()
