"""
Payment Service

Ledger of manual UPI payments: pending -> submitted -> verified | rejected.

One interview may have many payment documents over time (a rejected one
followed by a fresh one), but only one *active* payment. The active payment
is recorded in the `payment_claims` collection, keyed by interview id, so
two concurrent requests can never both hold it.
"""

from typing import Optional, Dict, Any
import uuid

from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from mockbook.config import Config
from mockbook.db.mongo import get_database, doc_with_id
from mockbook.schemas.common import PaymentStatus
from mockbook.utils.datetime_utils import format_iso_ist, get_now_ist
from mockbook.utils.exceptions import (
    DuplicateError,
    InvalidStateError,
    NotFoundError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from mockbook.utils.logger import get_logger

logger = get_logger(__name__)

# Only this many trailing characters of a UPI reference are ever stored
TRANSACTION_ID_VISIBLE_CHARS = 4


def redact_transaction_id(transaction_id: str) -> str:
    transaction_id = transaction_id.strip()
    return transaction_id[-TRANSACTION_ID_VISIBLE_CHARS:]


class PaymentService:
    """Service for the payment ledger using MongoDB"""

    def __init__(self, config: Config, db: Optional[Database] = None):
        self.config = config
        self.db = db if db is not None else get_database(config)
        self.col = self.db["payments"]
        self.claims = self.db["payment_claims"]

    # ------------------------------------------------------------------ claims

    def _claim_interview(self, interview_id: str, payment_id: str) -> None:
        """Make `payment_id` the active payment of the interview or raise DuplicateError."""
        try:
            self.claims.insert_one({
                "_id": interview_id,
                "payment_id": payment_id,
                "claimed_at": format_iso_ist(get_now_ist()),
            })
            return
        except DuplicateKeyError:
            pass

        claim = self.claims.find_one({"_id": interview_id})
        if claim is None:
            # Holder released between our insert and read; try once more
            return self._claim_interview(interview_id, payment_id)
        holder_id = claim["payment_id"]
        if holder_id == payment_id:
            return

        holder = self.col.find_one({"_id": holder_id}, {"status": 1})
        if holder is not None and holder.get("status") != PaymentStatus.REJECTED.value:
            raise DuplicateError(
                "An active payment already exists for this interview",
                "PaymentService",
            )

        # Holder was rejected or removed: take the claim over, unless someone beat us to it
        result = self.claims.update_one(
            {"_id": interview_id, "payment_id": holder_id},
            {"$set": {"payment_id": payment_id, "claimed_at": format_iso_ist(get_now_ist())}},
        )
        if result.modified_count != 1:
            raise DuplicateError(
                "An active payment already exists for this interview",
                "PaymentService",
            )
        logger.info(f"[PaymentService] Interview {interview_id} claim moved {holder_id} -> {payment_id}")

    # ------------------------------------------------------------------ creation

    def create_pending(
        self,
        payer_id: str,
        amount: float,
        currency: str,
        interview_id: Optional[str] = None,
        slot_id: Optional[str] = None,
        upi_id: Optional[str] = None,
        qr_code_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a `pending` payment linked to exactly one of an interview or a slot."""
        if bool(interview_id) == bool(slot_id):
            raise ValidationError("A payment must reference exactly one of interview or slot", "PaymentService")
        if amount is None or amount <= 0:
            raise ValidationError("Payment amount must be greater than zero", "PaymentService")

        now_iso = format_iso_ist(get_now_ist())
        payment_id = str(uuid.uuid4())
        payment_doc = {
            "_id": payment_id,
            "interview_id": interview_id,
            "slot_id": slot_id,
            "is_pre_booking": bool(slot_id),
            "paid_by": payer_id,
            "amount": amount,
            "currency": currency,
            "upi_id": upi_id,
            "qr_code_url": qr_code_url,
            "payment_method": "upi",
            "transaction_id": None,
            "screenshot_url": None,
            "status": PaymentStatus.PENDING.value,
            "submitted_at": None,
            "verified_by": None,
            "verified_at": None,
            "created_at": now_iso,
            "updated_at": now_iso,
        }
        try:
            self.col.insert_one(payment_doc)
            if interview_id:
                try:
                    self._claim_interview(interview_id, payment_id)
                except DuplicateError:
                    self.col.delete_one({"_id": payment_id})
                    raise
        except PyMongoError as e:
            logger.error(f"[PaymentService] Error creating payment: {e}")
            raise StorageError(f"Failed to create payment: {e}", "PaymentService")

        target = f"interview={interview_id}" if interview_id else f"slot={slot_id} (pre-booking)"
        logger.info(f"[PaymentService] Payment {payment_id} created: {target} amount={currency} {amount}")
        return doc_with_id(payment_doc)

    # ------------------------------------------------------------------ reads

    def get_payment(self, payment_id: str) -> Optional[Dict[str, Any]]:
        try:
            return doc_with_id(self.col.find_one({"_id": payment_id}))
        except PyMongoError as e:
            logger.error(f"[PaymentService] Error fetching payment: {e}")
            raise StorageError(f"Failed to fetch payment: {e}", "PaymentService")

    def require_payment(self, payment_id: str) -> Dict[str, Any]:
        payment = self.get_payment(payment_id)
        if not payment:
            raise NotFoundError("Payment not found", "PaymentService")
        return payment

    def get_for_interview(self, interview_id: str) -> Optional[Dict[str, Any]]:
        """The interview's active payment, else its most recent one, else None."""
        try:
            claim = self.claims.find_one({"_id": interview_id})
            if claim:
                holder = self.col.find_one({"_id": claim["payment_id"]})
                if holder:
                    return doc_with_id(holder)
            latest = self.col.find({"interview_id": interview_id}).sort("created_at", DESCENDING).limit(1)
            return next((doc_with_id(d) for d in latest), None)
        except PyMongoError as e:
            logger.error(f"[PaymentService] Error fetching payment for interview {interview_id}: {e}")
            raise StorageError(f"Failed to fetch payment: {e}", "PaymentService")

    # ------------------------------------------------------------------ transitions

    def _transition(
        self,
        payment_id: str,
        from_status: PaymentStatus,
        updates: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Compare-and-set the status; a concurrent writer makes this fail with InvalidStateError."""
        updates = dict(updates, updated_at=format_iso_ist(get_now_ist()))
        try:
            result = self.col.update_one({"_id": payment_id, "status": from_status.value}, {"$set": updates})
        except PyMongoError as e:
            logger.error(f"[PaymentService] Error updating payment {payment_id}: {e}")
            raise StorageError(f"Failed to update payment: {e}", "PaymentService")
        if result.modified_count != 1:
            raise InvalidStateError("Payment was modified concurrently, please retry", "PaymentService")
        return self.require_payment(payment_id)

    def submit_proof(
        self,
        payment_id: str,
        payer_id: str,
        transaction_id: str,
        screenshot_url: str,
    ) -> Dict[str, Any]:
        """Attach UPI proof; allowed from `pending` and, for resubmission, from `rejected`."""
        payment = self.require_payment(payment_id)
        if payment["paid_by"] != payer_id:
            raise UnauthorizedError("Not authorized", "PaymentService")

        current = PaymentStatus(payment["status"])
        if current not in (PaymentStatus.PENDING, PaymentStatus.REJECTED):
            raise InvalidStateError(
                f"Payment proof cannot be submitted while payment is {current.value}",
                "PaymentService",
            )
        if not transaction_id or not transaction_id.strip():
            raise ValidationError("Transaction ID is required", "PaymentService")
        if not screenshot_url:
            raise ValidationError("Payment screenshot is required", "PaymentService")

        if current == PaymentStatus.REJECTED and payment.get("interview_id"):
            try:
                self._claim_interview(payment["interview_id"], payment_id)
            except PyMongoError as e:
                raise StorageError(f"Failed to claim interview payment: {e}", "PaymentService")

        updated = self._transition(payment_id, current, {
            "transaction_id": redact_transaction_id(transaction_id),
            "screenshot_url": screenshot_url,
            "status": PaymentStatus.SUBMITTED.value,
            "submitted_at": format_iso_ist(get_now_ist()),
            "verified_by": None,
            "verified_at": None,
        })
        logger.info(f"[PaymentService] Proof submitted for payment {payment_id} (was {current.value})")
        return updated

    def verify(self, payment_id: str, verifier_id: str, approved: bool) -> Dict[str, Any]:
        payment = self.require_payment(payment_id)
        if payment["status"] != PaymentStatus.SUBMITTED.value:
            raise InvalidStateError(
                f"Only submitted payments can be reviewed (payment is {payment['status']})",
                "PaymentService",
            )
        new_status = PaymentStatus.VERIFIED if approved else PaymentStatus.REJECTED
        updated = self._transition(payment_id, PaymentStatus.SUBMITTED, {
            "status": new_status.value,
            "verified_by": verifier_id,
            "verified_at": format_iso_ist(get_now_ist()),
        })
        logger.info(f"[PaymentService] Payment {payment_id} {new_status.value} by {verifier_id}")
        return updated

    def refund(self, payment_id: str, actor_id: str) -> Dict[str, Any]:
        """Record an out-of-band refund of a submitted or verified payment."""
        payment = self.require_payment(payment_id)
        current = PaymentStatus(payment["status"])
        if current not in (PaymentStatus.SUBMITTED, PaymentStatus.VERIFIED):
            raise InvalidStateError(f"A {current.value} payment cannot be refunded", "PaymentService")
        updated = self._transition(payment_id, current, {
            "status": PaymentStatus.REFUNDED.value,
            "refunded_by": actor_id,
            "refunded_at": format_iso_ist(get_now_ist()),
        })
        logger.info(f"[PaymentService] Payment {payment_id} marked refunded by {actor_id}")
        return updated

    def link_to_interview(self, payment_id: str, interview_id: str) -> Dict[str, Any]:
        """Convert a pre-booking payment into the interview's payment."""
        self.require_payment(payment_id)
        try:
            self._claim_interview(interview_id, payment_id)
            self.col.update_one({"_id": payment_id}, {"$set": {
                "interview_id": interview_id,
                "is_pre_booking": False,
                "slot_id": None,
                "updated_at": format_iso_ist(get_now_ist()),
            }})
        except PyMongoError as e:
            logger.error(f"[PaymentService] Error linking payment {payment_id}: {e}")
            raise StorageError(f"Failed to link payment: {e}", "PaymentService")
        logger.info(f"[PaymentService] Payment {payment_id} linked to interview {interview_id}")
        return self.require_payment(payment_id)
