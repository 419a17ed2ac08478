"""
User Service

Read side of the user directory: who a candidate / interviewer is, where to
email them, and where an interviewer collects UPI payments.
"""

from typing import Optional, Dict, Any

from pymongo.database import Database
from pymongo.errors import PyMongoError

from mockbook.config import Config
from mockbook.db.mongo import get_database, doc_with_id
from mockbook.schemas.common import Role
from mockbook.utils.datetime_utils import format_iso_ist, get_now_ist
from mockbook.utils.exceptions import NotFoundError, StorageError, ValidationError
from mockbook.utils.logger import get_logger

logger = get_logger(__name__)

_PUBLIC_FIELDS = ("id", "name", "email", "role", "email_notifications")


def public_profile(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Trim a user document down to what goes into notification payloads."""
    if not user:
        return None
    return {k: user.get(k) for k in _PUBLIC_FIELDS}


class UserService:
    """Service for looking up users using MongoDB"""

    def __init__(self, config: Config, db: Optional[Database] = None):
        self.config = config
        self.db = db if db is not None else get_database(config)
        self.col = self.db["users"]

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            return doc_with_id(self.col.find_one({"_id": user_id}))
        except PyMongoError as e:
            logger.error(f"[UserService] Error fetching user {user_id}: {e}")
            raise StorageError(f"Failed to fetch user: {e}", "UserService")

    def get_by_email(self, email: str, role: Optional[Role] = None) -> Optional[Dict[str, Any]]:
        q: Dict[str, Any] = {"email": email.strip().lower()}
        if role:
            q["role"] = Role(role).value
        try:
            return doc_with_id(self.col.find_one(q))
        except PyMongoError as e:
            logger.error(f"[UserService] Error fetching user by email: {e}")
            raise StorageError(f"Failed to fetch user: {e}", "UserService")

    def get_interviewer(self, interviewer_id: str) -> Dict[str, Any]:
        user = self.get_user(interviewer_id)
        if not user or user.get("role") != Role.INTERVIEWER.value:
            raise NotFoundError("Interviewer not found", "UserService")
        return user

    def get_admin_email(self) -> Optional[str]:
        """First admin's address, falling back to ADMIN_EMAIL."""
        try:
            admin = self.col.find_one({"role": Role.ADMIN.value})
        except PyMongoError as e:
            logger.warning(f"[UserService] Could not look up admin email: {e}")
            admin = None
        if admin and admin.get("email"):
            return admin["email"]
        return self.config.booking.admin_email

    @staticmethod
    def has_payment_details(user: Optional[Dict[str, Any]]) -> bool:
        return bool(user and user.get("upi_id") and user.get("qr_code_url"))

    def set_payment_details(self, user_id: str, upi_id: str, qr_code_url: Optional[str] = None) -> Dict[str, Any]:
        """Store an interviewer's UPI id (and QR code, when a new one was uploaded)."""
        if not upi_id or not upi_id.strip():
            raise ValidationError("UPI ID is required", "UserService")
        updates: Dict[str, Any] = {
            "upi_id": upi_id.strip(),
            "updated_at": format_iso_ist(get_now_ist()),
        }
        if qr_code_url:
            updates["qr_code_url"] = qr_code_url
        try:
            result = self.col.update_one({"_id": user_id}, {"$set": updates})
        except PyMongoError as e:
            logger.error(f"[UserService] Error updating UPI details: {e}")
            raise StorageError(f"Failed to update UPI details: {e}", "UserService")
        if result.matched_count == 0:
            raise NotFoundError("User not found", "UserService")
        logger.info(f"[UserService] UPI details updated for user {user_id}")
        return self.get_user(user_id)

    def set_rating_summary(self, interviewer_id: str, average_rating: float, ratings_count: int) -> None:
        try:
            self.col.update_one(
                {"_id": interviewer_id},
                {"$set": {"average_rating": average_rating, "ratings_count": ratings_count}},
            )
        except PyMongoError as e:
            logger.error(f"[UserService] Error updating rating summary: {e}")
            raise StorageError(f"Failed to update rating summary: {e}", "UserService")
