"""
Shared enums and the resolved caller identity.
"""

from enum import Enum
from typing import Dict

from pydantic import BaseModel


class Role(str, Enum):
    CANDIDATE = "candidate"
    INTERVIEWER = "interviewer"
    ADMIN = "admin"


class InterviewType(str, Enum):
    DSA = "DSA"
    SYSTEM_DESIGN = "SystemDesign"


# Fixed session length per interview type, in minutes
INTERVIEW_DURATIONS: Dict[InterviewType, int] = {
    InterviewType.DSA: 40,
    InterviewType.SYSTEM_DESIGN: 50,
}


class InterviewStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    VERIFIED = "verified"
    REJECTED = "rejected"
    REFUNDED = "refunded"


class NotificationEvent(str, Enum):
    BOOKING_CONFIRMED = "BookingConfirmed"
    BOOKING_CANCELLED = "BookingCancelled"
    PAYMENT_SUBMITTED = "PaymentSubmitted"
    PAYMENT_VERIFIED = "PaymentVerified"
    INTERVIEW_REMINDER = "InterviewReminder"
    FEEDBACK_SUBMITTED = "FeedbackSubmitted"
    RATING_SUBMITTED = "RatingSubmitted"


class AuthContext(BaseModel):
    """Caller identity resolved by the HTTP layer (bearer token)."""

    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


__all__ = [
    "Role",
    "InterviewType",
    "INTERVIEW_DURATIONS",
    "InterviewStatus",
    "PaymentStatus",
    "NotificationEvent",
    "AuthContext",
]
