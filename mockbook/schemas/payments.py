"""
Payment related Pydantic schemas.
"""

from typing import Optional

from pydantic import BaseModel

from mockbook.schemas.common import PaymentStatus


class PrebookingPaymentRequest(BaseModel):
    slot_id: str


class PaymentRequestCreate(BaseModel):
    interview_id: str


class VerifyPaymentRequest(BaseModel):
    payment_id: str
    verified: bool


class PaymentInstructions(BaseModel):
    """What the candidate needs to pay out-of-band over UPI."""

    payment_id: str
    upi_id: Optional[str] = None
    qr_code_url: Optional[str] = None
    amount: float
    currency: str


class PaymentResponse(BaseModel):
    id: str
    interview_id: Optional[str] = None
    slot_id: Optional[str] = None
    is_pre_booking: bool = False
    paid_by: str
    amount: float
    currency: str
    transaction_id: Optional[str] = None
    screenshot_url: Optional[str] = None
    status: PaymentStatus
    submitted_at: Optional[str] = None
    verified_by: Optional[str] = None
    verified_at: Optional[str] = None
    created_at: Optional[str] = None


class PrebookingCompletedResponse(BaseModel):
    message: str
    interview_id: str
    payment_id: str


__all__ = [
    "PrebookingPaymentRequest",
    "PaymentRequestCreate",
    "VerifyPaymentRequest",
    "PaymentInstructions",
    "PaymentResponse",
    "PrebookingCompletedResponse",
]
