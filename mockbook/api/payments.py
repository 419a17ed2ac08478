from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from mockbook.schemas.common import AuthContext
from mockbook.schemas.payments import (
    PaymentInstructions,
    PaymentRequestCreate,
    PaymentResponse,
    PrebookingCompletedResponse,
    PrebookingPaymentRequest,
    VerifyPaymentRequest,
)
from mockbook.services.container import ServiceContainer, get_container
from mockbook.utils.auth_dependencies import get_current_actor
from mockbook.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Payments"])


async def _upload_image(services: ServiceContainer, file: UploadFile, folder: str) -> str:
    content = await file.read()
    return services.storage.upload(content, file.content_type, folder)


@router.put("/users/me/payment-details")
async def set_payment_details(
    upi_id: str = Form(...),
    qr_code: Optional[UploadFile] = File(None),
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    """Interviewer's UPI id and QR code, shown to candidates when they pay."""
    qr_code_url = await _upload_image(services, qr_code, "qr-codes") if qr_code else None
    user = services.booking.set_payment_details(actor, upi_id, qr_code_url)
    return {"upi_id": user.get("upi_id"), "qr_code_url": user.get("qr_code_url")}


@router.post("/payments/prebooking", response_model=PaymentInstructions)
async def initiate_prebooking_payment(
    request: PrebookingPaymentRequest,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    return services.booking.initiate_prebooking_payment(actor, request.slot_id)


@router.post("/payments/prebooking/{payment_id}/complete", response_model=PrebookingCompletedResponse)
async def complete_prebooking_payment(
    payment_id: str,
    slot_id: str = Form(...),
    transaction_id: str = Form(...),
    screenshot: UploadFile = File(...),
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    """Upload UPI proof for a pre-booking payment and book the slot."""
    services.booking.check_prebooking_completion(actor, payment_id, slot_id)
    screenshot_url = await _upload_image(services, screenshot, "payment-screenshots")
    result = services.booking.complete_prebooking_payment(actor, payment_id, transaction_id, screenshot_url, slot_id)
    return {
        "message": "Payment submitted and interview booked. Awaiting payment verification.",
        "interview_id": result["interview"]["id"],
        "payment_id": result["payment"]["id"],
    }


@router.post("/payments/request", response_model=PaymentInstructions)
async def create_payment_request(
    request: PaymentRequestCreate,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    return services.booking.create_payment_request(actor, request.interview_id)


@router.post("/payments/{payment_id}/proof", response_model=PaymentResponse)
async def submit_payment_proof(
    payment_id: str,
    transaction_id: str = Form(...),
    screenshot: UploadFile = File(...),
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    services.booking.check_payment_proof(actor, payment_id)
    screenshot_url = await _upload_image(services, screenshot, "payment-screenshots")
    return services.booking.submit_payment_proof(actor, payment_id, transaction_id, screenshot_url)


@router.post("/payments/verify", response_model=PaymentResponse)
async def verify_payment(
    request: VerifyPaymentRequest,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    return services.booking.verify_payment(actor, request.payment_id, request.verified)


@router.post("/admin/payments/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment(
    payment_id: str,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    return services.booking.refund_payment(actor, payment_id)
