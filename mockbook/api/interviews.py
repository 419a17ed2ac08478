from typing import List, Optional

from fastapi import APIRouter, Depends, status

from mockbook.schemas.common import AuthContext
from mockbook.schemas.interviews import (
    BookDirectRequest,
    FeedbackRequest,
    InterviewResponse,
    RecordingRequest,
    UpdateStatusRequest,
)
from mockbook.schemas.payments import PaymentResponse
from mockbook.services.container import ServiceContainer, get_container
from mockbook.utils.auth_dependencies import get_current_actor

router = APIRouter(tags=["Interviews"])


@router.post("/interviews", response_model=InterviewResponse, status_code=status.HTTP_201_CREATED)
async def book_interview(
    request: BookDirectRequest,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    """Book an interviewer directly; pay afterwards via /payments/request."""
    return services.booking.book_direct(
        actor,
        request.interviewer_id,
        request.scheduled_date,
        duration=request.duration,
        interview_type=request.interview_type,
    )


@router.get("/interviews", response_model=List[InterviewResponse])
async def list_my_interviews(
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    return services.booking.list_my_interviews(actor)


@router.get("/interviews/{interview_id}", response_model=InterviewResponse)
async def get_interview(
    interview_id: str,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    return services.booking.get_interview(actor, interview_id)


@router.get("/interviews/{interview_id}/payment", response_model=Optional[PaymentResponse])
async def get_interview_payment(
    interview_id: str,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    return services.booking.get_payment_for_interview(actor, interview_id)


@router.post("/interviews/{interview_id}/cancel", response_model=InterviewResponse)
async def cancel_interview(
    interview_id: str,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    return services.booking.cancel(actor, interview_id)


@router.patch("/interviews/{interview_id}/status", response_model=InterviewResponse)
async def update_interview_status(
    interview_id: str,
    request: UpdateStatusRequest,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    return services.booking.update_status(actor, interview_id, request.status)


@router.post("/interviews/{interview_id}/feedback")
async def submit_feedback(
    interview_id: str,
    request: FeedbackRequest,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    result = services.booking.submit_feedback(actor, interview_id, request.model_dump())
    return {"message": "Feedback submitted", "interview_id": interview_id, "status": result["interview"]["status"]}


@router.post("/interviews/{interview_id}/recording", response_model=InterviewResponse)
async def add_recording(
    interview_id: str,
    request: RecordingRequest,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    return services.booking.add_recording(actor, interview_id, request.recording_url)
