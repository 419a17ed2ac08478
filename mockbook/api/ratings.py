from typing import List

from fastapi import APIRouter, Depends, status

from mockbook.schemas.common import AuthContext
from mockbook.schemas.interviews import RatingRequest, RatingResponse, RatingSummaryResponse
from mockbook.services.container import ServiceContainer, get_container
from mockbook.utils.auth_dependencies import get_current_actor

router = APIRouter(tags=["Ratings"])


@router.post("/interviews/{interview_id}/rating", response_model=RatingResponse, status_code=status.HTTP_201_CREATED)
async def rate_interview(
    interview_id: str,
    request: RatingRequest,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    """Candidate rates the interviewer of a completed interview."""
    return services.booking.submit_rating(actor, interview_id, request.rating, request.feedback)


@router.get("/interviewers/{interviewer_id}/ratings", response_model=List[RatingResponse])
async def list_interviewer_ratings(
    interviewer_id: str,
    services: ServiceContainer = Depends(get_container),
):
    return services.booking.list_interviewer_ratings(interviewer_id)


@router.get("/interviewers/{interviewer_id}/ratings/summary", response_model=RatingSummaryResponse)
async def interviewer_rating_summary(
    interviewer_id: str,
    services: ServiceContainer = Depends(get_container),
):
    return services.booking.interviewer_rating_summary(interviewer_id)


@router.get("/admin/ratings", response_model=List[RatingResponse])
async def list_all_ratings(
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    return services.booking.list_all_ratings(actor)
