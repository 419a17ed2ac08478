"""
Interview, feedback, rating and price schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field

from mockbook.schemas.common import InterviewStatus, InterviewType


class BookDirectRequest(BaseModel):
    interviewer_id: str
    scheduled_date: str  # ISO datetime string
    duration: Optional[int] = Field(None, ge=1, le=180)
    interview_type: InterviewType = InterviewType.DSA


class UpdateStatusRequest(BaseModel):
    status: InterviewStatus


class RecordingRequest(BaseModel):
    recording_url: str


class FeedbackRequest(BaseModel):
    coding_score: int = Field(..., ge=1, le=5)
    communication_score: int = Field(..., ge=1, le=5)
    problem_solving_score: int = Field(..., ge=1, le=5)
    strengths: str = ""
    areas_of_improvement: str = ""
    additional_comments: Optional[str] = None


class RatingRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: str = Field("", max_length=500)


class RatingResponse(BaseModel):
    id: str
    interview_id: str
    candidate_id: str
    interviewer_id: str
    rating: int
    feedback: str = ""
    created_at: Optional[str] = None


class RatingSummaryResponse(BaseModel):
    average_rating: float
    ratings_count: int


class InterviewResponse(BaseModel):
    id: str
    candidate_id: str
    interviewer_id: str
    slot_id: Optional[str] = None
    interview_type: InterviewType
    scheduled_date: str
    duration: int
    price: float
    currency: str
    status: InterviewStatus
    payment_id: Optional[str] = None
    meeting_link: Optional[str] = None
    recording_url: Optional[str] = None
    cancelled_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class SetPriceRequest(BaseModel):
    price: float = Field(..., gt=0)
    currency: str = "INR"


class PriceResponse(BaseModel):
    interview_type: InterviewType
    price: float
    currency: str
    updated_by: Optional[str] = None
    updated_at: Optional[str] = None


__all__ = [
    "BookDirectRequest",
    "UpdateStatusRequest",
    "RecordingRequest",
    "FeedbackRequest",
    "RatingRequest",
    "RatingResponse",
    "RatingSummaryResponse",
    "InterviewResponse",
    "SetPriceRequest",
    "PriceResponse",
]
