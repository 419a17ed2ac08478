"""
Interview slot related Pydantic schemas.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from mockbook.schemas.common import InterviewType


class CreateSlotRequest(BaseModel):
    start_time: str = Field(..., examples=["2026-11-02T09:00:00+05:30"])  # ISO format datetime string
    end_time: str = Field(..., examples=["2026-11-02T09:40:00+05:30"])
    interview_type: InterviewType = Field(..., examples=["DSA"])


class BatchSlotWindow(BaseModel):
    start: str
    end: str


class CreateBatchSlotsRequest(BaseModel):
    interview_type: InterviewType
    slots: List[BatchSlotWindow] = Field(..., min_length=1)


class SlotResponse(BaseModel):
    id: str
    interviewer_id: str
    start_time: str
    end_time: str
    interview_type: InterviewType
    is_booked: bool
    interview_id: Optional[str] = None
    price: Optional[float] = None  # Annotated from the price catalog on availability listings
    currency: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class SlotImportResponse(BaseModel):
    created: List[SlotResponse]
    errors: List[str] = []


__all__ = [
    "CreateSlotRequest",
    "BatchSlotWindow",
    "CreateBatchSlotsRequest",
    "SlotResponse",
    "SlotImportResponse",
]
