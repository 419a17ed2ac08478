from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from mockbook.schemas.common import AuthContext
from mockbook.schemas.slots import (
    CreateSlotRequest,
    CreateBatchSlotsRequest,
    SlotResponse,
    SlotImportResponse,
)
from mockbook.services.container import ServiceContainer, get_container
from mockbook.utils.auth_dependencies import get_current_actor
from mockbook.utils.logger import get_logger

logger = get_logger(__name__)

# Slot management (interviewers/admins) and public availability
router = APIRouter(tags=["Slots"])


@router.post("/slots", response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
async def create_slot(
    request: CreateSlotRequest,
    interviewer_id: Optional[str] = None,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    """
    Create a new interview slot.

    Interviewers create slots for themselves; admins pass `interviewer_id`.
    """
    return services.booking.create_slot(
        actor, request.start_time, request.end_time, request.interview_type, interviewer_id=interviewer_id
    )


@router.post("/slots/batch", response_model=List[SlotResponse], status_code=status.HTTP_201_CREATED)
async def create_slots_batch(
    request: CreateBatchSlotsRequest,
    interviewer_id: Optional[str] = None,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    windows = [(w.start, w.end) for w in request.slots]
    return services.booking.create_batch(actor, request.interview_type, windows, interviewer_id=interviewer_id)


@router.post("/admin/slots/import", response_model=SlotImportResponse)
async def import_slots(
    file: UploadFile = File(...),
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    """Bulk-create slots from a CSV (interviewer_email, start_time, end_time, interview_type)."""
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only CSV files are supported")
    content = await file.read()
    result = services.booking.import_slots(actor, content)
    logger.info(f"[API] Slot import by {actor.user_id}: {len(result['created'])} created, {len(result['errors'])} errors")
    return result


@router.get("/slots/available", response_model=List[SlotResponse])
async def list_available_slots(
    interviewer_id: Optional[str] = None,
    interview_type: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    services: ServiceContainer = Depends(get_container),
):
    """Unbooked slots with their current price. Public."""
    return services.slots.list_available(
        interviewer_id=interviewer_id,
        interview_type=interview_type,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/slots/mine", response_model=List[SlotResponse])
async def list_my_slots(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    return services.slots.list_for_interviewer(actor.user_id, start_date=start_date, end_date=end_date)


@router.delete("/slots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slot(
    slot_id: str,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    services.booking.delete_slot(actor, slot_id)
