from typing import List

from fastapi import APIRouter, Depends

from mockbook.schemas.common import AuthContext, InterviewType
from mockbook.schemas.interviews import PriceResponse, SetPriceRequest
from mockbook.services.container import ServiceContainer, get_container
from mockbook.utils.auth_dependencies import get_current_actor

router = APIRouter(tags=["Prices"])


@router.get("/prices", response_model=List[PriceResponse])
async def list_prices(services: ServiceContainer = Depends(get_container)):
    return services.prices.list_prices()


@router.put("/admin/prices/{interview_type}", response_model=PriceResponse)
async def set_price(
    interview_type: InterviewType,
    request: SetPriceRequest,
    actor: AuthContext = Depends(get_current_actor),
    services: ServiceContainer = Depends(get_container),
):
    return services.booking.set_price(actor, interview_type, request.price, request.currency)
