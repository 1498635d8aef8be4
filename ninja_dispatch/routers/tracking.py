from fastapi import APIRouter, Depends, HTTPException

from ninja_dispatch.dependencies import get_service
from ninja_dispatch.errors import NinjaDispatchError
from ninja_dispatch.schemas import TrackOrderResponse
from ninja_dispatch.services.ninjavan import NinjaVanService

router = APIRouter(tags=["Tracking"])


@router.get("/track/{tracking_number}", response_model=TrackOrderResponse)
def get_tracking(tracking_number: str, service: NinjaVanService = Depends(get_service)):
    try:
        return service.track_order(tracking_number)
    except NinjaDispatchError as e:
        raise HTTPException(status_code=502, detail=f"Ninja Van: {e}") from e
