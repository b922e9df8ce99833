"""Admin API routes for system-wide maintenance."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from duck_racing.api.helpers import get_dispatcher, get_services
from duck_racing.services import RaceServices
from duck_racing.services.dispatcher import CommandDispatcher

router = APIRouter()


class WipeResponse(BaseModel):
    """Response for a full data wipe."""

    status: str


@router.delete("/data", response_model=WipeResponse)
async def wipe_data(
    services: RaceServices = Depends(get_services),
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> WipeResponse:
    """Delete every race, entry, sip and vouch in every channel."""
    await services.registry.wipe_all()
    dispatcher.pending_wipes.clear()
    return WipeResponse(status="wiped")
