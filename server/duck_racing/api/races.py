"""Per-channel race API routes."""

from fastapi import APIRouter, Depends, HTTPException, status

from duck_racing import messages
from duck_racing.api.helpers import (
    ack_response,
    claim_response,
    get_services,
    race_response,
    removal_response,
    status_response,
)
from duck_racing.discord import fire_announcements
from duck_racing.schemas import (
    AckResponse,
    ClaimRequest,
    ClaimResponse,
    EntryResponse,
    ForceCloseResponse,
    RaceResponse,
    RaceStatusResponse,
    RemovalResponse,
    SipRequest,
    StartRaceRequest,
    UncoveredResponse,
    VouchRequest,
)
from duck_racing.services import RaceServices

router = APIRouter()


# =============================================================================
# Race lifecycle
# =============================================================================


@router.post(
    "/{channel_id}/races", response_model=RaceResponse, status_code=status.HTTP_201_CREATED
)
async def start_race(
    channel_id: str,
    request: StartRaceRequest,
    services: RaceServices = Depends(get_services),
) -> RaceResponse:
    """Start a new race in the channel."""
    race = await services.registry.start_race(channel_id, request.name, request.total_spots)
    return race_response(race)


@router.get("/{channel_id}/races/latest", response_model=RaceResponse)
async def get_latest_race(
    channel_id: str, services: RaceServices = Depends(get_services)
) -> RaceResponse:
    """Most recently created race in the channel, open or closed."""
    race = await services.registry.get_latest_race(channel_id)
    if race is None:
        raise HTTPException(status_code=404, detail="No race found.")
    return race_response(race)


@router.get("/{channel_id}/races/{name}", response_model=RaceResponse)
async def get_race(
    channel_id: str, name: str, services: RaceServices = Depends(get_services)
) -> RaceResponse:
    race = await services.registry.require_race_by_name(channel_id, name)
    return race_response(race)


@router.get("/{channel_id}/races/{name}/status", response_model=RaceStatusResponse)
async def get_race_status(
    channel_id: str, name: str, services: RaceServices = Depends(get_services)
) -> RaceStatusResponse:
    """Remaining capacity plus per-holder counts, sips and vouches."""
    race = await services.registry.require_race_by_name(channel_id, name)
    return status_response(await services.tracker.get_status(race))


@router.get("/{channel_id}/races/{name}/entries", response_model=list[EntryResponse])
async def list_entries(
    channel_id: str, name: str, services: RaceServices = Depends(get_services)
) -> list[EntryResponse]:
    race = await services.registry.require_race_by_name(channel_id, name)
    entries = await services.tracker.list_entries(race)
    return [EntryResponse.model_validate(e) for e in entries]


@router.get("/{channel_id}/races/{name}/uncovered", response_model=UncoveredResponse)
async def list_uncovered(
    channel_id: str, name: str, services: RaceServices = Depends(get_services)
) -> UncoveredResponse:
    """Entrants that have neither sipped nor been vouched for."""
    race = await services.registry.require_race_by_name(channel_id, name)
    holder_ids = await services.tracker.get_uncovered(race)
    return UncoveredResponse(race=race_response(race), holder_ids=holder_ids)


@router.post("/{channel_id}/races/{name}/cancel", response_model=RaceResponse)
async def cancel_race(
    channel_id: str, name: str, services: RaceServices = Depends(get_services)
) -> RaceResponse:
    race = await services.registry.cancel_race(channel_id, name)
    return race_response(race)


@router.post("/{channel_id}/races/{name}/force-close", response_model=ForceCloseResponse)
async def force_close_race(
    channel_id: str, name: str, services: RaceServices = Depends(get_services)
) -> ForceCloseResponse:
    """Close a race early. Announces readiness if every entrant is already covered."""
    race, became_ready = await services.force_close(channel_id, name)
    if became_ready:
        fire_announcements(channel_id, [messages.RACE_READY_ANNOUNCEMENT])
    return ForceCloseResponse(race=race_response(race), became_ready=became_ready)


@router.post("/{channel_id}/races/{name}/reset", response_model=RaceResponse)
async def reset_race(
    channel_id: str, name: str, services: RaceServices = Depends(get_services)
) -> RaceResponse:
    """Drop every entry, sip and vouch and reopen the race at full capacity."""
    race = await services.registry.reset_race(channel_id, name)
    return race_response(race)


# =============================================================================
# Claims
# =============================================================================


@router.post("/{channel_id}/claims", response_model=ClaimResponse)
async def claim_spots(
    channel_id: str,
    request: ClaimRequest,
    services: RaceServices = Depends(get_services),
) -> ClaimResponse:
    """Claim spots in the channel's open race, clamped to what is left."""
    # The request validator leaves count unset exactly when all_remaining is set
    if request.count is None:
        result = await services.claim_remaining(
            channel_id, request.acting_holder, request.display_name
        )
    else:
        result = await services.claim_spots(
            channel_id,
            request.acting_holder,
            request.target_holder or request.acting_holder,
            request.display_name,
            request.count,
        )
    if result is None:
        raise HTTPException(status_code=404, detail="There is no active race in this channel.")
    if result.just_closed:
        announcements = [messages.RACE_FULL_ANNOUNCEMENT]
        if result.became_ready:
            announcements.append(messages.RACE_READY_ANNOUNCEMENT)
        fire_announcements(channel_id, announcements)
    return claim_response(result)


@router.delete("/{channel_id}/holders/{holder_id}", response_model=RemovalResponse)
async def remove_holder(
    channel_id: str, holder_id: str, services: RaceServices = Depends(get_services)
) -> RemovalResponse:
    """Remove every entry of a holder from the current race and reopen it."""
    result = await services.registry.remove_holder(channel_id, holder_id)
    return removal_response(result)


# =============================================================================
# Acknowledgments
# =============================================================================


@router.post("/{channel_id}/sips", response_model=AckResponse)
async def record_sip(
    channel_id: str,
    request: SipRequest,
    services: RaceServices = Depends(get_services),
) -> AckResponse:
    result = await services.tracker.record_sip(channel_id, request.participant)
    if result.became_ready:
        fire_announcements(channel_id, [messages.RACE_READY_ANNOUNCEMENT])
    return ack_response(result)


@router.post("/{channel_id}/vouches", response_model=AckResponse)
async def record_vouch(
    channel_id: str,
    request: VouchRequest,
    services: RaceServices = Depends(get_services),
) -> AckResponse:
    result = await services.tracker.record_vouch(
        channel_id, request.vouched_by, request.participant
    )
    if result.became_ready:
        fire_announcements(channel_id, [messages.RACE_READY_ANNOUNCEMENT])
    return ack_response(result)
