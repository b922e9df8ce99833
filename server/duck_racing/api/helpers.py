"""Shared API helpers: service dependencies, response conversion, error mapping."""

from fastapi import Request, status
from fastapi.responses import JSONResponse

from duck_racing.errors import ErrorKind, RaceError
from duck_racing.models import Race
from duck_racing.schemas import (
    AckResponse,
    ClaimResponse,
    HolderStatusResponse,
    RaceResponse,
    RaceStatusResponse,
    RemovalResponse,
)
from duck_racing.services import (
    AckResult,
    ClaimResult,
    RaceServices,
    RaceStatusView,
    RemovalResult,
)
from duck_racing.services.dispatcher import CommandDispatcher

ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.INVALID_ARGUMENT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.RACE_FULL: status.HTTP_409_CONFLICT,
    ErrorKind.HOLDER_INELIGIBLE: status.HTTP_403_FORBIDDEN,
    ErrorKind.BUSY: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def race_error_response(request: Request, exc: RaceError) -> JSONResponse:
    """Render a RaceError with the HTTP status of its kind."""
    headers = {"Retry-After": "1"} if exc.retryable or exc.kind == ErrorKind.BUSY else None
    return JSONResponse(
        status_code=ERROR_STATUS_CODES[exc.kind],
        content={"detail": exc.message, "kind": exc.kind.value, "retryable": exc.retryable},
        headers=headers,
    )


def get_services(request: Request) -> RaceServices:
    """Dependency returning the process-wide race services."""
    services: RaceServices = request.app.state.services
    return services


def get_dispatcher(request: Request) -> CommandDispatcher:
    """Dependency returning the process-wide command dispatcher."""
    dispatcher: CommandDispatcher = request.app.state.dispatcher
    return dispatcher


def race_response(race: Race) -> RaceResponse:
    return RaceResponse.model_validate(race)


def claim_response(result: ClaimResult) -> ClaimResponse:
    return ClaimResponse(
        race=race_response(result.race),
        holder_id=result.holder_id,
        actual_claimed=result.actual_claimed,
        was_limited=result.was_limited,
        remaining_spots=result.remaining_spots,
        just_closed=result.just_closed,
        became_ready=result.became_ready,
    )


def removal_response(result: RemovalResult) -> RemovalResponse:
    return RemovalResponse(
        race=race_response(result.race),
        holder_id=result.holder_id,
        spots_freed=result.spots_freed,
        reopened=result.reopened,
    )


def ack_response(result: AckResult) -> AckResponse:
    return AckResponse(
        race=race_response(result.race),
        holder_id=result.holder_id,
        vouched_by=result.vouched_by,
        already_vouched=result.already_vouched,
        became_ready=result.became_ready,
    )


def status_response(view: RaceStatusView) -> RaceStatusResponse:
    return RaceStatusResponse(
        race=race_response(view.race),
        remaining_spots=view.remaining_spots,
        total_spots=view.total_spots,
        holders=[HolderStatusResponse.model_validate(h) for h in view.holders],
    )
