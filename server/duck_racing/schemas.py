"""Pydantic schemas for API requests and responses."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from duck_racing.models import RaceState

# =============================================================================
# Request Schemas
# =============================================================================


class StartRaceRequest(BaseModel):
    """Request to start a new race in a channel."""

    name: str = Field(min_length=1, max_length=100)
    total_spots: int


class ClaimRequest(BaseModel):
    """Request to claim spots in the channel's open race.

    Either ``count`` or ``all_remaining`` must be given. ``target_holder``
    defaults to the acting holder.
    """

    acting_holder: str
    target_holder: str | None = None
    display_name: str = Field(min_length=1, max_length=100)
    count: int | None = None
    all_remaining: bool = False

    @model_validator(mode="after")
    def validate_count(self) -> "ClaimRequest":
        if self.all_remaining:
            if self.count is not None:
                raise ValueError("count cannot be combined with all_remaining")
            if self.target_holder not in (None, self.acting_holder):
                raise ValueError("all_remaining claims are only allowed for the acting holder")
        elif self.count is None:
            raise ValueError("count is required unless all_remaining is set")
        return self


class SipRequest(BaseModel):
    """Request to record a participant's own sip."""

    participant: str


class VouchRequest(BaseModel):
    """Request to vouch for another participant."""

    vouched_by: str
    participant: str


# =============================================================================
# Response Schemas
# =============================================================================


class RaceResponse(BaseModel):
    """Race information in responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    channel_id: str
    race_number: int
    name: str
    total_spots: int
    remaining_spots: int
    state: RaceState
    ready_notified: bool
    created_at: datetime | None = None


class ClaimResponse(BaseModel):
    race: RaceResponse
    holder_id: str
    actual_claimed: int
    was_limited: bool
    remaining_spots: int
    just_closed: bool
    became_ready: bool


class RemovalResponse(BaseModel):
    race: RaceResponse
    holder_id: str
    spots_freed: int
    reopened: bool


class ForceCloseResponse(BaseModel):
    race: RaceResponse
    became_ready: bool


class AckResponse(BaseModel):
    """Outcome of a sip or vouch."""

    race: RaceResponse
    holder_id: str
    vouched_by: str | None
    already_vouched: bool
    became_ready: bool


class HolderStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    holder_id: str
    display_name: str
    spots: int
    sipped: bool
    vouched_by: str | None


class RaceStatusResponse(BaseModel):
    """Remaining capacity plus per-holder counts, sips and vouches."""

    race: RaceResponse
    remaining_spots: int
    total_spots: int
    holders: list[HolderStatusResponse]


class EntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    holder_id: str
    display_name: str
    created_at: datetime | None = None


class UncoveredResponse(BaseModel):
    race: RaceResponse
    holder_ids: list[str]
