"""Tests for the race registry (start, lookups, cancel, force close, reset, removal)."""

import pytest
from sqlalchemy import func, select

from duck_racing.errors import (
    DuplicateActiveRace,
    InvalidCapacity,
    InvalidRaceName,
    NoEntries,
    RaceNotFound,
)
from duck_racing.models import Entry, Race, RaceState, SipRecord, VouchRecord
from duck_racing.services import normalize_race_name

CHANNEL = "chan-1"


async def _count(session_maker, model) -> int:
    async with session_maker() as db:
        return await db.scalar(select(func.count()).select_from(model))


# =============================================================================
# Name normalization
# =============================================================================


def test_normalize_race_name_lowercases_and_strips():
    assert normalize_race_name("  Sunday  ") == "sunday"


@pytest.mark.parametrize("name", ["", "   ", "two words", "x" * 101])
def test_normalize_race_name_rejects_invalid(name):
    with pytest.raises(InvalidRaceName):
        normalize_race_name(name)


# =============================================================================
# Start
# =============================================================================


@pytest.mark.asyncio
async def test_start_race_creates_open_race(services):
    race = await services.registry.start_race(CHANNEL, "Derby", 5)

    assert race.name == "derby"
    assert race.race_number == 1
    assert race.total_spots == 5
    assert race.remaining_spots == 5
    assert race.state == RaceState.OPEN
    assert race.ready_notified is False


@pytest.mark.asyncio
async def test_race_numbers_increase_per_channel(services):
    first = await services.registry.start_race(CHANNEL, "one", 2)
    second = await services.registry.start_race(CHANNEL, "two", 2)
    other = await services.registry.start_race("chan-2", "one", 2)

    assert (first.race_number, second.race_number) == (1, 2)
    assert other.race_number == 1


@pytest.mark.asyncio
async def test_start_race_rejects_duplicate_open_name(services):
    await services.registry.start_race(CHANNEL, "derby", 5)
    with pytest.raises(DuplicateActiveRace):
        await services.registry.start_race(CHANNEL, "DERBY", 3)


@pytest.mark.asyncio
async def test_same_name_allowed_in_other_channel(services):
    await services.registry.start_race(CHANNEL, "derby", 5)
    race = await services.registry.start_race("chan-2", "derby", 5)
    assert race.channel_id == "chan-2"


@pytest.mark.asyncio
async def test_same_name_allowed_after_cancel(services):
    await services.registry.start_race(CHANNEL, "derby", 5)
    await services.registry.cancel_race(CHANNEL, "derby")

    again = await services.registry.start_race(CHANNEL, "derby", 4)
    assert again.race_number == 2
    assert again.is_open


@pytest.mark.asyncio
@pytest.mark.parametrize("spots", [0, -3])
async def test_start_race_rejects_non_positive_capacity(services, spots):
    with pytest.raises(InvalidCapacity):
        await services.registry.start_race(CHANNEL, "derby", spots)


@pytest.mark.asyncio
async def test_start_race_rejects_invalid_name(services):
    with pytest.raises(InvalidRaceName):
        await services.registry.start_race(CHANNEL, "two words", 3)


# =============================================================================
# Lookups
# =============================================================================


@pytest.mark.asyncio
async def test_lookups_on_empty_channel(services):
    assert await services.registry.get_open_race(CHANNEL) is None
    assert await services.registry.get_latest_race(CHANNEL) is None
    assert await services.registry.get_race_by_name(CHANNEL, "derby") is None
    with pytest.raises(RaceNotFound):
        await services.registry.require_race_by_name(CHANNEL, "derby")


@pytest.mark.asyncio
async def test_latest_race_includes_closed_races(services):
    await services.registry.start_race(CHANNEL, "one", 2)
    second = await services.registry.start_race(CHANNEL, "two", 2)
    await services.registry.cancel_race(CHANNEL, "two")

    latest = await services.registry.get_latest_race(CHANNEL)
    assert latest.id == second.id
    assert latest.state == RaceState.CLOSED

    open_race = await services.registry.get_open_race(CHANNEL)
    assert open_race.name == "one"


@pytest.mark.asyncio
async def test_race_lookup_by_name_is_case_insensitive(services):
    race = await services.registry.start_race(CHANNEL, "derby", 3)
    found = await services.registry.get_race_by_name(CHANNEL, "Derby")
    assert found.id == race.id


# =============================================================================
# Cancel / force close
# =============================================================================


@pytest.mark.asyncio
async def test_cancel_race_closes_it(services):
    await services.registry.start_race(CHANNEL, "derby", 3)
    race = await services.registry.cancel_race(CHANNEL, "derby")

    assert race.state == RaceState.CLOSED
    assert await services.registry.get_open_race(CHANNEL) is None


@pytest.mark.asyncio
async def test_cancel_unknown_race(services):
    with pytest.raises(RaceNotFound, match='active race named "nope"'):
        await services.registry.cancel_race(CHANNEL, "nope")


@pytest.mark.asyncio
async def test_cancel_already_closed_race(services):
    await services.registry.start_race(CHANNEL, "derby", 3)
    await services.registry.cancel_race(CHANNEL, "derby")
    with pytest.raises(RaceNotFound):
        await services.registry.cancel_race(CHANNEL, "derby")


@pytest.mark.asyncio
async def test_force_close_forfeits_remaining_spots(services):
    await services.registry.start_race(CHANNEL, "derby", 5)
    await services.coordinator.claim_spots(CHANNEL, "alice", "alice", "Alice", 2)

    race = await services.registry.force_close(CHANNEL, "derby")
    assert race.state == RaceState.CLOSED
    assert race.remaining_spots == 0


@pytest.mark.asyncio
async def test_force_close_unknown_race(services):
    with pytest.raises(RaceNotFound):
        await services.registry.force_close(CHANNEL, "derby")


# =============================================================================
# Reset
# =============================================================================


@pytest.mark.asyncio
async def test_reset_clears_entries_and_reopens(services, session_maker):
    await services.registry.start_race(CHANNEL, "derby", 3)
    await services.coordinator.claim_spots(CHANNEL, "alice", "alice", "Alice", 2)
    await services.coordinator.claim_spots(CHANNEL, "bob", "bob", "Bob", 1)
    await services.tracker.record_sip(CHANNEL, "alice")
    await services.tracker.record_vouch(CHANNEL, "alice", "bob")

    race = await services.registry.reset_race(CHANNEL, "derby")

    assert race.state == RaceState.OPEN
    assert race.remaining_spots == 3
    assert race.ready_notified is False
    assert await _count(session_maker, Entry) == 0
    assert await _count(session_maker, SipRecord) == 0
    assert await _count(session_maker, VouchRecord) == 0


@pytest.mark.asyncio
async def test_reset_unknown_race(services):
    with pytest.raises(RaceNotFound):
        await services.registry.reset_race(CHANNEL, "derby")


# =============================================================================
# Holder removal
# =============================================================================


@pytest.mark.asyncio
async def test_remove_holder_frees_spots_and_reopens(services):
    await services.registry.start_race(CHANNEL, "derby", 3)
    await services.coordinator.claim_spots(CHANNEL, "alice", "alice", "Alice", 1)
    await services.coordinator.claim_spots(CHANNEL, "bob", "bob", "Bob", 2)

    result = await services.registry.remove_holder(CHANNEL, "bob")

    assert result.spots_freed == 2
    assert result.reopened is True
    assert result.race.state == RaceState.OPEN
    assert result.race.remaining_spots == 2


@pytest.mark.asyncio
async def test_remove_holder_from_open_race(services):
    await services.registry.start_race(CHANNEL, "derby", 5)
    await services.coordinator.claim_spots(CHANNEL, "alice", "alice", "Alice", 2)

    result = await services.registry.remove_holder(CHANNEL, "alice")
    assert result.reopened is False
    assert result.race.remaining_spots == 5


@pytest.mark.asyncio
async def test_remove_holder_without_entries(services):
    await services.registry.start_race(CHANNEL, "derby", 3)
    with pytest.raises(NoEntries):
        await services.registry.remove_holder(CHANNEL, "alice")


@pytest.mark.asyncio
async def test_remove_holder_without_race(services):
    with pytest.raises(RaceNotFound):
        await services.registry.remove_holder(CHANNEL, "alice")


# =============================================================================
# Wipe
# =============================================================================


@pytest.mark.asyncio
async def test_wipe_all_deletes_everything(services, session_maker):
    await services.registry.start_race(CHANNEL, "derby", 2)
    await services.registry.start_race("chan-2", "derby", 2)
    await services.coordinator.claim_spots(CHANNEL, "alice", "alice", "Alice", 2)
    await services.tracker.record_sip(CHANNEL, "alice")

    await services.registry.wipe_all()

    for model in (Race, Entry, SipRecord, VouchRecord):
        assert await _count(session_maker, model) == 0
