"""Capacity-safe spot claiming.

Claims for one channel are admitted one at a time through ``ChannelQueues`` and
each runs as a single store transaction that reads the open race with a row
lock, clamps the request to the remaining capacity, writes the entries and the
new remaining count, and closes the race when capacity reaches zero. The read,
the clamping decision and the write therefore never interleave with another
claim, in this process or (through the row lock) in another one.
"""

import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from duck_racing.database import store_transaction
from duck_racing.errors import HolderIneligible, InvalidClaimCount, RaceFull
from duck_racing.models import Entry, Race, RaceState, SipRecord
from duck_racing.services.channel_queue import ChannelQueues
from duck_racing.services.eligibility import EligibilityProvider
from duck_racing.services.race_registry import find_latest_race, find_open_race

logger = logging.getLogger(__name__)


@dataclass
class ClaimResult:
    """Outcome of a successful claim."""

    race: Race
    holder_id: str
    display_name: str
    requested: int
    actual_claimed: int
    was_limited: bool  # request was clamped to the remaining capacity
    remaining_spots: int
    just_closed: bool  # this claim moved the race from OPEN to CLOSED
    became_ready: bool = False  # closing the race also completed its coverage


class ClaimCoordinator:
    """Grants spots in a channel's open race without ever overselling it."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        queues: ChannelQueues,
        eligibility: EligibilityProvider,
        *,
        store_timeout: float | None = None,
    ) -> None:
        self._session_maker = session_maker
        self._queues = queues
        self._eligibility = eligibility
        self._store_timeout = store_timeout

    def _transaction(self) -> AbstractAsyncContextManager[AsyncSession]:
        return store_transaction(self._session_maker, self._store_timeout)

    async def claim_spots(
        self,
        channel_id: str,
        acting_holder: str,
        target_holder: str,
        display_name: str,
        requested_count: int,
    ) -> ClaimResult | None:
        """Claim up to ``requested_count`` spots for ``target_holder``.

        Returns None when the channel has no race to claim into. Raises
        ``RaceFull`` when the latest race is closed or nothing is left.
        """
        if requested_count <= 0:
            raise InvalidClaimCount()
        return await self._claim(
            channel_id, acting_holder, target_holder, display_name, requested_count
        )

    async def claim_remaining(
        self, channel_id: str, holder_id: str, display_name: str
    ) -> ClaimResult | None:
        """Claim every spot still open in the channel's race for ``holder_id``."""
        return await self._claim(channel_id, holder_id, holder_id, display_name, None)

    async def _claim(
        self,
        channel_id: str,
        acting_holder: str,
        target_holder: str,
        display_name: str,
        requested_count: int | None,
    ) -> ClaimResult | None:
        if self._eligibility.is_retired(target_holder):
            logger.info(
                "Rejected claim for retired holder %s in channel %s", target_holder, channel_id
            )
            raise HolderIneligible()

        async with self._queues.admit(channel_id):
            async with self._transaction() as db:
                race = await find_open_race(db, channel_id, for_update=True)
                if race is None:
                    latest = await find_latest_race(db, channel_id)
                    if latest is not None and latest.state == RaceState.CLOSED:
                        raise RaceFull(f'Race "{latest.name}" is already full')
                    return None

                available = race.remaining_spots
                requested = available if requested_count is None else requested_count
                actual = min(requested, available)
                if actual <= 0:
                    raise RaceFull(f"Only {available} spot(s) left!")

                # Re-claiming means the holder has to sip again
                await db.execute(
                    delete(SipRecord).where(
                        SipRecord.race_id == race.id, SipRecord.holder_id == target_holder
                    )
                )
                db.add_all(
                    Entry(race_id=race.id, holder_id=target_holder, display_name=display_name)
                    for _ in range(actual)
                )
                race.remaining_spots = available - actual
                just_closed = race.remaining_spots == 0
                if just_closed:
                    race.state = RaceState.CLOSED

        result = ClaimResult(
            race=race,
            holder_id=target_holder,
            display_name=display_name,
            requested=requested,
            actual_claimed=actual,
            was_limited=actual < requested,
            remaining_spots=race.remaining_spots,
            just_closed=just_closed,
        )
        if result.was_limited:
            logger.info(
                "Claim by %s for %s in race '%s' clamped from %d to %d",
                acting_holder,
                target_holder,
                race.name,
                requested,
                actual,
            )
        if just_closed:
            logger.info(
                "Race '%s' (#%d) in channel %s is full", race.name, race.race_number, channel_id
            )
        return result
