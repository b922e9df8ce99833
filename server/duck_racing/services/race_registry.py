"""Race lifecycle: start, lookups, cancel, force close, reset, holder removal."""

import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from duck_racing.database import store_transaction
from duck_racing.errors import (
    ConcurrentModification,
    DuplicateActiveRace,
    InvalidCapacity,
    InvalidRaceName,
    NoEntries,
    RaceNotFound,
)
from duck_racing.models import Entry, Race, RaceState, SipRecord, VouchRecord
from duck_racing.services.channel_queue import ChannelQueues

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100


def normalize_race_name(name: str) -> str:
    """Race names are case-insensitive and stored lower-cased."""
    key = name.strip().lower()
    if not key or len(key) > MAX_NAME_LENGTH or any(c.isspace() for c in key):
        raise InvalidRaceName()
    return key


# =============================================================================
# Lookups (run inside a caller-provided session)
# =============================================================================


async def find_open_race(
    db: AsyncSession, channel_id: str, *, for_update: bool = False
) -> Race | None:
    """Open race with the highest sequence number in the channel."""
    query = (
        select(Race)
        .where(Race.channel_id == channel_id, Race.state == RaceState.OPEN)
        .order_by(Race.race_number.desc())
        .limit(1)
    )
    if for_update:
        query = query.with_for_update()
    return (await db.execute(query)).scalar_one_or_none()


async def find_latest_race(
    db: AsyncSession, channel_id: str, *, for_update: bool = False
) -> Race | None:
    """Most recent race in the channel regardless of state."""
    query = (
        select(Race)
        .where(Race.channel_id == channel_id)
        .order_by(Race.race_number.desc(), Race.created_at.desc())
        .limit(1)
    )
    if for_update:
        query = query.with_for_update()
    return (await db.execute(query)).scalar_one_or_none()


async def find_race_by_name(
    db: AsyncSession,
    channel_id: str,
    name: str,
    *,
    open_only: bool = False,
    for_update: bool = False,
) -> Race | None:
    """Latest race with this (case-insensitive) name in the channel."""
    query = select(Race).where(Race.channel_id == channel_id, Race.name == name)
    if open_only:
        query = query.where(Race.state == RaceState.OPEN)
    query = query.order_by(Race.race_number.desc(), Race.created_at.desc()).limit(1)
    if for_update:
        query = query.with_for_update()
    return (await db.execute(query)).scalar_one_or_none()


# =============================================================================
# Registry
# =============================================================================


@dataclass
class RemovalResult:
    """Outcome of removing every spot of one holder from the current race."""

    race: Race
    holder_id: str
    spots_freed: int
    reopened: bool


class RaceRegistry:
    """Owns race identity and state transitions.

    Every mutating operation runs inside the channel's admission queue and a
    single store transaction that reads the race row with a row lock.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        queues: ChannelQueues,
        *,
        store_timeout: float | None = None,
    ) -> None:
        self._session_maker = session_maker
        self._queues = queues
        self._store_timeout = store_timeout

    def _transaction(self) -> AbstractAsyncContextManager[AsyncSession]:
        return store_transaction(self._session_maker, self._store_timeout)

    async def start_race(self, channel_id: str, name: str, total_spots: int) -> Race:
        """Create a new open race with the next sequence number of the channel."""
        key = normalize_race_name(name)
        if total_spots <= 0:
            raise InvalidCapacity()

        async with self._queues.admit(channel_id):
            try:
                async with self._transaction() as db:
                    if await find_race_by_name(db, channel_id, key, open_only=True):
                        raise DuplicateActiveRace()
                    last_number = await db.scalar(
                        select(func.max(Race.race_number)).where(Race.channel_id == channel_id)
                    )
                    race = Race(
                        channel_id=channel_id,
                        race_number=(last_number or 0) + 1,
                        name=key,
                        total_spots=total_spots,
                        remaining_spots=total_spots,
                        state=RaceState.OPEN,
                        ready_notified=False,
                    )
                    db.add(race)
                    await db.flush()
                    await db.refresh(race)
            except IntegrityError as e:
                raise ConcurrentModification() from e

        logger.info(
            "Race '%s' (#%d) started in channel %s with %d spots",
            race.name,
            race.race_number,
            channel_id,
            total_spots,
        )
        return race

    async def get_open_race(self, channel_id: str) -> Race | None:
        async with self._transaction() as db:
            return await find_open_race(db, channel_id)

    async def get_latest_race(self, channel_id: str) -> Race | None:
        async with self._transaction() as db:
            return await find_latest_race(db, channel_id)

    async def get_race_by_name(self, channel_id: str, name: str) -> Race | None:
        key = normalize_race_name(name)
        async with self._transaction() as db:
            return await find_race_by_name(db, channel_id, key)

    async def require_race_by_name(self, channel_id: str, name: str) -> Race:
        race = await self.get_race_by_name(channel_id, name)
        if race is None:
            raise RaceNotFound()
        return race

    async def cancel_race(self, channel_id: str, name: str) -> Race:
        """Close an open race without handing its remaining spots to anyone."""
        key = normalize_race_name(name)
        async with self._queues.admit(channel_id):
            async with self._transaction() as db:
                race = await find_race_by_name(
                    db, channel_id, key, open_only=True, for_update=True
                )
                if race is None:
                    raise RaceNotFound(
                        f'Could not find an active race named "{key}" in this channel'
                    )
                race.state = RaceState.CLOSED

        logger.info("Race '%s' (#%d) cancelled in channel %s", key, race.race_number, channel_id)
        return race

    async def force_close(self, channel_id: str, name: str) -> Race:
        """Close an open race immediately; its remaining spots are forfeited."""
        key = normalize_race_name(name)
        async with self._queues.admit(channel_id):
            async with self._transaction() as db:
                race = await find_race_by_name(
                    db, channel_id, key, open_only=True, for_update=True
                )
                if race is None:
                    raise RaceNotFound(
                        f'Could not find an active race named "{key}" in this channel'
                    )
                forfeited = race.remaining_spots
                race.remaining_spots = 0
                race.state = RaceState.CLOSED

        logger.info(
            "Race '%s' (#%d) force closed in channel %s (%d spot(s) forfeited)",
            key,
            race.race_number,
            channel_id,
            forfeited,
        )
        return race

    async def reset_race(self, channel_id: str, name: str) -> Race:
        """Clear entries, sips and vouches and reopen the race at full capacity."""
        key = normalize_race_name(name)
        async with self._queues.admit(channel_id):
            try:
                async with self._transaction() as db:
                    race = await find_race_by_name(db, channel_id, key, for_update=True)
                    if race is None:
                        raise RaceNotFound()
                    await db.execute(delete(Entry).where(Entry.race_id == race.id))
                    await db.execute(delete(SipRecord).where(SipRecord.race_id == race.id))
                    await db.execute(delete(VouchRecord).where(VouchRecord.race_id == race.id))
                    race.remaining_spots = race.total_spots
                    race.state = RaceState.OPEN
                    race.ready_notified = False
                    await db.flush()
            except IntegrityError as e:
                raise ConcurrentModification() from e

        logger.info("Race '%s' (#%d) reset in channel %s", key, race.race_number, channel_id)
        return race

    async def remove_holder(self, channel_id: str, holder_id: str) -> RemovalResult:
        """Drop every spot of a holder from the channel's current race and reopen it."""
        async with self._queues.admit(channel_id):
            try:
                async with self._transaction() as db:
                    race = await find_latest_race(db, channel_id, for_update=True)
                    if race is None:
                        raise RaceNotFound("No race found.")
                    owned = await db.scalar(
                        select(func.count())
                        .select_from(Entry)
                        .where(Entry.race_id == race.id, Entry.holder_id == holder_id)
                    )
                    if not owned:
                        raise NoEntries()
                    await db.execute(
                        delete(Entry).where(Entry.race_id == race.id, Entry.holder_id == holder_id)
                    )
                    was_closed = race.state == RaceState.CLOSED
                    race.remaining_spots += owned
                    race.state = RaceState.OPEN
                    await db.flush()
            except IntegrityError as e:
                raise ConcurrentModification() from e

        logger.info(
            "Removed %d spot(s) of holder %s from race '%s' (#%d) in channel %s%s",
            owned,
            holder_id,
            race.name,
            race.race_number,
            channel_id,
            " (reopened)" if was_closed else "",
        )
        return RemovalResult(race=race, holder_id=holder_id, spots_freed=owned, reopened=was_closed)

    async def wipe_all(self) -> None:
        """Delete every race, entry, sip and vouch. Administrative escape hatch."""
        async with self._transaction() as db:
            await db.execute(delete(VouchRecord))
            await db.execute(delete(SipRecord))
            await db.execute(delete(Entry))
            await db.execute(delete(Race))
        logger.warning("All race data wiped")
