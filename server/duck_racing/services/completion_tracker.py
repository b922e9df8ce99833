"""Sip/vouch acknowledgments and the exactly-once "race ready" signal.

A race is ready once it is closed and every distinct entrant is covered by a
sip or a vouch. Sips and vouches do not go through the channel queue: duplicate
acknowledgments are stopped by the primary keys of ``sips`` and ``vouches``,
and the ready announcement is claimed with a conditional UPDATE on
``races.ready_notified`` so only one caller can ever win it.
"""

import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from duck_racing.database import store_transaction
from duck_racing.errors import AlreadySipped, NotAParticipant, RaceNotFound, SelfVouchNotAllowed
from duck_racing.models import Entry, Race, RaceState, SipRecord, VouchRecord
from duck_racing.services.race_registry import find_latest_race

logger = logging.getLogger(__name__)


@dataclass
class AckResult:
    """Outcome of a sip or vouch."""

    race: Race
    holder_id: str
    vouched_by: str | None = None
    already_vouched: bool = False
    became_ready: bool = False


@dataclass
class HolderStatus:
    holder_id: str
    display_name: str
    spots: int
    sipped: bool = False
    vouched_by: str | None = None

    @property
    def covered(self) -> bool:
        return self.sipped or self.vouched_by is not None


@dataclass
class RaceStatusView:
    """Snapshot of a race: capacity plus per-holder counts and coverage."""

    race: Race
    remaining_spots: int
    total_spots: int
    holders: list[HolderStatus] = field(default_factory=list)

    @property
    def per_holder_counts(self) -> dict[str, int]:
        return {h.holder_id: h.spots for h in self.holders}

    @property
    def sip_status(self) -> dict[str, bool]:
        return {h.holder_id: h.sipped for h in self.holders}

    @property
    def vouch_status(self) -> dict[str, str | None]:
        return {h.holder_id: h.vouched_by for h in self.holders}


class CompletionTracker:
    """Records acknowledgments against a channel's latest race and detects readiness."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        store_timeout: float | None = None,
    ) -> None:
        self._session_maker = session_maker
        self._store_timeout = store_timeout

    def _transaction(self) -> AbstractAsyncContextManager[AsyncSession]:
        return store_transaction(self._session_maker, self._store_timeout)

    async def _current_race(self, db: AsyncSession, channel_id: str) -> Race:
        race = await find_latest_race(db, channel_id)
        if race is None:
            raise RaceNotFound("No race found.")
        return race

    async def _require_participant(self, db: AsyncSession, race: Race, holder_id: str) -> None:
        held = await db.scalar(
            select(func.count())
            .select_from(Entry)
            .where(Entry.race_id == race.id, Entry.holder_id == holder_id)
        )
        if not held:
            raise NotAParticipant()

    async def record_sip(self, channel_id: str, participant: str) -> AckResult:
        """Record a participant's own acknowledgment in the channel's latest race."""
        async with self._transaction() as db:
            race = await self._current_race(db, channel_id)
            await self._require_participant(db, race, participant)
            if await db.get(SipRecord, (race.id, participant)) is not None:
                raise AlreadySipped("You already sipped this race.")
            db.add(SipRecord(race_id=race.id, holder_id=participant))
            try:
                await db.flush()
            except IntegrityError as e:
                # A concurrent sip from the same participant committed first
                raise AlreadySipped("You already sipped this race.") from e

        logger.info("Holder %s sipped race '%s' (#%d)", participant, race.name, race.race_number)
        result = AckResult(race=race, holder_id=participant)
        result.became_ready = await self.check_ready(race)
        return result

    async def record_vouch(self, channel_id: str, vouched_by: str, participant: str) -> AckResult:
        """Record a third-party acknowledgment for ``participant``."""
        if vouched_by == participant:
            raise SelfVouchNotAllowed()

        async with self._transaction() as db:
            race = await self._current_race(db, channel_id)

        try:
            async with self._transaction() as db:
                await self._require_participant(db, race, participant)
                if await db.get(SipRecord, (race.id, participant)) is not None:
                    raise AlreadySipped("User already sipped.")
                existing = await db.get(VouchRecord, (race.id, participant))
                if existing is not None:
                    return AckResult(
                        race=race,
                        holder_id=participant,
                        vouched_by=existing.vouched_by,
                        already_vouched=True,
                    )
                db.add(VouchRecord(race_id=race.id, holder_id=participant, vouched_by=vouched_by))
                await db.flush()
        except IntegrityError:
            # A concurrent vouch for the same participant committed first
            return AckResult(race=race, holder_id=participant, already_vouched=True)

        logger.info(
            "Holder %s vouched for %s in race '%s' (#%d)",
            vouched_by,
            participant,
            race.name,
            race.race_number,
        )
        result = AckResult(race=race, holder_id=participant, vouched_by=vouched_by)
        result.became_ready = await self.check_ready(race)
        return result

    async def check_ready(self, race: Race) -> bool:
        """Flip ``ready_notified`` if the closed race is fully covered.

        Returns True only for the single caller that performed the flip; that
        caller is responsible for announcing the race as ready.
        """
        async with self._transaction() as db:
            current = await db.get(Race, race.id, populate_existing=True)
            if current is None or current.state != RaceState.CLOSED or current.ready_notified:
                return False

            entrants = set(
                await db.scalars(select(Entry.holder_id).where(Entry.race_id == race.id).distinct())
            )
            sipped = set(
                await db.scalars(select(SipRecord.holder_id).where(SipRecord.race_id == race.id))
            )
            vouched = set(
                await db.scalars(
                    select(VouchRecord.holder_id).where(VouchRecord.race_id == race.id)
                )
            )
            if not entrants or not entrants <= (sipped | vouched):
                return False

            result = await db.execute(
                update(Race)
                .where(
                    Race.id == race.id,
                    Race.state == RaceState.CLOSED,
                    Race.ready_notified.is_(False),
                )
                .values(ready_notified=True)
            )
            if result.rowcount == 0:  # type: ignore[attr-defined]
                logger.info("Race %s already announced as ready (concurrent update)", race.id)
                return False

        race.ready_notified = True
        logger.info("Race '%s' (#%d) is sipped and ready to run", race.name, race.race_number)
        return True

    # =========================================================================
    # Read-only queries
    # =========================================================================

    async def get_status(self, race: Race) -> RaceStatusView:
        """Remaining capacity and per-holder spot counts, sips and vouches."""
        async with self._transaction() as db:
            current = await db.get(Race, race.id, populate_existing=True)
            if current is None:
                raise RaceNotFound()
            entries = (
                await db.scalars(select(Entry).where(Entry.race_id == race.id).order_by(Entry.id))
            ).all()
            sipped = set(
                await db.scalars(select(SipRecord.holder_id).where(SipRecord.race_id == race.id))
            )
            vouches = {
                v.holder_id: v.vouched_by
                for v in await db.scalars(
                    select(VouchRecord).where(VouchRecord.race_id == race.id)
                )
            }

        holders: dict[str, HolderStatus] = {}
        for entry in entries:
            status = holders.get(entry.holder_id)
            if status is None:
                status = holders[entry.holder_id] = HolderStatus(
                    holder_id=entry.holder_id,
                    display_name=entry.display_name,
                    spots=0,
                    sipped=entry.holder_id in sipped,
                    vouched_by=vouches.get(entry.holder_id),
                )
            status.spots += 1
            status.display_name = entry.display_name

        return RaceStatusView(
            race=current,
            remaining_spots=current.remaining_spots,
            total_spots=current.total_spots,
            holders=sorted(holders.values(), key=lambda h: h.spots, reverse=True),
        )

    async def get_uncovered(self, race: Race) -> list[str]:
        """Distinct holders with neither a sip nor a vouch."""
        status = await self.get_status(race)
        return [h.holder_id for h in status.holders if not h.covered]

    async def list_entries(self, race: Race) -> list[Entry]:
        """Every claimed spot of the race in claim order."""
        async with self._transaction() as db:
            result = await db.scalars(
                select(Entry).where(Entry.race_id == race.id).order_by(Entry.id)
            )
            return list(result.all())
