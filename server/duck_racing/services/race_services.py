"""Wiring of the race coordination services around one set of channel queues."""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from duck_racing.config import settings
from duck_racing.models import Race
from duck_racing.services.channel_queue import ChannelQueues
from duck_racing.services.claim_coordinator import ClaimCoordinator, ClaimResult
from duck_racing.services.completion_tracker import CompletionTracker
from duck_racing.services.eligibility import EligibilityProvider, RetiredHolders
from duck_racing.services.race_registry import RaceRegistry

logger = logging.getLogger(__name__)


@dataclass
class RaceServices:
    """Registry, coordinator and tracker sharing the same channel queues."""

    queues: ChannelQueues
    registry: RaceRegistry
    coordinator: ClaimCoordinator
    tracker: CompletionTracker

    async def force_close(self, channel_id: str, name: str) -> tuple[Race, bool]:
        """Force close a race, then check whether its entrants are already covered.

        Returns (race, became_ready).
        """
        race = await self.registry.force_close(channel_id, name)
        became_ready = await self.tracker.check_ready(race)
        return race, became_ready

    async def claim_spots(
        self,
        channel_id: str,
        acting_holder: str,
        target_holder: str,
        display_name: str,
        requested_count: int,
    ) -> ClaimResult | None:
        """Claim spots and, when the claim closes the race, run the ready check."""
        result = await self.coordinator.claim_spots(
            channel_id, acting_holder, target_holder, display_name, requested_count
        )
        return await self._after_claim(result)

    async def claim_remaining(
        self, channel_id: str, holder_id: str, display_name: str
    ) -> ClaimResult | None:
        result = await self.coordinator.claim_remaining(channel_id, holder_id, display_name)
        return await self._after_claim(result)

    async def _after_claim(self, result: ClaimResult | None) -> ClaimResult | None:
        # Vouches survive a re-claim, so the closing claim may complete coverage
        if result is not None and result.just_closed:
            result.became_ready = await self.tracker.check_ready(result.race)
        return result

    def close(self) -> None:
        self.queues.close()


def build_services(
    session_maker: async_sessionmaker[AsyncSession],
    *,
    eligibility: EligibilityProvider | None = None,
    claim_queue_timeout: float | None = None,
    store_timeout: float | None = None,
) -> RaceServices:
    """Build the services once per process; call ``close()`` on shutdown."""
    if eligibility is None:
        eligibility = RetiredHolders(settings.retired_holder_ids)
    if claim_queue_timeout is None:
        claim_queue_timeout = settings.claim_queue_timeout
    if store_timeout is None:
        store_timeout = settings.store_timeout

    queues = ChannelQueues(timeout=claim_queue_timeout)
    logger.debug(
        "Race services built (queue timeout=%.1fs, store timeout=%.1fs)",
        claim_queue_timeout,
        store_timeout,
    )
    return RaceServices(
        queues=queues,
        registry=RaceRegistry(session_maker, queues, store_timeout=store_timeout),
        coordinator=ClaimCoordinator(
            session_maker, queues, eligibility, store_timeout=store_timeout
        ),
        tracker=CompletionTracker(session_maker, store_timeout=store_timeout),
    )
