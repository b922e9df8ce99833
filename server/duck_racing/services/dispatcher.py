"""Executes typed commands against the race services and renders the replies."""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from duck_racing import messages
from duck_racing.commands import (
    Cancel,
    ChannelCommand,
    Claim,
    ClaimRemaining,
    ConfirmWipe,
    ForceClose,
    Help,
    ListQuery,
    RemainingQuery,
    RemoveHolder,
    Reset,
    Sip,
    StartRace,
    StatusQuery,
    Vouch,
    Wipe,
)
from duck_racing.errors import NoEntries, NotAParticipant, RaceError
from duck_racing.services.claim_coordinator import ClaimResult
from duck_racing.services.race_services import RaceServices

logger = logging.getLogger(__name__)


class DisplayNameResolver(Protocol):
    async def display_name(self, holder_id: str) -> str: ...


@dataclass
class CommandOutcome:
    """Reply to the invoking user plus channel-wide announcements.

    ``reply`` is None when the command is silently ignored.
    """

    reply: str | None
    announcements: list[str] = field(default_factory=list)
    ephemeral: bool = False
    error: RaceError | None = None


class PendingWipes:
    """Wipe requests awaiting confirmation, keyed by channel."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._pending: dict[str, tuple[str, float]] = {}

    def request(self, channel_id: str, actor_id: str) -> None:
        now = self._clock()
        expired = [c for c, (_, expires_at) in self._pending.items() if now > expires_at]
        for stale in expired:
            del self._pending[stale]
        self._pending[channel_id] = (actor_id, now + self.ttl)

    def __len__(self) -> int:
        return len(self._pending)

    def confirm(self, channel_id: str, actor_id: str) -> bool:
        """Consume the channel's pending wipe if ``actor_id`` requested it and it is fresh."""
        pending = self._pending.get(channel_id)
        if pending is None:
            return False
        requester, expires_at = pending
        if self._clock() > expires_at:
            del self._pending[channel_id]
            return False
        if requester != actor_id:
            return False
        del self._pending[channel_id]
        return True

    def clear(self) -> None:
        self._pending.clear()


class CommandDispatcher:
    """Maps each command variant to one race service call.

    Authorization is the caller's job: commands reaching the dispatcher are
    trusted.
    """

    def __init__(
        self,
        services: RaceServices,
        display_names: DisplayNameResolver,
        *,
        wipe_ttl: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.services = services
        self.display_names = display_names
        self.pending_wipes = PendingWipes(wipe_ttl, clock)
        self._handlers: dict[type[ChannelCommand], Callable[[Any], Awaitable[CommandOutcome]]] = {
            StartRace: self._start,
            Claim: self._claim,
            ClaimRemaining: self._claim_remaining,
            RemoveHolder: self._remove,
            Sip: self._sip,
            Vouch: self._vouch,
            Cancel: self._cancel,
            Reset: self._reset,
            ForceClose: self._force_close,
            StatusQuery: self._status,
            ListQuery: self._list,
            RemainingQuery: self._remaining,
            Wipe: self._wipe,
            ConfirmWipe: self._confirm_wipe,
            Help: self._help,
        }

    async def dispatch(self, command: ChannelCommand) -> CommandOutcome:
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unsupported command: {type(command).__name__}")
        try:
            return await handler(command)
        except RaceError as e:
            logger.debug("Command %s rejected: %s", type(command).__name__, e.message)
            return CommandOutcome(reply=e.message, ephemeral=True, error=e)

    # Race lifecycle

    async def _start(self, command: StartRace) -> CommandOutcome:
        race = await self.services.registry.start_race(
            command.channel_id, command.name, command.total_spots
        )
        return CommandOutcome(reply=messages.race_started(race))

    async def _cancel(self, command: Cancel) -> CommandOutcome:
        race = await self.services.registry.cancel_race(command.channel_id, command.name)
        return CommandOutcome(reply=f'Race "{race.name}" has been cancelled.')

    async def _reset(self, command: Reset) -> CommandOutcome:
        race = await self.services.registry.reset_race(command.channel_id, command.name)
        return CommandOutcome(reply=f'Entries reset for race "{race.name}".')

    async def _force_close(self, command: ForceClose) -> CommandOutcome:
        race, became_ready = await self.services.force_close(command.channel_id, command.name)
        announcements = [messages.RACE_READY_ANNOUNCEMENT] if became_ready else []
        return CommandOutcome(
            reply=f'Race "{race.name}" was force closed.', announcements=announcements
        )

    async def _remove(self, command: RemoveHolder) -> CommandOutcome:
        try:
            result = await self.services.registry.remove_holder(
                command.channel_id, command.holder_id
            )
        except NoEntries as e:
            return CommandOutcome(
                reply=(
                    f"User {messages.mention(command.holder_id)} "
                    "has no entries in the current race."
                ),
                ephemeral=True,
                error=e,
            )
        return CommandOutcome(reply=messages.holder_removed(result))

    # Claims

    def _claimed(self, result: ClaimResult | None) -> CommandOutcome:
        if result is None:
            return CommandOutcome(reply=None)
        announcements = [messages.RACE_FULL_ANNOUNCEMENT] if result.just_closed else []
        if result.became_ready:
            announcements.append(messages.RACE_READY_ANNOUNCEMENT)
        return CommandOutcome(reply=messages.spots_claimed(result), announcements=announcements)

    async def _claim(self, command: Claim) -> CommandOutcome:
        target_id = command.target_id or command.actor_id
        if command.target_id is None:
            target_name = command.actor_name
        else:
            target_name = command.target_name or await self.display_names.display_name(target_id)
        result = await self.services.claim_spots(
            command.channel_id, command.actor_id, target_id, target_name, command.count
        )
        return self._claimed(result)

    async def _claim_remaining(self, command: ClaimRemaining) -> CommandOutcome:
        result = await self.services.claim_remaining(
            command.channel_id, command.actor_id, command.actor_name
        )
        return self._claimed(result)

    # Acknowledgments

    async def _sip(self, command: Sip) -> CommandOutcome:
        try:
            result = await self.services.tracker.record_sip(command.channel_id, command.actor_id)
        except NotAParticipant as e:
            return CommandOutcome(
                reply="You cannot sip because you have not claimed any spots in this race.",
                ephemeral=True,
                error=e,
            )
        announcements = [messages.RACE_READY_ANNOUNCEMENT] if result.became_ready else []
        return CommandOutcome(reply="Sip recorded.", announcements=announcements)

    async def _vouch(self, command: Vouch) -> CommandOutcome:
        try:
            result = await self.services.tracker.record_vouch(
                command.channel_id, command.actor_id, command.holder_id
            )
        except NotAParticipant as e:
            return CommandOutcome(
                reply="That user has no entries in this race.", ephemeral=True, error=e
            )
        target = messages.mention(command.holder_id)
        if result.already_vouched:
            return CommandOutcome(reply=f"{target} was already vouched for.")
        announcements = [messages.RACE_READY_ANNOUNCEMENT] if result.became_ready else []
        return CommandOutcome(reply=f"{target} has been vouched for.", announcements=announcements)

    # Queries

    async def _status(self, command: StatusQuery) -> CommandOutcome:
        race = await self.services.registry.require_race_by_name(command.channel_id, command.name)
        status = await self.services.tracker.get_status(race)
        vouchers = {h.vouched_by for h in status.holders if h.vouched_by is not None}
        names = {v: await self.display_names.display_name(v) for v in vouchers}
        return CommandOutcome(reply=messages.race_status(status, names))

    async def _list(self, command: ListQuery) -> CommandOutcome:
        race = await self.services.registry.require_race_by_name(command.channel_id, command.name)
        entries = await self.services.tracker.list_entries(race)
        return CommandOutcome(reply=messages.entry_list(race, entries))

    async def _remaining(self, command: RemainingQuery) -> CommandOutcome:
        race = await self.services.registry.require_race_by_name(command.channel_id, command.name)
        holder_ids = await self.services.tracker.get_uncovered(race)
        return CommandOutcome(reply=messages.uncovered(holder_ids))

    # Administration

    async def _wipe(self, command: Wipe) -> CommandOutcome:
        self.pending_wipes.request(command.channel_id, command.actor_id)
        logger.warning("Wipe requested by %s in channel %s", command.actor_id, command.channel_id)
        return CommandOutcome(
            reply=(
                "Are you sure you want to delete all bot data? You should only do this if "
                "there is a fatal data error. Use /confirm to proceed."
            )
        )

    async def _confirm_wipe(self, command: ConfirmWipe) -> CommandOutcome:
        if not self.pending_wipes.confirm(command.channel_id, command.actor_id):
            return CommandOutcome(reply="There is no pending wipe to confirm.", ephemeral=True)
        await self.services.registry.wipe_all()
        return CommandOutcome(reply="All race data has been wiped.")

    async def _help(self, command: Help) -> CommandOutcome:
        return CommandOutcome(reply=messages.HELP_TEXT, ephemeral=True)
