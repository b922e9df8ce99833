"""Human-readable chat replies for race events."""

from collections.abc import Mapping, Sequence

from duck_racing.models import Entry, Race
from duck_racing.services.claim_coordinator import ClaimResult
from duck_racing.services.completion_tracker import RaceStatusView
from duck_racing.services.race_registry import RemovalResult

RACE_FULL_ANNOUNCEMENT = "@here The race is now full! Please sip when available."
RACE_READY_ANNOUNCEMENT = "@here The race is full, sipped, and ready to run!"

HELP_TEXT = """**Duck Race Bot Commands:**
/start <name> <spots> — Start a new race (Quack Commanders only)
/claim <count> — Claim spots in the active race
/claim <count> for:@user — Claim spots for someone else
/claimrest — Claim every remaining spot in the active race
/sip — Mark yourself as sipped
/vouch @user — Mark someone else as vouched
/list <name> — Show all individual entries in a race
/status <name> — Show current summary of the race
/remaining <name> — List users who haven't sipped or vouched
/remove @user — Remove a user from the race and reopen the race if it was closed
/cancel <name> — Cancel an active race (Quack Commanders only)
/reset <name> — Clear all entries from a race (Quack Commanders only)
/forceclose <name> — Force a race to close early (Quack Commanders only)"""


def mention(holder_id: str) -> str:
    return f"<@{holder_id}>"


def race_started(race: Race) -> str:
    return (
        f'Race "{race.name}" (#{race.race_number}) started with {race.total_spots} spots! '
        "Use /claim <count> to claim spots."
    )


def spots_claimed(result: ClaimResult) -> str:
    text = (
        f"{result.display_name} claimed {result.actual_claimed} spot(s). "
        f'{result.remaining_spots} spot(s) remaining in race "{result.race.name}".'
    )
    if result.was_limited:
        text = (
            f"Only {result.actual_claimed} of the {result.requested} requested spot(s) "
            f"were left. {text}"
        )
    return text


def holder_removed(result: RemovalResult) -> str:
    return (
        f"Removed {result.spots_freed} spot(s) for {mention(result.holder_id)} "
        f'from race "{result.race.name}". Race reopened.'
    )


def race_status(status: RaceStatusView, names: Mapping[str, str]) -> str:
    """Status summary; ``names`` resolves voucher ids to display names."""
    lines = []
    for holder in status.holders:
        if holder.sipped:
            lines.append(f"✅ {holder.display_name} - {holder.spots} - Sipped")
        elif holder.vouched_by is not None:
            voucher = names.get(holder.vouched_by, "Unknown")
            lines.append(f"{holder.display_name} - {holder.spots} - Vouched by {voucher}")
        else:
            lines.append(f"{holder.display_name} - {holder.spots}")
    header = (
        f'Race "{status.race.name}" Status: '
        f"{status.remaining_spots}/{status.total_spots} spots remaining."
    )
    return "\n".join([header, *lines])


def entry_list(race: Race, entries: Sequence[Entry]) -> str:
    if not entries:
        return "No entries yet."
    formatted = "\n".join(f"{i}. {entry.display_name}" for i, entry in enumerate(entries, 1))
    return f'Entries for "{race.name}":\n{formatted}'


def uncovered(holder_ids: Sequence[str]) -> str:
    if not holder_ids:
        return "All participants have sipped or been vouched."
    mentions = ", ".join(mention(h) for h in holder_ids)
    return f"These participants still need to sip or be vouched: {mentions}"
