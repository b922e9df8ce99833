"""Discord bot API: channel announcements, member display names, slash commands."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import httpx

from duck_racing.config import settings

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

DISCORD_API_BASE = "https://discord.com/api/v10"


async def _discord_api_request(
    method: str,
    path: str,
    *,
    json: dict[str, object] | list[dict[str, object]] | None = None,
) -> Any:
    """Make an authenticated Discord API request. Returns response JSON or None on failure."""
    bot_token = settings.discord_bot_token
    if not bot_token:
        return None
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.request(
                method,
                f"{DISCORD_API_BASE}{path}",
                json=json,
                headers={"Authorization": f"Bot {bot_token}"},
            )
            if response.status_code == 429:
                logger.warning("Discord API rate limited: %s", response.headers.get("Retry-After"))
                return None
            if response.status_code == 204:
                return {}
            if response.status_code >= 400:
                logger.warning("Discord API error %d: %s", response.status_code, response.text)
                return None
            return response.json()
    except Exception as e:
        logger.warning("Discord API request error: %s", e)
        return None


# ---------------------------------------------------------------------------
# Channel messages
# ---------------------------------------------------------------------------


async def send_channel_message(channel_id: str, content: str) -> bool:
    """Post a message to a channel. ``@here`` mentions are allowed to ping."""
    result = await _discord_api_request(
        "POST",
        f"/channels/{channel_id}/messages",
        json={"content": content, "allowed_mentions": {"parse": ["everyone", "users"]}},
    )
    return result is not None


def fire_announcements(channel_id: str, announcements: Sequence[str]) -> None:
    """Fire-and-forget channel announcements ("race is full", "race is ready")."""
    for content in announcements:
        task = asyncio.create_task(send_channel_message(channel_id, content))
        task.add_done_callback(lambda t: t.exception() if not t.cancelled() else None)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


def member_display_name(member: dict[str, Any] | None, user: dict[str, Any] | None) -> str:
    """Guild nickname, then global name, then username."""
    if member and member.get("nick"):
        return str(member["nick"])
    user = user or (member or {}).get("user") or {}
    return str(user.get("global_name") or user.get("username") or "Unknown")


class DiscordDisplayNames:
    """Resolves holder ids to guild display names through the bot API."""

    async def display_name(self, holder_id: str) -> str:
        guild_id = settings.discord_guild_id
        if not guild_id:
            return "Unknown"
        member = await _discord_api_request("GET", f"/guilds/{guild_id}/members/{holder_id}")
        if not member:
            return "Unknown"
        return member_display_name(member, member.get("user"))


# ---------------------------------------------------------------------------
# Slash command registration
# ---------------------------------------------------------------------------

STRING, INTEGER, USER = 3, 4, 6  # application command option types


def _option(
    name: str, description: str, type_: int, *, required: bool = True
) -> dict[str, object]:
    return {"name": name, "description": description, "type": type_, "required": required}


def _race_name_command(name: str, description: str) -> dict[str, object]:
    return {
        "name": name,
        "description": description,
        "options": [_option("name", "Race name", STRING)],
    }


SLASH_COMMANDS: list[dict[str, object]] = [
    {
        "name": "start",
        "description": "Start a new race (Quack Commanders only)",
        "options": [
            _option("name", "Race name", STRING),
            _option("spots", "Number of spots", INTEGER),
        ],
    },
    {
        "name": "claim",
        "description": "Claim spots in the active race",
        "options": [
            _option("count", "Number of spots", INTEGER),
            _option("for", "Claim for someone else", USER, required=False),
        ],
    },
    {"name": "claimrest", "description": "Claim every remaining spot in the active race"},
    {"name": "sip", "description": "Mark yourself as sipped"},
    {
        "name": "vouch",
        "description": "Mark someone else as vouched",
        "options": [_option("user", "Participant to vouch for", USER)],
    },
    {
        "name": "remove",
        "description": "Remove a user from the race and reopen it",
        "options": [_option("user", "Participant to remove", USER)],
    },
    _race_name_command("list", "Show all individual entries in a race"),
    _race_name_command("status", "Show current summary of the race"),
    _race_name_command("remaining", "List users who haven't sipped or vouched"),
    _race_name_command("cancel", "Cancel an active race (Quack Commanders only)"),
    _race_name_command("reset", "Clear all entries from a race (Quack Commanders only)"),
    _race_name_command("forceclose", "Force a race to close early (Quack Commanders only)"),
    {"name": "wipe", "description": "Delete all bot data (Quack Commanders only)"},
    {"name": "confirm", "description": "Confirm a pending wipe"},
    {"name": "commands", "description": "List the Duck Race Bot commands"},
]


async def register_slash_commands() -> int:
    """Overwrite the guild's slash commands. Returns the number registered."""
    app_id = settings.discord_application_id
    guild_id = settings.discord_guild_id
    if not app_id or not guild_id:
        return 0
    result = await _discord_api_request(
        "PUT",
        f"/applications/{app_id}/guilds/{guild_id}/commands",
        json=SLASH_COMMANDS,
    )
    return len(result) if isinstance(result, list) else 0
