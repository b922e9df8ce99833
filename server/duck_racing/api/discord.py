"""Discord interaction endpoint (slash command webhook receiver)."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

from duck_racing.api.helpers import get_dispatcher
from duck_racing.commands import (
    Cancel,
    ChannelCommand,
    Command,
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
    requires_commander,
)
from duck_racing.config import settings
from duck_racing.discord import fire_announcements, member_display_name
from duck_racing.rate_limit import limiter
from duck_racing.services.dispatcher import CommandDispatcher

logger = logging.getLogger(__name__)

router = APIRouter()

PING, APPLICATION_COMMAND = 1, 2
PONG, CHANNEL_MESSAGE = 1, 4
EPHEMERAL = 64

NO_ACTIVE_RACE = "There is no active race to claim into."

_COMMANDER_ACTIONS: dict[type[ChannelCommand], str] = {
    StartRace: "start a race",
    RemoveHolder: "remove users from a race",
    Cancel: "cancel a race",
    Reset: "reset a race",
    ForceClose: "force close a race",
    Wipe: "wipe bot data",
    ConfirmWipe: "wipe bot data",
}


def _verify_signature(signature: str, timestamp: str, body: str) -> bool:
    """Verify Discord interaction signature using Ed25519."""
    public_key = settings.discord_public_key
    if not public_key:
        return False
    try:
        verify_key = VerifyKey(bytes.fromhex(public_key))
        verify_key.verify(f"{timestamp}{body}".encode(), bytes.fromhex(signature))
    except (BadSignatureError, ValueError):
        return False
    else:
        return True


def _message(content: str, *, ephemeral: bool = False) -> dict[str, Any]:
    data: dict[str, Any] = {"content": content, "allowed_mentions": {"parse": ["users"]}}
    if ephemeral:
        data["flags"] = EPHEMERAL
    return {"type": CHANNEL_MESSAGE, "data": data}


def build_command(payload: dict[str, Any]) -> Command | None:
    """Turn an APPLICATION_COMMAND interaction into a typed command.

    Returns None for commands this bot does not know.
    """
    data = payload.get("data") or {}
    member = payload.get("member") or {}
    user = member.get("user") or payload.get("user") or {}
    channel_id = str(payload.get("channel_id", ""))
    actor_id = str(user.get("id", ""))
    options = {opt["name"]: opt.get("value") for opt in data.get("options") or []}
    resolved = data.get("resolved") or {}

    def resolved_name(holder_id: str) -> str | None:
        target_user = (resolved.get("users") or {}).get(holder_id)
        target_member = (resolved.get("members") or {}).get(holder_id)
        if target_user is None and target_member is None:
            return None
        return member_display_name(target_member, target_user)

    match data.get("name"):
        case "start":
            return StartRace(
                channel_id, actor_id, name=str(options["name"]), total_spots=int(options["spots"])
            )
        case "claim":
            target_id = options.get("for")
            return Claim(
                channel_id,
                actor_id,
                actor_name=member_display_name(member, user),
                count=int(options["count"]),
                target_id=str(target_id) if target_id else None,
                target_name=resolved_name(str(target_id)) if target_id else None,
            )
        case "claimrest":
            return ClaimRemaining(
                channel_id, actor_id, actor_name=member_display_name(member, user)
            )
        case "sip":
            return Sip(channel_id, actor_id)
        case "vouch":
            return Vouch(channel_id, actor_id, holder_id=str(options["user"]))
        case "remove":
            return RemoveHolder(channel_id, actor_id, holder_id=str(options["user"]))
        case "list":
            return ListQuery(channel_id, actor_id, name=str(options["name"]))
        case "status":
            return StatusQuery(channel_id, actor_id, name=str(options["name"]))
        case "remaining":
            return RemainingQuery(channel_id, actor_id, name=str(options["name"]))
        case "cancel":
            return Cancel(channel_id, actor_id, name=str(options["name"]))
        case "reset":
            return Reset(channel_id, actor_id, name=str(options["name"]))
        case "forceclose":
            return ForceClose(channel_id, actor_id, name=str(options["name"]))
        case "wipe":
            return Wipe(channel_id, actor_id)
        case "confirm":
            return ConfirmWipe(channel_id, actor_id)
        case "commands":
            return Help(channel_id, actor_id)
    return None


def is_commander(payload: dict[str, Any]) -> bool:
    role_id = settings.discord_commander_role_id
    if not role_id:
        return False
    roles = (payload.get("member") or {}).get("roles") or []
    return role_id in roles


async def _handle_command(
    payload: dict[str, Any], dispatcher: CommandDispatcher
) -> dict[str, Any]:
    command = build_command(payload)
    if command is None:
        logger.info("Ignoring unknown slash command %r", (payload.get("data") or {}).get("name"))
        return _message("Unknown command.", ephemeral=True)
    if requires_commander(command) and not is_commander(payload):
        logger.info(
            "Refused %s from %s: commander role required", type(command).__name__, command.actor_id
        )
        action = _COMMANDER_ACTIONS[type(command)]
        return _message(f"Only a Quack Commander can {action}.", ephemeral=True)

    outcome = await dispatcher.dispatch(command)
    if outcome.announcements:
        fire_announcements(command.channel_id, outcome.announcements)
    if outcome.reply is None:
        return _message(NO_ACTIVE_RACE, ephemeral=True)
    return _message(outcome.reply, ephemeral=outcome.ephemeral)


@router.post("/interactions", response_model=None)
@limiter.exempt
async def discord_interaction(
    request: Request, dispatcher: CommandDispatcher = Depends(get_dispatcher)
) -> dict[str, Any] | Response:
    """Handle Discord interaction webhook (PING + slash commands)."""
    signature = request.headers.get("X-Signature-Ed25519", "")
    timestamp = request.headers.get("X-Signature-Timestamp", "")
    body = (await request.body()).decode()

    if not _verify_signature(signature, timestamp, body):
        return Response(status_code=401, content="Invalid signature")

    payload: dict[str, Any] = await request.json()

    if payload.get("type") == PING:
        return {"type": PONG}

    if payload.get("type") == APPLICATION_COMMAND:
        return await _handle_command(payload, dispatcher)

    return Response(status_code=400)
