"""Test the Discord bot API client."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from duck_racing.discord import (
    SLASH_COMMANDS,
    DiscordDisplayNames,
    fire_announcements,
    member_display_name,
    register_slash_commands,
    send_channel_message,
)


def _response(status_code: int, payload=None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = ""
    response.headers = {}
    return response


@pytest.fixture
def mock_http():
    """Patch httpx.AsyncClient and yield the client mock."""
    with (
        patch("duck_racing.discord.settings") as mock_settings,
        patch("duck_racing.discord.httpx.AsyncClient") as mock_client_cls,
    ):
        mock_settings.discord_bot_token = "bot-token"
        mock_settings.discord_guild_id = "guild-1"
        mock_settings.discord_application_id = "app-1"

        mock_client = AsyncMock()
        mock_client_cls.return_value.__aenter__.return_value = mock_client
        yield mock_client


@pytest.mark.asyncio
async def test_noop_when_no_bot_token():
    with (
        patch("duck_racing.discord.settings") as mock_settings,
        patch("duck_racing.discord.httpx.AsyncClient") as mock_client_cls,
    ):
        mock_settings.discord_bot_token = ""
        assert await send_channel_message("chan-1", "hello") is False
        mock_client_cls.assert_not_called()


@pytest.mark.asyncio
async def test_send_channel_message_allows_here(mock_http):
    mock_http.request.return_value = _response(200, {"id": "m1"})

    assert await send_channel_message("chan-1", "@here hi") is True

    method, url = mock_http.request.call_args.args
    kwargs = mock_http.request.call_args.kwargs
    assert method == "POST"
    assert url.endswith("/channels/chan-1/messages")
    assert kwargs["json"]["allowed_mentions"] == {"parse": ["everyone", "users"]}
    assert kwargs["headers"]["Authorization"] == "Bot bot-token"


@pytest.mark.asyncio
async def test_send_channel_message_failure_is_logged_not_raised(mock_http):
    mock_http.request.return_value = _response(403)
    assert await send_channel_message("chan-1", "hi") is False


@pytest.mark.asyncio
async def test_rate_limited_request_returns_false(mock_http):
    mock_http.request.return_value = _response(429)
    assert await send_channel_message("chan-1", "hi") is False


@pytest.mark.asyncio
async def test_fire_announcements_sends_each_message():
    with patch("duck_racing.discord.send_channel_message", new_callable=AsyncMock) as mock_send:
        fire_announcements("chan-1", ["one", "two"])
        await asyncio.sleep(0)

    assert [c.args for c in mock_send.await_args_list] == [("chan-1", "one"), ("chan-1", "two")]


# =============================================================================
# Display names
# =============================================================================


def test_member_display_name_precedence():
    user = {"id": "1", "username": "duckfan", "global_name": "Duck Fan"}
    assert member_display_name({"nick": "Quacky"}, user) == "Quacky"
    assert member_display_name({"nick": None}, user) == "Duck Fan"
    assert member_display_name(None, {"username": "duckfan"}) == "duckfan"
    assert member_display_name({"user": {"username": "nested"}}, None) == "nested"
    assert member_display_name(None, None) == "Unknown"


@pytest.mark.asyncio
async def test_display_name_from_guild_member(mock_http):
    mock_http.request.return_value = _response(
        200, {"nick": None, "user": {"id": "42", "username": "quackers"}}
    )

    assert await DiscordDisplayNames().display_name("42") == "quackers"
    method, url = mock_http.request.call_args.args
    assert method == "GET"
    assert url.endswith("/guilds/guild-1/members/42")


@pytest.mark.asyncio
async def test_display_name_unknown_member(mock_http):
    mock_http.request.return_value = _response(404)
    assert await DiscordDisplayNames().display_name("42") == "Unknown"


# =============================================================================
# Slash command registration
# =============================================================================


@pytest.mark.asyncio
async def test_register_slash_commands(mock_http):
    registered = [{"id": str(i)} for i in range(len(SLASH_COMMANDS))]
    mock_http.request.return_value = _response(200, registered)

    assert await register_slash_commands() == len(SLASH_COMMANDS)
    method, url = mock_http.request.call_args.args
    assert method == "PUT"
    assert url.endswith("/applications/app-1/guilds/guild-1/commands")


def test_slash_command_names_are_unique():
    names = [c["name"] for c in SLASH_COMMANDS]
    assert len(names) == len(set(names))
    assert {"start", "claim", "claimrest", "sip", "vouch", "wipe", "confirm"} <= set(names)
