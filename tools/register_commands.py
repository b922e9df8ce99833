"""Register the Duck Race Bot slash commands with Discord.

Overwrites the guild's command set with the one the server understands. Needs
DISCORD_BOT_TOKEN, DISCORD_APPLICATION_ID and DISCORD_GUILD_ID (env or .env).

Usage:
    cd server && uv run python ../tools/register_commands.py
    cd server && uv run python ../tools/register_commands.py --list
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from duck_racing.discord import SLASH_COMMANDS, register_slash_commands


async def main() -> int:
    parser = argparse.ArgumentParser(description="Register Duck Race Bot slash commands")
    parser.add_argument(
        "--list",
        action="store_true",
        help="Only print the commands that would be registered",
    )
    args = parser.parse_args()

    if args.list:
        for command in SLASH_COMMANDS:
            print(f"/{command['name']}: {command['description']}")
        return 0

    registered = await register_slash_commands()
    if not registered:
        print("No commands registered (check Discord settings and server logs)", file=sys.stderr)
        return 1
    print(f"Registered {registered} slash commands")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
