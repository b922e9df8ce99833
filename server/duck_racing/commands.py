"""Typed commands consumed by the dispatcher.

Surfaces (Discord slash commands, HTTP) build one of these variants; nothing
downstream ever looks at free-form command text.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ChannelCommand:
    channel_id: str
    actor_id: str


@dataclass(frozen=True)
class StartRace(ChannelCommand):
    name: str
    total_spots: int


@dataclass(frozen=True)
class Claim(ChannelCommand):
    actor_name: str
    count: int
    target_id: str | None = None
    target_name: str | None = None


@dataclass(frozen=True)
class ClaimRemaining(ChannelCommand):
    actor_name: str


@dataclass(frozen=True)
class RemoveHolder(ChannelCommand):
    holder_id: str


@dataclass(frozen=True)
class Sip(ChannelCommand):
    pass


@dataclass(frozen=True)
class Vouch(ChannelCommand):
    holder_id: str


@dataclass(frozen=True)
class Cancel(ChannelCommand):
    name: str


@dataclass(frozen=True)
class Reset(ChannelCommand):
    name: str


@dataclass(frozen=True)
class ForceClose(ChannelCommand):
    name: str


@dataclass(frozen=True)
class StatusQuery(ChannelCommand):
    name: str


@dataclass(frozen=True)
class ListQuery(ChannelCommand):
    name: str


@dataclass(frozen=True)
class RemainingQuery(ChannelCommand):
    name: str


@dataclass(frozen=True)
class Wipe(ChannelCommand):
    pass


@dataclass(frozen=True)
class ConfirmWipe(ChannelCommand):
    pass


@dataclass(frozen=True)
class Help(ChannelCommand):
    pass


Command = (
    StartRace
    | Claim
    | ClaimRemaining
    | RemoveHolder
    | Sip
    | Vouch
    | Cancel
    | Reset
    | ForceClose
    | StatusQuery
    | ListQuery
    | RemainingQuery
    | Wipe
    | ConfirmWipe
    | Help
)

# Commands reserved to the commander role
PRIVILEGED_COMMANDS: tuple[type[ChannelCommand], ...] = (
    StartRace,
    RemoveHolder,
    Cancel,
    Reset,
    ForceClose,
    Wipe,
    ConfirmWipe,
)


def requires_commander(command: ChannelCommand) -> bool:
    return isinstance(command, PRIVILEGED_COMMANDS)
