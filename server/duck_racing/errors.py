"""Error taxonomy for race coordination.

Every failure the core reports is a ``RaceError`` tagged with an ``ErrorKind``.
Surfaces translate kinds (HTTP status, chat reply) without inspecting the
concrete class. Only ``StoreUnavailable`` is retryable.
"""

import enum


class ErrorKind(enum.Enum):
    """Broad category of a race coordination failure."""

    INVALID_ARGUMENT = "invalid_argument"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    RACE_FULL = "race_full"
    HOLDER_INELIGIBLE = "holder_ineligible"
    BUSY = "busy"
    STORE_UNAVAILABLE = "store_unavailable"


class RaceError(Exception):
    """Base class for all race coordination errors."""

    kind: ErrorKind = ErrorKind.INVALID_ARGUMENT
    retryable: bool = False
    default_message = "Race operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# Invalid arguments


class InvalidCapacity(RaceError):
    kind = ErrorKind.INVALID_ARGUMENT
    default_message = "Total spots must be a positive number"


class InvalidClaimCount(RaceError):
    kind = ErrorKind.INVALID_ARGUMENT
    default_message = "Claim count must be a positive number"


class InvalidRaceName(RaceError):
    kind = ErrorKind.INVALID_ARGUMENT
    default_message = "Race name must be a single word of at most 100 characters"


# Not found


class RaceNotFound(RaceError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Race not found"


class NoEntries(RaceError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Holder has no entries in the current race"


class NotAParticipant(RaceError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Participant has not claimed any spots in this race"


# Conflicts


class DuplicateActiveRace(RaceError):
    kind = ErrorKind.CONFLICT
    default_message = "A race with that name is already running in this channel"


class AlreadySipped(RaceError):
    kind = ErrorKind.CONFLICT
    default_message = "Participant already sipped this race"


class SelfVouchNotAllowed(RaceError):
    kind = ErrorKind.CONFLICT
    default_message = "You cannot vouch for yourself"


class ConcurrentModification(RaceError):
    kind = ErrorKind.CONFLICT
    default_message = "Race was modified concurrently, please retry"


# Business state


class RaceFull(RaceError):
    kind = ErrorKind.RACE_FULL
    default_message = "The race is full"


class HolderIneligible(RaceError):
    kind = ErrorKind.HOLDER_INELIGIBLE
    default_message = "This holder is retired and cannot claim spots"


# Infrastructure


class Busy(RaceError):
    kind = ErrorKind.BUSY
    default_message = "Another claim is being processed, please wait a moment and try again"


class StoreUnavailable(RaceError):
    kind = ErrorKind.STORE_UNAVAILABLE
    retryable = True
    default_message = "The race store is temporarily unavailable, please retry"
