"""Business logic services."""

from duck_racing.services.channel_queue import ChannelQueues
from duck_racing.services.claim_coordinator import ClaimCoordinator, ClaimResult
from duck_racing.services.completion_tracker import (
    AckResult,
    CompletionTracker,
    HolderStatus,
    RaceStatusView,
)
from duck_racing.services.eligibility import EligibilityProvider, RetiredHolders
from duck_racing.services.race_registry import RaceRegistry, RemovalResult, normalize_race_name
from duck_racing.services.race_services import RaceServices, build_services

__all__ = [
    "AckResult",
    "ChannelQueues",
    "ClaimCoordinator",
    "ClaimResult",
    "CompletionTracker",
    "EligibilityProvider",
    "HolderStatus",
    "RaceRegistry",
    "RaceServices",
    "RaceStatusView",
    "RemovalResult",
    "RetiredHolders",
    "build_services",
    "normalize_race_name",
]
