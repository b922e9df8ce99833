"""Holder eligibility (retired holders may not claim spots)."""

from collections.abc import Iterable
from typing import Protocol


class EligibilityProvider(Protocol):
    def is_retired(self, holder_id: str) -> bool: ...


class RetiredHolders:
    """Eligibility backed by a fixed set of retired holder ids."""

    def __init__(self, holder_ids: Iterable[str] = ()) -> None:
        self._retired = {str(h) for h in holder_ids}

    def is_retired(self, holder_id: str) -> bool:
        return holder_id in self._retired
