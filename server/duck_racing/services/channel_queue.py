"""Per-channel admission queues serializing read-modify-write race operations."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from duck_racing.errors import Busy

logger = logging.getLogger(__name__)


@dataclass
class _ChannelSlot:
    """Lock for one channel plus the number of requests holding or awaiting it."""

    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    pending: int = 0


class ChannelQueues:
    """One FIFO admission queue per channel.

    Requests for the same channel run one at a time in arrival order; requests
    for different channels never wait on each other. A request that is not
    admitted within ``timeout`` seconds fails with ``Busy``. Slots are created
    on first use and dropped once nothing is queued on them.
    """

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        self._slots: dict[str, _ChannelSlot] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def active_channels(self) -> list[str]:
        """Channels with an operation in flight or queued."""
        return list(self._slots)

    @asynccontextmanager
    async def admit(self, channel_id: str) -> AsyncIterator[None]:
        """Wait for the channel to be free, then hold it for the duration of the block."""
        if self._closed:
            raise Busy("Race coordination is shutting down")

        slot = self._slots.get(channel_id)
        if slot is None:
            slot = self._slots[channel_id] = _ChannelSlot()
        slot.pending += 1
        try:
            try:
                await asyncio.wait_for(slot.lock.acquire(), timeout=self.timeout)
            except TimeoutError:
                logger.warning(
                    "Channel %s busy: not admitted within %.1fs", channel_id, self.timeout
                )
                raise Busy() from None
            try:
                yield
            finally:
                slot.lock.release()
        finally:
            slot.pending -= 1
            if slot.pending == 0 and self._slots.get(channel_id) is slot:
                del self._slots[channel_id]

    def close(self) -> None:
        """Refuse new admissions. In-flight operations finish normally."""
        self._closed = True
        logger.info("Channel queues closed (%d channel(s) active)", len(self._slots))
