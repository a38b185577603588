"""
Swap event sources.

Each monitored venue gets one SwapEventSource that polls the pair's Swap
logs and offers a VenueSignal to the coordinator when new swaps land. Both
sources feed the same coordinator, which decides whether the signal starts
a cycle or is dropped.
"""

import asyncio
from typing import TYPE_CHECKING, Optional

from web3 import Web3

from .adapters.base import VenueAdapter, call_with_retry
from .types import VenueSignal
from .utils import get_logger

if TYPE_CHECKING:
    from .coordinator import ExecutionCoordinator

logger = get_logger(__name__)


class SwapEventSource:
    """Polls one venue's Swap event and forwards activity as signals."""

    def __init__(
        self,
        venue: VenueAdapter,
        web3: Web3,
        coordinator: "ExecutionCoordinator",
        poll_sec: float = 2.0,
        max_retries: int = 3,
    ):
        if venue.swap_event is None:
            raise ValueError(f"{venue.name} does not expose a Swap event")
        self.venue = venue
        self.web3 = web3
        self.coordinator = coordinator
        self.poll_sec = poll_sec
        self.max_retries = max_retries

        self._last_block: Optional[int] = None
        self.swaps_seen = 0
        self.signals_sent = 0

    async def poll_once(self) -> int:
        """
        Read Swap logs since the last polled block.

        The first poll only records the current head.

        Returns:
            Number of Swap logs found
        """
        latest = await call_with_retry(
            lambda: self.web3.eth.block_number, self.max_retries
        )
        if self._last_block is None or latest < self._last_block:
            self._last_block = latest
            return 0
        if latest == self._last_block:
            return 0

        from_block = self._last_block + 1
        event = self.venue.swap_event
        logs = await call_with_retry(
            lambda: event.get_logs(from_block=from_block, to_block=latest),
            self.max_retries,
        )
        self._last_block = latest

        if not logs:
            return 0

        self.swaps_seen += len(logs)
        newest = max(logs, key=lambda log: log["blockNumber"])
        tx_hash = newest.get("transactionHash")
        signal = VenueSignal(
            venue=self.venue.name,
            block_number=int(newest["blockNumber"]),
            tx_hash=Web3.to_hex(tx_hash) if tx_hash is not None else None,
        )
        logger.debug(
            f"{self.venue.name}: {len(logs)} swap(s) in blocks {from_block}-{latest}"
        )
        if self.coordinator.offer(signal):
            self.signals_sent += 1
        return len(logs)

    async def run(self) -> None:
        """Poll until cancelled. Read errors are logged and retried next poll."""
        logger.info(f"Watching {self.venue.name} swaps every {self.poll_sec}s")
        while True:
            try:
                await self.poll_once()
            except Exception as e:
                logger.warning(f"{self.venue.name} event poll failed: {e}")
            await asyncio.sleep(self.poll_sec)
