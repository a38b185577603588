"""
Tests for the Swap log poller.
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from web3 import Web3

from fakes import StubVenue, make_lb_venue, make_v2_venue
from lb_arbitrage.events import SwapEventSource


def make_source(venue_pair=None, accept=True):
    venue, pair = venue_pair or make_v2_venue("pangolin", Decimal("100000"), Decimal("1000"))
    web3 = SimpleNamespace(eth=SimpleNamespace(block_number=100))
    coordinator = MagicMock(name="coordinator")
    coordinator.offer.return_value = accept
    source = SwapEventSource(venue, web3, coordinator, poll_sec=0.01)
    return source, pair, web3, coordinator


class TestSwapEventSource:
    @pytest.mark.asyncio
    async def test_first_poll_only_records_head(self):
        source, pair, _, coordinator = make_source()

        assert await source.poll_once() == 0

        pair.events.Swap.get_logs.assert_not_called()
        coordinator.offer.assert_not_called()

    @pytest.mark.asyncio
    async def test_new_swaps_offer_one_signal(self):
        source, pair, web3, coordinator = make_source()
        await source.poll_once()

        web3.eth.block_number = 103
        pair.events.Swap.get_logs.return_value = [
            {"blockNumber": 101, "transactionHash": b"\x01" * 32},
            {"blockNumber": 103, "transactionHash": b"\x03" * 32},
        ]

        assert await source.poll_once() == 2

        pair.events.Swap.get_logs.assert_called_once_with(from_block=101, to_block=103)
        coordinator.offer.assert_called_once()
        signal = coordinator.offer.call_args[0][0]
        assert signal.venue == "pangolin"
        assert signal.block_number == 103
        assert signal.tx_hash == Web3.to_hex(b"\x03" * 32)
        assert source.swaps_seen == 2
        assert source.signals_sent == 1

    @pytest.mark.asyncio
    async def test_no_new_block_skips_log_read(self):
        source, pair, _, _ = make_source()
        await source.poll_once()

        assert await source.poll_once() == 0
        pair.events.Swap.get_logs.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_range_does_not_signal(self):
        source, pair, web3, coordinator = make_source()
        await source.poll_once()

        web3.eth.block_number = 105
        pair.events.Swap.get_logs.return_value = []

        assert await source.poll_once() == 0
        coordinator.offer.assert_not_called()

        # Range advanced past the empty blocks
        web3.eth.block_number = 106
        await source.poll_once()
        pair.events.Swap.get_logs.assert_called_with(from_block=106, to_block=106)

    @pytest.mark.asyncio
    async def test_dropped_signal_not_counted(self):
        source, pair, web3, _ = make_source(accept=False)
        await source.poll_once()

        web3.eth.block_number = 101
        pair.events.Swap.get_logs.return_value = [{"blockNumber": 101}]

        assert await source.poll_once() == 1
        assert source.signals_sent == 0

    @pytest.mark.asyncio
    async def test_lb_pair_events(self):
        source, pair, web3, coordinator = make_source(make_lb_venue())
        await source.poll_once()

        web3.eth.block_number = 101
        pair.events.Swap.get_logs.return_value = [{"blockNumber": 101}]

        await source.poll_once()
        assert coordinator.offer.call_args[0][0].venue == "traderjoe_lb"

    def test_venue_without_events_rejected(self):
        venue = StubVenue("stub", Decimal("100"), Decimal("1000"))
        with pytest.raises(ValueError):
            SwapEventSource(venue, MagicMock(), MagicMock())
