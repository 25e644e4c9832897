"""Tests for InMemoryCastGate."""

import asyncio

from zoiner.cast_gate import InMemoryCastGate

from .fakes import FakeClock


class TestProcessedSet:
    """Test the never-evicted processed set."""

    def setup_method(self):
        self.clock = FakeClock()
        self.gate = InMemoryCastGate(cooldown_seconds=30, eviction_seconds=3600, clock=self.clock)

    def test_try_mark_seen_claims_once(self):
        async def run():
            first = await self.gate.try_mark_seen("0xA")
            second = await self.gate.try_mark_seen("0xA")
            return first, second

        assert asyncio.run(run()) == (True, False)

    def test_concurrent_claims_single_winner(self):
        async def run():
            return await asyncio.gather(*(self.gate.try_mark_seen("0xA") for _ in range(10)))

        results = asyncio.run(run())
        assert results.count(True) == 1

    def test_seen_and_mark_seen(self):
        async def run():
            before = await self.gate.seen("0xB")
            await self.gate.mark_seen("0xB")
            return before, await self.gate.seen("0xB")

        assert asyncio.run(run()) == (False, True)
        assert self.gate.processed_count == 1

    def test_processed_survives_eviction(self):
        async def run():
            await self.gate.mark_seen("0xA")
            self.clock.advance(10_000)
            await self.gate.evict_expired()
            return await self.gate.seen("0xA")

        assert asyncio.run(run()) is True


class TestCooldown:
    """Test the time-boxed cooldown map."""

    def setup_method(self):
        self.clock = FakeClock()
        self.gate = InMemoryCastGate(cooldown_seconds=30, eviction_seconds=3600, clock=self.clock)

    def test_duplicate_within_window_rejected(self):
        async def run():
            first = await self.gate.try_start_cooldown("0xA")
            self.clock.advance(29)
            second = await self.gate.try_start_cooldown("0xA")
            return first, second

        assert asyncio.run(run()) == (True, False)

    def test_duplicate_after_window_accepted(self):
        async def run():
            await self.gate.try_start_cooldown("0xA")
            self.clock.advance(31)
            return await self.gate.try_start_cooldown("0xA")

        assert asyncio.run(run()) is True

    def test_cooldown_active(self):
        async def run():
            await self.gate.mark_cooldown("0xA")
            active = await self.gate.cooldown_active("0xA")
            self.clock.advance(30)
            return active, await self.gate.cooldown_active("0xA")

        assert asyncio.run(run()) == (True, False)

    def test_clear_cooldown_allows_retry(self):
        async def run():
            await self.gate.try_start_cooldown("0xA")
            await self.gate.clear_cooldown("0xA")
            return await self.gate.try_start_cooldown("0xA")

        assert asyncio.run(run()) is True

    def test_eviction_of_old_entries(self):
        async def run():
            await self.gate.mark_cooldown("0xOld")
            self.clock.advance(3601)
            await self.gate.mark_cooldown("0xNew")
            return await self.gate.evict_expired()

        assert asyncio.run(run()) == 1
        assert "0xOld" not in self.gate._cooldowns
        assert "0xNew" in self.gate._cooldowns

    def test_eviction_runs_on_each_delivery(self):
        async def run():
            await self.gate.mark_cooldown("0xOld")
            self.clock.advance(3601)
            await self.gate.try_start_cooldown("0xOther")

        asyncio.run(run())
        assert "0xOld" not in self.gate._cooldowns
