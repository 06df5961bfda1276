"""
Unit tests for the expiry sweeper.
"""

import asyncio
from datetime import timedelta

import pytest

from shared.metrics import MetricsCollector
from service_clips.app.models import Clip
from service_clips.app.storage import ExpirySweeper, MemoryTier


def add_clip(memory: MemoryTier, token: str, created, minutes: int) -> None:
    memory.set(Clip(
        id=token,
        content="x",
        created_at=created,
        expires_at=created + timedelta(minutes=minutes),
    ))


class TestExpirySweeper:
    """Test cases for ExpirySweeper."""

    @pytest.fixture
    def memory(self):
        """Empty memory tier."""
        return MemoryTier()

    def test_sweep_removes_only_expired(self, memory, clock):
        """Live clips survive a sweep."""
        add_clip(memory, "short", clock.now, 1)
        add_clip(memory, "long", clock.now, 60)
        sweeper = ExpirySweeper(memory, clock, interval=60)

        clock.advance(minutes=2)

        assert sweeper.sweep_once() == 1
        assert "short" not in memory
        assert "long" in memory

    def test_sweep_nothing_expired(self, memory, clock):
        """No-op sweep returns zero."""
        add_clip(memory, "live", clock.now, 5)
        sweeper = ExpirySweeper(memory, clock)

        assert sweeper.sweep_once() == 0
        assert len(memory) == 1

    def test_sweep_records_metric(self, memory, clock):
        """Purged clips are counted."""
        metrics = MetricsCollector("clips")
        add_clip(memory, "a", clock.now, 1)
        add_clip(memory, "b", clock.now, 1)
        sweeper = ExpirySweeper(memory, clock, metrics=metrics)

        clock.advance(minutes=5)
        sweeper.sweep_once()

        assert metrics.registry.get_sample_value("sweeper_purged_total") == 2.0

    @pytest.mark.asyncio
    async def test_background_sweep(self, memory, clock):
        """The timer purges without any read."""
        add_clip(memory, "gone", clock.now, 1)
        clock.advance(minutes=2)
        sweeper = ExpirySweeper(memory, clock, interval=0.01)

        sweeper.start()
        for _ in range(50):
            if "gone" not in memory:
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()

        assert "gone" not in memory
        assert not sweeper.running

    @pytest.mark.asyncio
    async def test_start_is_idempotent_and_stop_safe(self, memory, clock):
        """Repeated start keeps one task; stop without start is fine."""
        sweeper = ExpirySweeper(memory, clock, interval=60)
        await sweeper.stop()

        sweeper.start()
        task = sweeper._task
        sweeper.start()
        assert sweeper._task is task

        await sweeper.stop()
        assert task.cancelled()
