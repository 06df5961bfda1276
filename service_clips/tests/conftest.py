"""
Shared fixtures for Clips service tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

import pytest

from service_clips.app.models import Clip
from service_clips.app.storage import DurableTier, HybridClipStore


class FrozenClock:
    """Manually advanced clock for deterministic expiry tests."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingDurableTier(DurableTier):
    """Dict-backed durable tier that counts calls."""

    def __init__(self, connected: bool = True):
        self.entries: Dict[str, Tuple[Clip, int]] = {}
        self.is_connected = connected
        self.calls: Dict[str, int] = {"get": 0, "set": 0, "delete": 0, "count": 0}
        self.closed = False

    @property
    def connected(self) -> bool:
        return self.is_connected

    async def connect(self) -> None:
        self.is_connected = True

    async def get(self, token: str) -> Optional[Clip]:
        self.calls["get"] += 1
        if not self.is_connected:
            return None
        entry = self.entries.get(token)
        return Clip(**vars(entry[0])) if entry else None

    async def set(self, clip: Clip, ttl_seconds: int) -> bool:
        self.calls["set"] += 1
        if not self.is_connected:
            return False
        self.entries[clip.id] = (Clip(**vars(clip)), ttl_seconds)
        return True

    async def delete(self, token: str) -> bool:
        self.calls["delete"] += 1
        if not self.is_connected:
            return False
        return self.entries.pop(token, None) is not None

    async def count(self) -> int:
        self.calls["count"] += 1
        return len(self.entries) if self.is_connected else 0

    async def close(self) -> None:
        self.closed = True
        self.is_connected = False


@pytest.fixture
def clock():
    """Frozen clock starting at a fixed instant."""
    return FrozenClock()


@pytest.fixture
def durable():
    """Connected recording durable tier."""
    return RecordingDurableTier()


@pytest.fixture
def store(durable, clock):
    """Hybrid store over the recording durable tier."""
    return HybridClipStore(durable, clock=clock)


@pytest.fixture
def memory_only_store(clock):
    """Hybrid store with no durable tier configured."""
    return HybridClipStore(clock=clock)
