"""
Hybrid clip store: memory tier first, Redis as a best-effort mirror.
"""

import asyncio
import weakref
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple, TYPE_CHECKING

from shared.config import BaseConfig
from shared.errors import DurableTierError
from shared.logging import get_logger

from ..models import (
    Clip,
    ClipInfo,
    ContentType,
    DEFAULT_EXPIRATION_MINUTES,
    StorageStats,
)
from ..security import generate_token, hash_password, verify_password
from .durable import DisabledDurableTier, DurableTier, create_durable_tier
from .memory import MemoryTier
from .sweeper import ExpirySweeper

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HybridClipStore:
    """Clip storage over a memory tier and an optional durable tier.

    Writes land in memory first and are mirrored to the durable tier; reads
    check memory, then fall back to the durable tier and restore what they
    find. Expiry, password and access-limit policy is enforced on every read
    regardless of which tier served the clip. Durable tier failures are
    absorbed by the tier adapter and never reach callers.

    Every rejection (unknown token, expired, wrong or missing password,
    access limit reached) is reported the same way: ``None``.

    With ``token_locking`` enabled, reads and deletes of the same token are
    serialized, so burn-after-reading and ``max_access`` hold under
    concurrent readers. Without it two concurrent reads may both succeed.
    """

    def __init__(
        self,
        durable: Optional[DurableTier] = None,
        *,
        metrics: Optional["MetricsCollector"] = None,
        sweep_interval: float = 60.0,
        default_expiration_minutes: int = DEFAULT_EXPIRATION_MINUTES,
        clock: Callable[[], datetime] = utcnow,
        token_locking: bool = False,
    ):
        self.memory = MemoryTier()
        self.durable = durable if durable is not None else DisabledDurableTier()
        self.metrics = metrics
        self.clock = clock
        self.default_expiration_minutes = default_expiration_minutes
        self.token_locking = token_locking
        self.sweeper = ExpirySweeper(self.memory, clock, sweep_interval, metrics)
        self.logger = get_logger("clips.storage.hybrid")

        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._destroyed = False

    @classmethod
    def from_config(
        cls,
        config: BaseConfig,
        metrics: Optional["MetricsCollector"] = None,
        **kwargs,
    ) -> "HybridClipStore":
        """Build a store whose durable tier is chosen from configuration."""
        return cls(
            create_durable_tier(config, metrics),
            metrics=metrics,
            sweep_interval=config.sweep_interval_seconds,
            default_expiration_minutes=config.default_expiration_minutes,
            token_locking=config.token_locking,
            **kwargs,
        )

    @property
    def durable_connected(self) -> bool:
        return self.durable.connected

    async def start(self) -> None:
        """Connect the durable tier (best effort) and start the sweeper."""
        try:
            await self.durable.connect()
        except DurableTierError as e:
            self.logger.warning(
                "Durable tier unavailable, continuing with memory-only storage",
                error=e.message,
            )

        self.sweeper.start()
        self.logger.info(
            "Hybrid storage initialized",
            durable_tier_connected=self.durable.connected,
        )

    async def create(
        self,
        content: str,
        content_type: ContentType = ContentType.TEXT,
        expiration_minutes: Optional[int] = None,
        password: Optional[str] = None,
        burn_after_reading: bool = False,
        max_access: Optional[int] = None,
    ) -> Tuple[str, datetime]:
        """Store a new clip and return its token and expiry instant.

        Inputs are assumed to be validated by the caller.
        """
        minutes = expiration_minutes or self.default_expiration_minutes
        now = self.clock()
        token = generate_token()
        expires_at = now + timedelta(minutes=minutes)

        clip = Clip(
            id=token,
            content=content,
            content_type=ContentType(content_type),
            created_at=now,
            expires_at=expires_at,
            max_access=max_access,
            password_hash=hash_password(password) if password else None,
            burn_after_reading=bool(burn_after_reading),
        )

        self.memory.set(clip)
        await self.durable.set(clip, minutes * 60)

        self.logger.info(
            "Clip created",
            token=token,
            expires_at=expires_at.isoformat(),
            durable=self.durable.connected,
        )
        self._record("clips_created_total")
        return token, expires_at

    async def read(self, token: str, password: Optional[str] = None) -> Optional[Clip]:
        """Return the clip content if every policy check passes, else None.

        A successful read increments the access count and, for
        burn-after-reading clips, deletes the clip. The returned clip is a
        copy taken after the increment.
        """
        async with self._token_guard(token):
            clip = await self._lookup(token)
            if clip is None:
                self._record("clip_reads_total", result="miss")
                return None

            now = self.clock()
            if clip.is_expired(now):
                await self._remove(token, "expired")
                self._record("clip_reads_total", result="expired")
                return None

            if clip.password_hash and (
                not password or not verify_password(password, clip.password_hash)
            ):
                self._record("clip_reads_total", result="denied")
                return None

            if clip.access_exhausted():
                await self._remove(token, "max_access")
                self._record("clip_reads_total", result="exhausted")
                return None

            clip.access_count += 1
            self.memory.set(clip)
            await self.durable.set(clip, clip.remaining_seconds(now))
            result = replace(clip)

            if clip.burn_after_reading:
                await self._remove(token, "burn")

            self.logger.info("Clip accessed", token=token, access_count=result.access_count)
            self._record("clip_reads_total", result="hit")
            return result

    async def peek(self, token: str) -> Optional[ClipInfo]:
        """Metadata for a live clip without counting an access or checking the password."""
        clip = await self._lookup(token)
        if clip is None or clip.is_expired(self.clock()):
            return None

        return ClipInfo(
            created_at=clip.created_at,
            expires_at=clip.expires_at,
            access_count=clip.access_count,
            content_type=clip.content_type,
        )

    async def delete(self, token: str) -> bool:
        """Remove a clip from both tiers; True if either tier held it."""
        async with self._token_guard(token):
            return await self._remove(token, "manual")

    async def stats(self) -> StorageStats:
        """Counts from a memory tier snapshot plus the durable tier key count."""
        now = self.clock()
        clips = self.memory.snapshot()
        active = [clip for clip in clips if clip.expires_at > now]
        durable_count = await self.durable.count()

        return StorageStats(
            total_clips=len(clips),
            active_clips=len(active),
            expired_clips=len(clips) - len(active),
            oldest_clip=min((clip.created_at for clip in active), default=None),
            total_accesses=sum(clip.access_count for clip in active),
            durable_tier_connected=self.durable.connected,
            fast_tier_count=len(clips),
            durable_tier_count=durable_count,
        )

    async def destroy(self) -> None:
        """Stop the sweeper and close the durable tier. Idempotent."""
        if self._destroyed:
            return
        self._destroyed = True

        await self.sweeper.stop()
        await self.durable.close()
        self.logger.info("Hybrid storage shut down")

    async def _lookup(self, token: str) -> Optional[Clip]:
        clip = self.memory.get(token)
        if clip is not None:
            return clip

        clip = await self.durable.get(token)
        if clip is not None and not clip.is_expired(self.clock()):
            self.memory.set(clip)
            self.logger.info("Clip restored from Redis to memory", token=token)
        return clip

    async def _remove(self, token: str, reason: str) -> bool:
        in_memory = self.memory.delete(token)
        in_durable = await self.durable.delete(token)
        deleted = in_memory or in_durable

        if deleted:
            self.logger.info(
                "Clip deleted",
                token=token,
                reason=reason,
                memory=in_memory,
                durable=in_durable,
            )
            self._record("clip_deletions_total", reason=reason)
        return deleted

    @asynccontextmanager
    async def _token_guard(self, token: str):
        if not self.token_locking:
            yield
            return

        lock = self._locks.get(token)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[token] = lock
        async with lock:
            yield

    def _record(self, metric_name: str, **labels) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.increment_counter(metric_name, **labels)
        except Exception as e:  # pragma: no cover - metrics failures never break storage
            self.logger.debug("Failed to record clip metric", metric=metric_name, error=str(e))
