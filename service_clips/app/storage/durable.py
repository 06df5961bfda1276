"""
Durable tier adapters for the clip store.

The store always talks to a ``DurableTier``. When no Redis URL is configured
it gets a ``DisabledDurableTier`` whose calls are no-ops, so the store never
branches on whether persistence is enabled.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from contextlib import suppress
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, TYPE_CHECKING
from urllib.parse import urlparse

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff

from shared.config import BaseConfig
from shared.errors import DurableTierError
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, retry_on_exception

from ..models import Clip, ContentType

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_KEY_PREFIX = "clip:"


def encode_clip(clip: Clip) -> str:
    """Serialize a clip to the flat JSON record stored in Redis."""
    return json.dumps({
        "id": clip.id,
        "content": clip.content,
        "contentType": clip.content_type.value,
        "createdAt": clip.created_at.isoformat(),
        "expiresAt": clip.expires_at.isoformat(),
        "accessCount": clip.access_count,
        "maxAccess": clip.max_access,
        "passwordHash": clip.password_hash,
        "burnAfterReading": clip.burn_after_reading,
    })


def decode_clip(payload: str) -> Clip:
    """Rebuild a clip from its stored record; timestamps come back as datetimes."""
    data = json.loads(payload)
    return Clip(
        id=data["id"],
        content=data["content"],
        content_type=ContentType(data.get("contentType") or ContentType.TEXT.value),
        created_at=parse_timestamp(data["createdAt"]),
        expires_at=parse_timestamp(data["expiresAt"]),
        access_count=int(data.get("accessCount") or 0),
        max_access=data.get("maxAccess"),
        password_hash=data.get("passwordHash"),
        burn_after_reading=bool(data.get("burnAfterReading", False)),
    )


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def redact_url(url: str) -> str:
    """Drop credentials from a connection URL before logging it."""
    parsed = urlparse(url)
    if parsed.password is None and parsed.username is None:
        return url
    host = parsed.hostname or ""
    if parsed.port:
        host = f"{host}:{parsed.port}"
    return parsed._replace(netloc=f"***@{host}").geturl()


class DurableTier(ABC):
    """Interface for the optional persistence mirror behind the memory tier."""

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether calls are currently being sent to the backing store."""

    @abstractmethod
    async def connect(self) -> None:
        """Establish the connection; raise DurableTierError on failure."""

    @abstractmethod
    async def get(self, token: str) -> Optional[Clip]:
        """Fetch a clip, or None on miss or failure."""

    @abstractmethod
    async def set(self, clip: Clip, ttl_seconds: int) -> bool:
        """Store a clip with a native TTL; False on failure."""

    @abstractmethod
    async def delete(self, token: str) -> bool:
        """Delete a clip; True only if a key was removed."""

    @abstractmethod
    async def count(self) -> int:
        """Best-effort number of stored clips."""

    @abstractmethod
    async def close(self) -> None:
        """Release the connection. Safe to call more than once."""


class DisabledDurableTier(DurableTier):
    """Stand-in used when no durable store is configured."""

    def __init__(self):
        self.logger = get_logger("clips.storage.durable")

    @property
    def connected(self) -> bool:
        return False

    async def connect(self) -> None:
        self.logger.info("No Redis URL configured, using memory-only storage")

    async def get(self, token: str) -> Optional[Clip]:
        return None

    async def set(self, clip: Clip, ttl_seconds: int) -> bool:
        return False

    async def delete(self, token: str) -> bool:
        return False

    async def count(self) -> int:
        return 0

    async def close(self) -> None:
        return None


class RedisDurableTier(DurableTier):
    """Redis-backed durable tier.

    Command failures never propagate: they are logged, the connection flag
    drops to False, and the call returns its miss value. While the flag is
    False no commands are sent; a background health monitor pings Redis and
    restores the flag once it answers again.
    """

    def __init__(
        self,
        redis_url: str,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        connect_timeout: float = 5.0,
        socket_timeout: float = 5.0,
        max_retries: int = 3,
        retry_backoff: float = 0.1,
        health_check_interval: float = 30.0,
        drain_timeout: float = 5.0,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.connect_timeout = connect_timeout
        self.socket_timeout = socket_timeout
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.health_check_interval = health_check_interval
        self.drain_timeout = drain_timeout
        self.metrics = metrics
        self.logger = get_logger("clips.storage.redis")

        self._redis: Optional[redis.Redis] = None
        self._connected = False
        self._closed = False
        self._monitor_task: Optional[asyncio.Task] = None
        self._inflight = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def connected(self) -> bool:
        return self._connected and not self._closed

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=self.connect_timeout,
                socket_timeout=self.socket_timeout,
                retry=Retry(NoBackoff(), 0),
                health_check_interval=self.health_check_interval,
            )
        return self._redis

    def _key(self, token: str) -> str:
        return f"{self.key_prefix}{token}"

    async def connect(self) -> None:
        """Ping Redis with bounded retries, then start the health monitor."""
        retry_config = RetryConfig(max_attempts=self.max_retries, delay=self.retry_backoff)

        @retry_on_exception((Exception,), retry_config)
        async def ping() -> None:
            client = await self._get_redis()
            await client.ping()

        try:
            await ping()
        except RetryError as e:
            self._set_connected(False)
            self._ensure_monitor()
            self.logger.warning(
                "Redis connection failed, using memory-only storage",
                url=redact_url(self.redis_url),
                error=str(e.last_exception),
            )
            raise DurableTierError(
                "Redis connection failed",
                {"url": redact_url(self.redis_url), "attempts": e.attempts},
            ) from e

        self._set_connected(True)
        self._ensure_monitor()
        self.logger.info("Redis connected", url=redact_url(self.redis_url))

    async def get(self, token: str) -> Optional[Clip]:
        payload = await self._execute("get", None, lambda client: client.get(self._key(token)))
        if not payload:
            return None

        try:
            return decode_clip(payload)
        except (ValueError, KeyError, TypeError) as e:
            self.logger.warning("Discarding undecodable clip record", token=token, error=str(e))
            return None

    async def set(self, clip: Clip, ttl_seconds: int) -> bool:
        payload = encode_clip(clip)
        ttl = max(1, int(ttl_seconds))
        result = await self._execute(
            "set", False, lambda client: client.set(self._key(clip.id), payload, ex=ttl)
        )
        return bool(result)

    async def delete(self, token: str) -> bool:
        removed = await self._execute("delete", 0, lambda client: client.delete(self._key(token)))
        return bool(removed)

    async def count(self) -> int:
        keys = await self._execute("keys", [], lambda client: client.keys(f"{self.key_prefix}*"))
        return len(keys)

    async def close(self) -> None:
        """Stop the monitor, let in-flight commands drain, then close the client."""
        if self._closed:
            return
        self._closed = True

        if self._monitor_task is not None:
            self._monitor_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._monitor_task
            self._monitor_task = None

        if self._inflight:
            try:
                await asyncio.wait_for(self._idle.wait(), timeout=self.drain_timeout)
            except asyncio.TimeoutError:
                self.logger.warning("Closing Redis with commands still in flight", inflight=self._inflight)

        if self._redis is not None:
            try:
                await self._redis.aclose()
            except Exception as e:
                self.logger.error("Error closing Redis connection", error=str(e))
            self._redis = None

        self._set_connected(False)
        self.logger.info("Redis connection closed")

    async def check_health(self) -> bool:
        """Ping once and update the connection flag."""
        try:
            client = await self._get_redis()
            await client.ping()
        except Exception as e:
            if self._connected:
                self.logger.error("Redis connection lost", error=str(e))
            self._set_connected(False)
            return False

        if not self._connected:
            self.logger.info("Redis reconnected")
        self._set_connected(True)
        return True

    async def _monitor(self) -> None:
        while not self._closed:
            await asyncio.sleep(self.health_check_interval)
            await self.check_health()

    def _ensure_monitor(self) -> None:
        if self._closed or self.health_check_interval <= 0:
            return
        if self._monitor_task is None or self._monitor_task.done():
            self._monitor_task = asyncio.create_task(self._monitor())

    async def _execute(
        self,
        operation: str,
        default: Any,
        command: Callable[[redis.Redis], Awaitable[Any]],
    ) -> Any:
        """Run one command, or return ``default`` if disconnected or failing."""
        if not self.connected:
            return default

        self._inflight += 1
        self._idle.clear()
        try:
            client = await self._get_redis()
            return await command(client)
        except Exception as e:
            self.logger.error("Redis command failed", operation=operation, error=str(e))
            self._record_error(operation)
            self._set_connected(False)
            return default
        finally:
            self._inflight -= 1
            if self._inflight == 0:
                self._idle.set()

    def _set_connected(self, value: bool) -> None:
        self._connected = value
        if self.metrics:
            try:
                self.metrics.set_gauge("durable_tier_connected", 1 if value else 0)
            except Exception as e:  # pragma: no cover - metrics failures never break storage
                self.logger.debug("Failed to record connection gauge", error=str(e))

    def _record_error(self, operation: str) -> None:
        if self.metrics:
            try:
                self.metrics.increment_counter("durable_tier_errors_total", operation=operation)
            except Exception as e:  # pragma: no cover - metrics failures never break storage
                self.logger.debug("Failed to record durable tier error", error=str(e))


def create_durable_tier(
    config: BaseConfig,
    metrics: Optional["MetricsCollector"] = None,
) -> DurableTier:
    """Pick the durable tier implementation once, from configuration."""
    url = config.durable_url
    if not url:
        return DisabledDurableTier()

    return RedisDurableTier(
        url,
        key_prefix=config.redis_key_prefix,
        connect_timeout=config.redis_connect_timeout,
        socket_timeout=config.redis_socket_timeout,
        max_retries=config.redis_max_retries,
        retry_backoff=config.redis_retry_backoff,
        health_check_interval=config.redis_health_check_interval,
        drain_timeout=config.shutdown_drain_timeout,
        metrics=metrics,
    )
