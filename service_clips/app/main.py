"""
Clips service for short-lived text sharing.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, Optional

from fastapi import Path, Query, Request
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import ClipNotFoundError

from .models import (
    CreateClipRequest,
    CreateClipResponse,
    DEFAULT_EXPIRATION_MINUTES,
    TOKEN_PATTERN,
)
from .storage import HybridClipStore

SERVICE_NAME = "clips"
SERVICE_PORT = 8000

TokenPath = Annotated[str, Path(pattern=TOKEN_PATTERN, description="32-character hex clip token")]


def _iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def _remaining_ms(expires_at: datetime, now: datetime) -> int:
    return max(0, int((expires_at - now).total_seconds() * 1000))


class ClipsService(BaseService):
    """Clips service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        store: Optional[HybridClipStore] = None,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config=config)

        self.store = store or HybridClipStore.from_config(self.config, metrics=self.metrics)

        self._setup_clip_routes()

    async def startup(self):
        await self.store.start()

    async def shutdown(self):
        self.logger.info("Shutting down gracefully")
        await self.store.destroy()

    async def _check_dependencies(self) -> Dict[str, str]:
        return {
            "memory": "ok",
            "redis": "ok" if self.store.durable_connected else "unavailable",
        }

    def _setup_clip_routes(self):
        """Set up clip routes."""
        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Clips Service - share text that expires",
                "version": "1.0.0",
                "endpoints": [
                    "POST /api/clip - Create a new clip",
                    "GET /api/clip/{token} - Retrieve a clip",
                    "GET /api/clip/{token}/info - Clip metadata",
                    "DELETE /api/clip/{token} - Delete a clip",
                    "GET /api/stats - Storage statistics",
                    "GET /health - Health check",
                ],
            }

        @self.app.post("/api/clip", status_code=201, response_model=CreateClipResponse)
        async def create_clip(body: CreateClipRequest, request: Request):
            """Create a new clip."""
            token, expires_at = await self.store.create(
                body.content,
                content_type=body.contentType,
                expiration_minutes=body.expirationMinutes,
                password=body.password,
                burn_after_reading=body.burnAfterReading,
                max_access=body.maxAccess,
            )

            return CreateClipResponse(
                token=token,
                url=str(request.url_for("read_clip", token=token)),
                expiresAt=_iso(expires_at),
                expiresIn=f"{body.expirationMinutes or DEFAULT_EXPIRATION_MINUTES} minutes",
            )

        @self.app.get("/api/clip/{token}", name="read_clip")
        async def read_clip(
            token: TokenPath,
            password: Optional[str] = Query(None, description="Password for protected clips"),
        ):
            """Retrieve a clip; counts as an access."""
            clip = await self.store.read(token, password)
            if clip is None:
                raise ClipNotFoundError()

            now = self.store.clock()
            return {
                "success": True,
                "data": {
                    "content": clip.content,
                    "contentType": clip.content_type.value,
                    "createdAt": _iso(clip.created_at),
                    "accessCount": clip.access_count,
                    "burnAfterReading": clip.burn_after_reading,
                },
                "metadata": {
                    "expiresAt": _iso(clip.expires_at),
                    "timeRemaining": _remaining_ms(clip.expires_at, now),
                },
            }

        @self.app.get("/api/clip/{token}/info")
        async def clip_info(token: TokenPath):
            """Get clip metadata without accessing its content."""
            info = await self.store.peek(token)
            if info is None:
                raise ClipNotFoundError("The clip may have expired or the token is invalid.")

            return {
                "success": True,
                "data": {
                    "createdAt": _iso(info.created_at),
                    "expiresAt": _iso(info.expires_at),
                    "accessCount": info.access_count,
                    "contentType": info.content_type.value,
                    "timeRemaining": _remaining_ms(info.expires_at, self.store.clock()),
                },
            }

        @self.app.delete("/api/clip/{token}")
        async def delete_clip(token: TokenPath):
            """Delete a clip."""
            if not await self.store.delete(token):
                raise ClipNotFoundError("The clip may have already been deleted or the token is invalid.")

            return {"success": True, "message": "Clip deleted successfully"}

        @self.app.get("/api/stats")
        async def get_stats():
            """Get storage statistics."""
            stats = await self.store.stats()
            data: Dict[str, Any] = {
                "totalClips": stats.total_clips,
                "activeClips": stats.active_clips,
                "expiredClips": stats.expired_clips,
                "oldestClip": _iso(stats.oldest_clip) if stats.oldest_clip else None,
                "totalAccesses": stats.total_accesses,
                "redisConnected": stats.durable_tier_connected,
                "memoryClips": stats.fast_tier_count,
                "redisClips": stats.durable_tier_count,
            }
            return JSONResponse(status_code=200, content={"success": True, "data": data})


def create_app(config: Optional[ServiceConfig] = None):
    """Create clips service application."""
    service = ClipsService(config=config)
    return service.app


def main():
    service = ClipsService(get_config(SERVICE_NAME, SERVICE_PORT))
    service.run()


if __name__ == "__main__":
    main()
