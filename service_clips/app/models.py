"""
Clip data models for the Clips service.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

MAX_CONTENT_BYTES = 100_000
MIN_EXPIRATION_MINUTES = 1
MAX_EXPIRATION_MINUTES = 10080  # 7 days
DEFAULT_EXPIRATION_MINUTES = 60
TOKEN_PATTERN = r"^[0-9a-fA-F]{32}$"


class ContentType(str, Enum):
    """Informational content tag; the store never interprets it."""
    TEXT = "text"
    URL = "url"
    CODE = "code"


@dataclass
class Clip:
    """A stored clip and its access policy."""
    id: str
    content: str
    created_at: datetime
    expires_at: datetime
    content_type: ContentType = ContentType.TEXT
    access_count: int = 0
    max_access: Optional[int] = None
    password_hash: Optional[str] = None
    burn_after_reading: bool = False

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def access_exhausted(self) -> bool:
        return bool(self.max_access) and self.access_count >= self.max_access

    def remaining_seconds(self, now: datetime) -> int:
        return int((self.expires_at - now).total_seconds())


@dataclass
class ClipInfo:
    """Metadata returned by peek; never contains content."""
    created_at: datetime
    expires_at: datetime
    access_count: int
    content_type: ContentType


@dataclass
class StorageStats:
    """Snapshot of the store."""
    total_clips: int
    active_clips: int
    expired_clips: int
    oldest_clip: Optional[datetime]
    total_accesses: int
    durable_tier_connected: bool
    fast_tier_count: int
    durable_tier_count: int


class CreateClipRequest(BaseModel):
    """Request model for clip creation."""
    content: str = Field(..., min_length=1, description="Clip content")
    contentType: ContentType = Field(ContentType.TEXT, description="Content type tag")
    expirationMinutes: Optional[int] = Field(
        None,
        ge=MIN_EXPIRATION_MINUTES,
        le=MAX_EXPIRATION_MINUTES,
        description="Lifetime in minutes (default 60)",
    )
    password: Optional[str] = Field(None, min_length=4, max_length=100, description="Optional read password")
    burnAfterReading: bool = Field(False, description="Delete after the first successful read")
    maxAccess: Optional[int] = Field(None, ge=1, le=1000, description="Maximum successful reads")

    @field_validator("content")
    @classmethod
    def content_within_size(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_CONTENT_BYTES:
            raise ValueError("Content must be less than 100KB")
        return value


class CreateClipResponse(BaseModel):
    """Response model for clip creation."""
    success: bool = True
    token: str
    url: str
    expiresAt: str
    expiresIn: str
    message: str = "Clip created successfully"
