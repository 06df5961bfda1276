"""
Storage package for the Clips service.

Provides the hybrid clip store: an in-process memory tier that is always
available, an optional Redis durable tier used as a TTL'd mirror and
restore source, and a background sweeper for expired entries.
"""

from .durable import DisabledDurableTier, DurableTier, RedisDurableTier, create_durable_tier
from .hybrid import HybridClipStore
from .memory import MemoryTier
from .sweeper import ExpirySweeper

__all__ = [
    "DisabledDurableTier",
    "DurableTier",
    "ExpirySweeper",
    "HybridClipStore",
    "MemoryTier",
    "RedisDurableTier",
    "create_durable_tier",
]
