"""
Fast tier: the in-process clip table.
"""

from datetime import datetime
from typing import Dict, List, Optional

from ..models import Clip


class MemoryTier:
    """Process-local mapping of token -> Clip.

    Every method is a single discrete mutation or read, so on one event loop
    each call is atomic with respect to other store operations.
    """

    def __init__(self):
        self._clips: Dict[str, Clip] = {}

    def get(self, token: str) -> Optional[Clip]:
        return self._clips.get(token)

    def set(self, clip: Clip) -> None:
        self._clips[clip.id] = clip

    def delete(self, token: str) -> bool:
        return self._clips.pop(token, None) is not None

    def snapshot(self) -> List[Clip]:
        return list(self._clips.values())

    def purge_expired(self, now: datetime) -> int:
        """Remove every clip whose expiry has passed; return how many."""
        expired = [token for token, clip in self._clips.items() if clip.is_expired(now)]
        for token in expired:
            del self._clips[token]
        return len(expired)

    def __contains__(self, token: str) -> bool:
        return token in self._clips

    def __len__(self) -> int:
        return len(self._clips)
