"""
In-process store correlating reviews with later enhancement requests
"""

import asyncio
import hashlib
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from claimdoc.config import settings
from claimdoc.core.exceptions import NotFoundError, ValidationError
from claimdoc.core.logging import get_logger
from claimdoc.core.security import security_manager

logger = get_logger(__name__)


class ReviewSource(str, Enum):
    OPENAI = "openai"
    CLAIMKIT = "claimkit"


def fingerprint_notes(notes: str) -> str:
    """Short, non-reversible identifier for a note. Note text itself is never stored."""
    return hashlib.sha256(notes.strip().encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class ReviewSession:
    review_id: str
    source: ReviewSource
    notes_fingerprint: str
    feedback: str
    partner_request_id: Optional[str] = None
    created_at: float = field(default_factory=time.monotonic)


class ReviewSessionStore:
    """
    Keyed map ``review_id -> ReviewSession`` with TTL expiry and a size cap.
    The oldest session is evicted first once the cap is reached.
    """

    def __init__(self, ttl_seconds: Optional[int] = None, max_entries: Optional[int] = None, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.review_session_ttl_seconds
        self.max_entries = max_entries if max_entries is not None else settings.review_session_max_entries
        self._clock = clock
        self._sessions: "OrderedDict[str, ReviewSession]" = OrderedDict()
        self._lock = asyncio.Lock()

    async def create(
        self,
        source: ReviewSource,
        notes: str,
        feedback: str,
        partner_request_id: Optional[str] = None,
    ) -> ReviewSession:
        session = ReviewSession(
            review_id=security_manager.generate_request_id(),
            source=source,
            notes_fingerprint=fingerprint_notes(notes),
            feedback=feedback,
            partner_request_id=partner_request_id,
            created_at=self._clock(),
        )
        async with self._lock:
            self._purge_expired()
            while len(self._sessions) >= self.max_entries:
                evicted_id, _ = self._sessions.popitem(last=False)
                logger.info("Evicted review session", review_id=evicted_id)
            self._sessions[session.review_id] = session
        logger.info("Stored review session", review_id=session.review_id, source=source.value)
        return session

    async def get(self, review_id: str, source: Optional[ReviewSource] = None) -> ReviewSession:
        async with self._lock:
            self._purge_expired()
            session = self._sessions.get(review_id)
        if session is None:
            raise NotFoundError(f"Review '{review_id}' not found or expired", {"review_id": review_id})
        if source is not None and session.source != source:
            raise ValidationError(
                f"Review '{review_id}' was not produced by {source.value}",
                {"review_id": review_id, "source": session.source.value},
            )
        return session

    async def size(self) -> int:
        async with self._lock:
            self._purge_expired()
            return len(self._sessions)

    def _purge_expired(self):
        cutoff = self._clock() - self.ttl_seconds
        # Insertion order equals creation order
        while self._sessions:
            oldest_id, oldest = next(iter(self._sessions.items()))
            if oldest.created_at > cutoff:
                break
            del self._sessions[oldest_id]
