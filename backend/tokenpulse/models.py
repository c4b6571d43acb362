"""
File: tokenpulse/models.py
Internal data structures used during ranking and evidence compaction.

All of these are request-scoped and never mutated after construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


JsonDict = Dict[str, Any]


@dataclass(frozen=True)
class RawPost:
    """One fetched social post, as mapped from the search provider."""

    id: str
    text: str
    created_at: datetime
    author_username: Optional[str] = None
    author_verified: Optional[bool] = None
    author_followers: Optional[int] = None
    like_count: int = 0
    retweet_count: int = 0
    reply_count: int = 0
    quote_count: int = 0


@dataclass(frozen=True)
class ScoredPost:
    """A RawPost with its ranking score attached."""

    post: RawPost
    score: float
    engagement_score: int  # rounded engagement before multipliers

    @property
    def author_key(self) -> str:
        # Posts without a known author count as their own author
        if self.post.author_username is not None:
            return self.post.author_username
        return self.post.id


@dataclass(frozen=True)
class CompactPost:
    """Minimal LLM-facing projection of a selected post."""

    id: str
    age_min: int
    engagement_score: int
    verified: bool
    text: str


__all__ = ["RawPost", "ScoredPost", "CompactPost", "JsonDict"]
