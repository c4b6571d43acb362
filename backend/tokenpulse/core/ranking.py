"""
Post ranking and evidence compaction.

Turns a noisy, duplicate-laden list of raw posts into a short, ordered,
deduplicated selection and an LLM-ready compact projection of it. Scoring is
multiplicative over engagement, recency, author credibility and a spam
penalty. Selection prefers score early and author diversity late.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional

from tokenpulse.config import (
    AUTHOR_CAP,
    AUTHOR_CAP_MIN_RESULTS,
    COMPACT_TEXT_LENGTH,
    DEDUP_KEY_LENGTH,
)
from tokenpulse.models import CompactPost, RawPost, ScoredPost
from tokenpulse.schemas import NormalizedPost
from tokenpulse.utils import minutes_between, normalize_text, now_utc

GIVEAWAY_PATTERN = re.compile(
    r"giveaway|retweet|follow\s+to\s+win|free\s+\$|airdrop", re.IGNORECASE
)
EMOJI_PATTERN = re.compile("[\U0001F300-\U0001F9FF]")
MAX_EMOJI = 5


@dataclass(frozen=True)
class RankedEvidence:
    """Selection output: UI-facing posts plus their compact LLM projection."""

    top_posts: List[NormalizedPost] = field(default_factory=list)
    compact_posts: List[CompactPost] = field(default_factory=list)


def calculate_engagement(post: RawPost) -> int:
    """Weighted interaction count: quotes > reposts = replies > likes."""
    return (
        post.like_count
        + 2 * post.retweet_count
        + 2 * post.reply_count
        + 3 * post.quote_count
    )


def calculate_recency_boost(created_at: datetime, now: datetime) -> float:
    """
    Step-function freshness multiplier.

    Args:
        created_at: Post creation time
        now: Evaluation time shared by the whole ranking call

    Returns:
        1.5 within an hour, 1.2 within 6 hours, 1.0 within a day, else 0.8
    """
    minutes_ago = minutes_between(created_at, now)
    if minutes_ago <= 60:
        return 1.5
    if minutes_ago <= 360:
        return 1.2
    if minutes_ago <= 1440:
        return 1.0
    return 0.8


def calculate_author_boost(post: RawPost) -> float:
    """Verified accounts and larger audiences count for more."""
    boost = 1.0
    if post.author_verified:
        boost *= 1.3
    followers = post.author_followers or 0
    if followers >= 10_000:
        boost *= 1.2
    elif followers >= 1_000:
        boost *= 1.1
    return boost


def calculate_spam_penalty(text: str) -> float:
    """Giveaway-style promotion and emoji-heavy text are down-weighted; both stack."""
    penalty = 1.0
    if GIVEAWAY_PATTERN.search(text):
        penalty *= 0.3
    if len(EMOJI_PATTERN.findall(text)) > MAX_EMOJI:
        penalty *= 0.8
    return penalty


def score_post(post: RawPost, now: datetime) -> ScoredPost:
    engagement = calculate_engagement(post)
    score = (
        engagement
        * calculate_recency_boost(post.created_at, now)
        * calculate_author_boost(post)
        * calculate_spam_penalty(post.text)
    )
    return ScoredPost(post=post, score=score, engagement_score=round(engagement))


def dedup_key(text: str) -> str:
    """Lower-cased, whitespace-collapsed prefix used to detect duplicate posts."""
    return normalize_text(text.lower())[:DEDUP_KEY_LENGTH]


def deduplicate_posts(posts: Iterable[RawPost]) -> List[RawPost]:
    """
    Drop posts whose normalized text was already seen.

    The first occurrence in input order wins, regardless of score.
    """
    seen: set[str] = set()
    unique: List[RawPost] = []
    for post in posts:
        key = dedup_key(post.text)
        if key in seen:
            continue
        seen.add(key)
        unique.append(post)
    return unique


def select_diverse(
    candidates: List[ScoredPost],
    top_n: int,
    author_cap: int = AUTHOR_CAP,
    cap_min_results: int = AUTHOR_CAP_MIN_RESULTS,
) -> List[ScoredPost]:
    """
    Pick up to top_n posts from a score-sorted candidate list.

    Pass 1 walks the candidates in score order and skips an author who
    already has `author_cap` accepted posts once the selection holds at
    least `cap_min_results` posts. Pass 2 backfills from the skipped
    candidates, still in score order, until top_n is met or the pool is
    exhausted.

    Args:
        candidates: Scored posts sorted by score, highest first
        top_n: Maximum number of posts to return

    Returns:
        Selected posts in selection order
    """
    if top_n <= 0:
        return []

    selected: List[ScoredPost] = []
    taken: set[int] = set()
    per_author: dict[str, int] = {}

    for index, candidate in enumerate(candidates):
        if len(selected) >= top_n:
            break
        count = per_author.get(candidate.author_key, 0)
        if count >= author_cap and len(selected) >= cap_min_results:
            continue
        per_author[candidate.author_key] = count + 1
        selected.append(candidate)
        taken.add(index)

    for index, candidate in enumerate(candidates):
        if len(selected) >= top_n:
            break
        if index not in taken:
            selected.append(candidate)
            taken.add(index)

    return selected


def to_normalized_post(scored: ScoredPost) -> NormalizedPost:
    post = scored.post
    return NormalizedPost(
        id=post.id,
        text=post.text,
        created_at=post.created_at,
        author_username=post.author_username,
        author_verified=post.author_verified,
        author_followers=post.author_followers,
        like_count=post.like_count,
        retweet_count=post.retweet_count,
        reply_count=post.reply_count,
        quote_count=post.quote_count,
        engagement_score=scored.engagement_score,
    )


def to_compact_post(scored: ScoredPost, now: datetime) -> CompactPost:
    post = scored.post
    return CompactPost(
        id=post.id,
        age_min=math.floor(minutes_between(post.created_at, now)),
        engagement_score=scored.engagement_score,
        verified=bool(post.author_verified),
        text=post.text[:COMPACT_TEXT_LENGTH],
    )


def rank_posts(
    raw_posts: Iterable[RawPost],
    top_n: int,
    now: Optional[datetime] = None,
) -> RankedEvidence:
    """
    Score, deduplicate, diversify and truncate raw posts.

    Args:
        raw_posts: Posts as fetched, in provider order
        top_n: Maximum number of posts to select
        now: Evaluation time; captured once and reused for every post

    Returns:
        RankedEvidence with the ordered selection and its compact projection
    """
    now = now or now_utc()

    scored = [score_post(post, now) for post in deduplicate_posts(raw_posts)]
    by_score = sorted(scored, key=lambda p: p.score, reverse=True)
    selected = select_diverse(by_score, top_n)

    return RankedEvidence(
        top_posts=[to_normalized_post(p) for p in selected],
        compact_posts=[to_compact_post(p, now) for p in selected],
    )


# Short alias used by the collector
rank = rank_posts
