"""
Evidence collection: query -> recent search -> ranking.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from tokenpulse.config import DEFAULT_MAX_POSTS, SEARCH_MAX_RESULTS
from tokenpulse.core.ranking import RankedEvidence, rank
from tokenpulse.sources.query import build_search_query
from tokenpulse.sources.x_client import XClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchOptions:
    """Per-request search and selection options."""

    max_posts: int = DEFAULT_MAX_POSTS
    official_only: bool = False
    from_handle: Optional[str] = None
    lang: Optional[str] = None
    crypto_context_only: bool = True


async def fetch_recent_posts_for_token(
    token: str,
    options: SearchOptions,
    x_client: XClient,
    now: Optional[datetime] = None,
) -> RankedEvidence:
    """
    Collect and rank recent posts for a token.

    Args:
        token: Ticker input (normalized by the query builder)
        options: Search and selection options
        x_client: Search provider client
        now: Evaluation time for ranking (defaults to current UTC time)

    Returns:
        RankedEvidence, empty when the ticker is unusable or nothing matched
    """
    query = build_search_query(
        token,
        official_only=options.official_only,
        from_handle=options.from_handle,
        lang=options.lang,
        crypto_context_only=options.crypto_context_only,
    )
    if not query:
        logger.info("Ticker %r too short, skipping search", token)
        return RankedEvidence()

    logger.debug("Searching X with query: %s", query)
    raw_posts = await x_client.search_recent(query, SEARCH_MAX_RESULTS)

    evidence = rank(raw_posts, options.max_posts, now=now)
    logger.info(
        "Selected %d of %d posts for %s", len(evidence.top_posts), len(raw_posts), token
    )
    return evidence
