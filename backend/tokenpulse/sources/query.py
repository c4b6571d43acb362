"""
Search query builder for the X API v2 recent search endpoint.

Query operators: https://developer.x.com/en/docs/twitter-api/tweets/search/integrate/build-a-query
"""
from __future__ import annotations

import re
from typing import Mapping, Optional

from tokenpulse.config import TOKEN_OFFICIAL_HANDLES, TOKEN_PROJECT_NAMES

# Posts must mention the ticker AND one of these terms, which filters out
# music, hashtags and other unrelated uses of short tickers.
CRYPTO_CONTEXT_TERMS = (
    '(crypto OR token OR cryptocurrency OR trading OR price OR market OR '
    'blockchain OR defi OR coin OR financial OR altcoin OR web3 OR '
    '"price action" OR "market cap")'
)

EXCLUSIONS = "-is:retweet -is:reply"

MAX_TICKER_LENGTH = 12
MIN_TICKER_LENGTH = 2


def normalize_ticker(token: str) -> str:
    """
    Normalize user input into a ticker symbol.

    Args:
        token: Raw input such as "$sol", "#ETH" or " btc "

    Returns:
        Upper-cased ticker without leading $ or # characters, at most 12 characters
    """
    trimmed = re.sub(r"^(?:[$#]\s*)+", "", token.strip())
    return trimmed.upper()[:MAX_TICKER_LENGTH]


def build_search_query(
    token: str,
    official_only: bool = False,
    from_handle: Optional[str] = None,
    lang: Optional[str] = None,
    crypto_context_only: bool = True,
    project_names: Mapping[str, str] = TOKEN_PROJECT_NAMES,
    official_handles: Mapping[str, str] = TOKEN_OFFICIAL_HANDLES,
) -> str:
    """
    Build a recent-search query for a token.

    Args:
        token: Ticker input, e.g. "sol" or "$SOL"
        official_only: Restrict to the project's official account, or to
            verified accounts when no handle is known
        from_handle: Explicit account (without @) used when official_only is set
        lang: Single BCP 47 language code, e.g. "en"
        crypto_context_only: Require a crypto/finance context term
        project_names: Curated ticker -> project display name table
        official_handles: Curated ticker -> official account table

    Returns:
        The query string, or "" when the ticker is too short. An empty query
        means "no results", the caller must not hit the network.
    """
    ticker = normalize_ticker(token)
    if len(ticker) < MIN_TICKER_LENGTH:
        return ""

    parts = [f'"${ticker}"', f'"{ticker}"', f"#{ticker}"]
    project_name = project_names.get(ticker)
    if project_name:
        parts.append(f'"{project_name}"')

    keyword_part = f"({' OR '.join(parts)})"
    context_clause = f" {CRYPTO_CONTEXT_TERMS}" if crypto_context_only else ""
    lang_suffix = f" lang:{lang.strip()}" if lang and lang.strip() else ""

    if official_only:
        handle = (from_handle or "").strip().lstrip("@") or official_handles.get(ticker)
        if handle:
            return f"from:{handle} {keyword_part}{context_clause} {EXCLUSIONS}{lang_suffix}".strip()
        return f"{keyword_part}{context_clause} {EXCLUSIONS} is:verified{lang_suffix}".strip()

    return f"{keyword_part}{context_clause} {EXCLUSIONS}{lang_suffix}".strip()
