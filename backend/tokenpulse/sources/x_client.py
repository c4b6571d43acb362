"""
File: tokenpulse/sources/x_client.py
X API v2 client: recent search and usage, with a single retry on 429.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from tokenpulse.config import Settings
from tokenpulse.exceptions import ConfigurationError, XApiError
from tokenpulse.models import JsonDict, RawPost
from tokenpulse.utils import parse_utc_datetime

logger = logging.getLogger(__name__)

SEARCH_PATH = "/2/tweets/search/recent"
USAGE_PATH = "/2/usage/tweets"

TWEET_FIELDS = "created_at,lang,public_metrics,author_id"
USER_FIELDS = "username,verified,public_metrics"


def parse_error_message(status: int, body: str) -> str:
    """
    Turn an X API error response into a human-readable message.

    Args:
        status: HTTP status code
        body: Raw response body

    Returns:
        Message suitable for showing to the user
    """
    try:
        parsed = json.loads(body)
    except (ValueError, TypeError):
        return body or f"X API error {status}"
    if not isinstance(parsed, dict):
        return body or f"X API error {status}"

    title = str(parsed.get("title") or "")
    detail = str(parsed.get("detail") or "")

    if status == 402 and (title == "CreditsDepleted" or "credits" in detail.lower()):
        return (
            "X API: Your account has no credits left. Add credits in the "
            "X Developer Portal (developer.x.com) to use the API."
        )
    if status == 429:
        return "X API: Rate limit exceeded. Try again later."
    if status in (401, 403):
        return "X API: Invalid or expired credentials. Check your X Bearer Token."
    if detail:
        return f"X API: {detail}"
    if title:
        return f"X API: {title}"
    return body or f"X API error {status}"


def map_response_to_raw_posts(payload: JsonDict) -> List[RawPost]:
    """
    Map a recent-search payload to RawPost objects, joining authors from includes.

    Args:
        payload: Decoded JSON body of /2/tweets/search/recent

    Returns:
        List of RawPost in provider order
    """
    users: Dict[str, JsonDict] = {
        u["id"]: u for u in (payload.get("includes") or {}).get("users", []) if u.get("id")
    }

    posts: List[RawPost] = []
    for tweet in payload.get("data") or []:
        author = users.get(tweet.get("author_id") or "")
        metrics = tweet.get("public_metrics") or {}
        followers: Optional[int] = None
        if author is not None:
            followers = (author.get("public_metrics") or {}).get("followers_count")

        posts.append(
            RawPost(
                id=str(tweet["id"]),
                text=tweet.get("text") or "",
                created_at=parse_utc_datetime(tweet.get("created_at")),
                author_username=author.get("username") if author else None,
                author_verified=author.get("verified") if author else None,
                author_followers=followers,
                like_count=int(metrics.get("like_count") or 0),
                retweet_count=int(metrics.get("retweet_count") or 0),
                reply_count=int(metrics.get("reply_count") or 0),
                quote_count=int(metrics.get("quote_count") or 0),
            )
        )
    return posts


class XClient:
    """Thin async wrapper over the X API v2 endpoints the pipeline needs."""

    def __init__(
        self,
        bearer_token: str,
        base_url: str = "https://api.x.com",
        timeout: float = 15.0,
        max_retries: int = 1,
        backoff_seconds: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not bearer_token:
            raise ConfigurationError("X_BEARER_TOKEN is required")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._headers = {
            "Authorization": f"Bearer {bearer_token}",
            "Content-Type": "application/json",
        }
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, bearer_token: Optional[str] = None) -> "XClient":
        return cls(
            bearer_token=bearer_token or settings.X_BEARER_TOKEN,
            base_url=settings.X_API_BASE_URL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            max_retries=settings.X_MAX_RETRIES,
            backoff_seconds=settings.X_BACKOFF_SECONDS,
        )

    async def _get(self, path: str, params: Dict[str, Any]) -> JsonDict:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers,
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            attempt = 0
            while True:
                try:
                    r = await client.get(path, params=params)
                except httpx.HTTPError as e:
                    raise XApiError(f"X API: request failed ({type(e).__name__})") from e

                if r.status_code == 429 and attempt < self.max_retries:
                    delay = self.backoff_seconds * (2 ** attempt)
                    logger.info("X API rate limited, retrying in %.1fs", delay)
                    await asyncio.sleep(delay)
                    attempt += 1
                    continue
                break

        if r.is_error:
            message = parse_error_message(r.status_code, r.text or r.reason_phrase)
            logger.warning("X API error %s on %s: %s", r.status_code, path, message)
            raise XApiError(message, status=r.status_code)

        try:
            return r.json()
        except ValueError as e:
            raise XApiError("X API: response was not valid JSON", status=r.status_code) from e

    async def search_recent(self, query: str, max_results: int = 100) -> List[RawPost]:
        """
        Run a recent search and map the results to RawPost objects.

        Args:
            query: Provider query string (see sources.query)
            max_results: Page size, clamped to the API's 10..100 range

        Returns:
            List of RawPost (possibly empty)
        """
        params = {
            "query": query,
            "max_results": str(max(10, min(max_results, 100))),
            "tweet.fields": TWEET_FIELDS,
            "expansions": "author_id",
            "user.fields": USER_FIELDS,
        }
        payload = await self._get(SEARCH_PATH, params)
        posts = map_response_to_raw_posts(payload)
        logger.debug("X search returned %d posts", len(posts))
        return posts

    async def fetch_usage(self) -> JsonDict:
        """Fetch today's post-consumption usage for the project."""
        return await self._get(USAGE_PATH, {"days": "1"})
