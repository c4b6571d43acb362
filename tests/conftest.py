from datetime import datetime, timedelta, timezone
import json

import pytest

from tokenpulse.models import RawPost

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_post(
    post_id: str,
    text: str | None = None,
    minutes_ago: float = 30,
    author: str | None = None,
    verified: bool | None = None,
    followers: int | None = None,
    likes: int = 0,
    retweets: int = 0,
    replies: int = 0,
    quotes: int = 0,
) -> RawPost:
    return RawPost(
        id=post_id,
        text=text if text is not None else f"post number {post_id} about $SOL price",
        created_at=NOW - timedelta(minutes=minutes_ago),
        author_username=author,
        author_verified=verified,
        author_followers=followers,
        like_count=likes,
        retweet_count=retweets,
        reply_count=replies,
        quote_count=quotes,
    )


def model_reply(**overrides) -> str:
    reply = {
        "requested_action": "BUY",
        "recommended_action": "BUY",
        "decision": "ALLOW",
        "bias": "BULLISH",
        "confidence": 0.8,
        "reason": "Fresh verified posts point to rising demand.",
        "key_factors": ["ETF inflows", "high engagement"],
        "post_ids_used": ["1", "2"],
        "safety_notes": "Short-term social signal only.",
    }
    reply.update(overrides)
    return json.dumps(reply)


class FakeXClient:
    def __init__(self, posts=None, error=None):
        self.posts = posts or []
        self.error = error
        self.queries = []

    async def search_recent(self, query, max_results=100):
        self.queries.append((query, max_results))
        if self.error is not None:
            raise self.error
        return list(self.posts)

    async def fetch_usage(self):
        if self.error is not None:
            raise self.error
        return {"data": {"project_usage": 42, "project_cap": 10000}}


class FakeLLMClient:
    def __init__(self, replies=None, error=None):
        self.replies = list(replies or [])
        self.error = error
        self.calls = []

    async def complete(self, system_prompt, user_prompt, follow_up=None):
        self.calls.append({"system": system_prompt, "user": user_prompt, "follow_up": follow_up})
        if self.error is not None:
            raise self.error
        return self.replies.pop(0) if self.replies else None


@pytest.fixture()
def now():
    return NOW
