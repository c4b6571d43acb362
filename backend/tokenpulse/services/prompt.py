"""
Prompt construction for the trade-signal analysis call.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import List

from tokenpulse.models import CompactPost

SYSTEM_PROMPT = (
    "You are a short-term market context analyst for a crypto token, using ONLY the "
    "provided X posts. Output ONLY valid minified JSON. No markdown. No extra keys.\n"
    "\n"
    "Strict schema:\n"
    '{"requested_action":"BUY|SELL","recommended_action":"BUY|SELL|HOLD",'
    '"decision":"ALLOW|ABORT|REVERSE","bias":"BULLISH|BEARISH|MIXED|UNCLEAR",'
    '"confidence":0-1,"reason":"<=180 chars","key_factors":["<=60 chars", "... up to 5"],'
    '"post_ids_used":["id", "..."],"safety_notes":"<=120 chars"}\n'
    "\n"
    "Definitions:\n"
    "- bias = short-term sentiment about the TOKEN implied by the posts.\n"
    "- confidence = strength/clarity of evidence (recency + engagement + verified + "
    "consistency across posts).\n"
    "\n"
    "Decision rules:\n"
    '- If requested_action !== recommended_action => decision must be "REVERSE".\n'
    "- Else decision is:\n"
    '  - "ALLOW" if posts support the requested_action with confidence >= 0.6.\n'
    '  - "ABORT" if posts contradict the requested_action (or high risk/uncertainty) '
    "and you do not recommend the opposite.\n"
    "- recommended_action rules:\n"
    '  - If confidence >= 0.6 and bias is BULLISH => recommended_action="BUY".\n'
    '  - If confidence >= 0.6 and bias is BEARISH => recommended_action="SELL".\n'
    '  - Otherwise recommended_action="HOLD" and bias must be MIXED or UNCLEAR.\n'
    "\n"
    "Evidence rules:\n"
    "- Use 2-5 post_ids_used, subset only, prefer newest/high-eng/verified.\n"
    "- Do not speculate beyond the posts. If unclear, say UNCLEAR + HOLD. "
    "Keep reason/safety_notes extremely compact."
)

USER_NOTES = (
    "prioritize lower age_min and higher eng; treat verified=true as higher credibility."
)

REPAIR_INSTRUCTION = (
    "Your previous response was invalid. Reply with only the JSON object, no markdown."
)


@dataclass(frozen=True)
class CompiledPrompt:
    system_prompt: str
    user_prompt: str


def build_user_prompt(requested_action: str, token: str, posts: List[CompactPost]) -> str:
    """
    Render the request parameters and compact evidence as the user message.

    Args:
        requested_action: "BUY" or "SELL"
        token: Normalized ticker
        posts: Compact evidence in selection order

    Returns:
        Line-oriented payload ending with the posts as minified JSON
    """
    posts_json = json.dumps(
        [
            {
                "id": p.id,
                "age_min": p.age_min,
                "eng": p.engagement_score,
                "verified": p.verified,
                "text": p.text,
            }
            for p in posts
        ],
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return (
        f"requested_action={requested_action}\n"
        f"token={token}\n"
        f"notes: {USER_NOTES}\n"
        f"posts={posts_json}"
    )


def compile_prompt(requested_action: str, token: str, posts: List[CompactPost]) -> CompiledPrompt:
    return CompiledPrompt(
        system_prompt=SYSTEM_PROMPT,
        user_prompt=build_user_prompt(requested_action, token, posts),
    )
