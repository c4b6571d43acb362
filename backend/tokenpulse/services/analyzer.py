"""
Analysis pipeline: query -> fetch -> rank -> prompt -> model -> decision.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Union

from tokenpulse.exceptions import CollaboratorError, NoResultsError
from tokenpulse.schemas import AnalyzeResponse, ErrorResponse
from tokenpulse.services.decision import (
    apply_decision_policy,
    normalize_decision,
    parse_model_output,
)
from tokenpulse.services.llm import LLMClient
from tokenpulse.services.prompt import REPAIR_INSTRUCTION, compile_prompt
from tokenpulse.sources.collector import SearchOptions, fetch_recent_posts_for_token
from tokenpulse.sources.query import normalize_ticker
from tokenpulse.sources.x_client import XClient
from tokenpulse.utils import now_utc

logger = logging.getLogger(__name__)


async def analyze(
    token: str,
    requested_action: str,
    options: SearchOptions,
    *,
    x_client: XClient,
    llm_client: LLMClient,
    now: Optional[datetime] = None,
) -> AnalyzeResponse:
    """
    Run the full analysis for one request.

    Args:
        token: Ticker input
        requested_action: "BUY" or "SELL"
        options: Search and selection options
        x_client: Search provider client
        llm_client: Model client
        now: Evaluation time (defaults to current UTC time)

    Returns:
        AnalyzeResponse with a policy-consistent decision and the selected posts

    Raises:
        NoResultsError: The ticker is unusable or no posts were found
        CollaboratorError: The search provider or the model call failed
    """
    now = now or now_utc()
    ticker = normalize_ticker(token)

    evidence = await fetch_recent_posts_for_token(ticker, options, x_client, now=now)
    if not evidence.compact_posts:
        raise NoResultsError()

    prompt = compile_prompt(requested_action, ticker, evidence.compact_posts)
    evidence_ids = [p.id for p in evidence.compact_posts]

    logger.info("Requesting %s analysis for %s over %d posts", requested_action, ticker, len(evidence_ids))
    reply = await llm_client.complete(prompt.system_prompt, prompt.user_prompt)
    parsed = parse_model_output(reply, requested_action)

    if parsed is not None:
        analysis = apply_decision_policy(parsed, requested_action, evidence_ids)
    else:
        logger.info("Model reply invalid, sending repair request")
        repair_reply = await llm_client.complete(
            prompt.system_prompt, prompt.user_prompt, follow_up=REPAIR_INSTRUCTION
        )
        analysis = normalize_decision(repair_reply, requested_action, evidence_ids)

    return AnalyzeResponse(
        **analysis.model_dump(),
        token=ticker,
        as_of=now.isoformat(),
        top_posts=evidence.top_posts,
    )


async def run_analysis(
    token: str,
    requested_action: str,
    options: SearchOptions,
    *,
    x_client: XClient,
    llm_client: LLMClient,
    now: Optional[datetime] = None,
) -> Union[AnalyzeResponse, ErrorResponse]:
    """Like `analyze`, but reports empty evidence and collaborator failures as ErrorResponse."""
    try:
        return await analyze(
            token,
            requested_action,
            options,
            x_client=x_client,
            llm_client=llm_client,
            now=now,
        )
    except (NoResultsError, CollaboratorError) as e:
        logger.warning("Analysis for %s ended without a decision: %s", token, e)
        return ErrorResponse(error=str(e))
