"""
Validation and normalization of the model's decision JSON.

The model's reply is untrusted: it is sliced out of any surrounding prose,
validated against the strict AnalysisOutput schema and then passed through a
deterministic policy pass, so the REVERSE invariant holds no matter what
the model claimed.
"""
from __future__ import annotations

import json
import logging
from typing import Iterable, List, Optional

from pydantic import ValidationError

from tokenpulse.config import MIN_CONFIDENCE
from tokenpulse.schemas import FALLBACK_ANALYSIS, AnalysisOutput

logger = logging.getLogger(__name__)

MAX_POST_IDS = 5

SUPPORTING_BIAS = {"BUY": "BULLISH", "SELL": "BEARISH"}


def extract_json(text: str) -> Optional[str]:
    """
    Slice the outermost JSON object out of a model reply.

    Args:
        text: Raw model text, possibly wrapped in prose or markdown fences

    Returns:
        Text from the first "{" to the last "}", or None if there is none
    """
    trimmed = text.strip()
    start = trimmed.find("{")
    end = trimmed.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return trimmed[start:end + 1]


def parse_model_output(text: Optional[str], requested_action: str) -> Optional[AnalysisOutput]:
    """
    Parse and validate a model reply.

    `requested_action` is injected before validation so a model that
    omitted or garbled it is not rejected for that alone.

    Returns:
        AnalysisOutput, or None when the reply is empty, not JSON, or
        violates the schema
    """
    if not text:
        return None
    raw = extract_json(text)
    if raw is None:
        logger.warning("Model reply contained no JSON object")
        return None
    try:
        data = json.loads(raw)
    except ValueError as e:
        logger.warning("Model reply was not valid JSON: %s", e)
        return None
    if not isinstance(data, dict):
        return None

    data["requested_action"] = requested_action
    try:
        return AnalysisOutput.model_validate(data)
    except ValidationError as e:
        logger.warning("Model reply failed schema validation: %d error(s)", e.error_count())
        logger.debug("Schema errors: %s", e.errors())
        return None


def _filter_post_ids(post_ids: List[str], evidence_ids: Iterable[str]) -> List[str]:
    allowed = set(evidence_ids)
    kept: List[str] = []
    for post_id in post_ids:
        if post_id in allowed and post_id not in kept:
            kept.append(post_id)
    return kept[:MAX_POST_IDS]


def derive_recommended_action(bias: str, confidence: float) -> str:
    """BUY/SELL only for a directional bias with enough confidence, otherwise HOLD."""
    if confidence >= MIN_CONFIDENCE:
        if bias == "BULLISH":
            return "BUY"
        if bias == "BEARISH":
            return "SELL"
    return "HOLD"


def apply_decision_policy(
    output: AnalysisOutput,
    requested_action: str,
    evidence_ids: Optional[Iterable[str]] = None,
) -> AnalysisOutput:
    """
    Re-derive recommended action and decision from the model's bias and confidence.

    - recommended_action is BUY for BULLISH and SELL for BEARISH when
      confidence >= MIN_CONFIDENCE, otherwise HOLD; a HOLD never carries a
      directional bias, so BULLISH/BEARISH is demoted to MIXED
    - decision is REVERSE whenever recommended_action differs from requested_action
    - otherwise ALLOW when the bias supports the requested action with
      confidence >= MIN_CONFIDENCE, else ABORT

    Args:
        output: Schema-valid model output
        requested_action: The caller's action; always overrides the model's echo
        evidence_ids: When given, post_ids_used is restricted to these ids

    Returns:
        A new AnalysisOutput; the input is not modified
    """
    bias = output.bias
    recommended = derive_recommended_action(bias, output.confidence)
    if recommended == "HOLD" and bias in ("BULLISH", "BEARISH"):
        bias = "MIXED"

    if recommended != requested_action:
        decision = "REVERSE"
    elif bias == SUPPORTING_BIAS[requested_action] and output.confidence >= MIN_CONFIDENCE:
        decision = "ALLOW"
    else:
        decision = "ABORT"

    if (recommended, decision) != (output.recommended_action, output.decision):
        logger.info(
            "Model verdict %s/%s corrected to %s/%s",
            output.recommended_action, output.decision, recommended, decision,
        )

    update = {
        "requested_action": requested_action,
        "recommended_action": recommended,
        "bias": bias,
        "decision": decision,
    }
    if evidence_ids is not None:
        update["post_ids_used"] = _filter_post_ids(output.post_ids_used, evidence_ids)
    return output.model_copy(update=update)


def fallback_output(requested_action: str) -> AnalysisOutput:
    """The fixed safe answer used when the model could not produce valid output."""
    return FALLBACK_ANALYSIS.model_copy(update={"requested_action": requested_action})


def normalize_decision(
    raw_text: Optional[str],
    requested_action: str,
    evidence_ids: Optional[Iterable[str]] = None,
) -> AnalysisOutput:
    """
    Turn a model reply into a policy-consistent AnalysisOutput. Never raises.

    Args:
        raw_text: Model reply, or None if the model returned nothing
        requested_action: "BUY" or "SELL" as requested by the caller
        evidence_ids: Ids of the posts given to the model

    Returns:
        The normalized output, or the fixed fallback when the reply is unusable
    """
    parsed = parse_model_output(raw_text, requested_action)
    if parsed is None:
        return fallback_output(requested_action)
    return apply_decision_policy(parsed, requested_action, evidence_ids)
