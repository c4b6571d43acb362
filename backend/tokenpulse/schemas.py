# tokenpulse/schemas.py
import re
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator, model_validator

from tokenpulse.config import DEFAULT_MAX_POSTS

RequestedAction = Literal["BUY", "SELL"]
RecommendedAction = Literal["BUY", "SELL", "HOLD"]
Decision = Literal["ALLOW", "ABORT", "REVERSE"]
Bias = Literal["BULLISH", "BEARISH", "MIXED", "UNCLEAR"]

_LANG_RE = re.compile(r"^[A-Za-z]{2,3}(-[A-Za-z0-9]{2,8})?$")


class NormalizedPost(BaseModel):
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
    engagement_score: int = 0                # rounded, before multipliers


class AnalysisOutput(BaseModel):
    # No coercion: "0.8" or true for confidence is a schema violation
    model_config = ConfigDict(strict=True)

    requested_action: RequestedAction
    recommended_action: RecommendedAction
    decision: Decision
    bias: Bias
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str = Field(max_length=180)
    key_factors: List[Annotated[str, StringConstraints(max_length=60)]] = Field(
        default_factory=list, max_length=5
    )
    post_ids_used: List[str] = Field(default_factory=list)
    safety_notes: str = Field(max_length=120)


FALLBACK_ANALYSIS = AnalysisOutput(
    requested_action="BUY",
    recommended_action="HOLD",
    decision="ABORT",
    bias="UNCLEAR",
    confidence=0.0,
    reason="AI unavailable",
    key_factors=[],
    post_ids_used=[],
    safety_notes="Service temporarily unavailable.",
)


class AnalyzeRequest(BaseModel):
    token: str
    action: RequestedAction
    max_posts: int = Field(DEFAULT_MAX_POSTS, ge=1, le=100)
    official_only: bool = False
    from_handle: Optional[str] = None
    lang: Optional[str] = None
    english_only: bool = False
    crypto_context_only: bool = True

    @field_validator("token", mode="before")
    @classmethod
    def _normalize_token(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Token must be a string")
        token = re.sub(r"^(?:[$#]\s*)+", "", value.strip()).upper()
        if not 2 <= len(token) <= 12:
            raise ValueError("Token must be 2-12 characters")
        return token

    @field_validator("action", mode="before")
    @classmethod
    def _upper_action(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("from_handle")
    @classmethod
    def _strip_handle(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip().lstrip("@") or None

    @field_validator("lang")
    @classmethod
    def _check_lang(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        value = value.strip()
        if not _LANG_RE.match(value):
            raise ValueError("Language must be a BCP 47 code such as 'en'")
        return value

    @model_validator(mode="after")
    def _english_only(self) -> "AnalyzeRequest":
        if self.english_only and self.lang is None:
            self.lang = "en"
        return self


class AnalyzeResponse(AnalysisOutput):
    model_config = ConfigDict(strict=False)

    token: str
    as_of: str
    top_posts: List[NormalizedPost] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: str


class UsageResponse(BaseModel):
    data: Optional[Dict[str, Any]] = None
    errors: Optional[List[Dict[str, Any]]] = None
