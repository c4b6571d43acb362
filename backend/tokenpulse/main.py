"""
Main FastAPI application and routing layer.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tokenpulse.config import CORS_ALLOW_ORIGINS, LOG_FORMAT, LOG_LEVEL, settings
from tokenpulse.exceptions import (
    CollaboratorError,
    ConfigurationError,
    NoResultsError,
)
from tokenpulse.schemas import AnalyzeRequest, AnalyzeResponse, ErrorResponse, UsageResponse
from tokenpulse.services.analyzer import analyze
from tokenpulse.services.llm import LLMClient
from tokenpulse.sources.collector import SearchOptions
from tokenpulse.sources.x_client import XClient
from tokenpulse.utils import now_utc

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger("uvicorn")


def get_x_client(
    x_bearer_token: Optional[str] = Header(None, alias="X-Bearer-Token"),
) -> XClient:
    """Search client for this request; a header token overrides the configured one."""
    return XClient.from_settings(settings, bearer_token=(x_bearer_token or "").strip() or None)


def get_llm_client(
    openai_api_key: Optional[str] = Header(None, alias="X-OpenAI-Key"),
) -> LLMClient:
    """Model client for this request; a header key overrides the configured one."""
    return LLMClient.from_settings(settings, api_key=(openai_api_key or "").strip() or None)


# Initialize FastAPI app
app = FastAPI(
    title="Token Sentiment Signal API",
    version="0.1.0",
    description="Short-term crypto sentiment from recent X posts, mapped to a BUY/SELL/HOLD decision"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NoResultsError)
async def no_results_handler(request: Request, exc: NoResultsError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(CollaboratorError)
async def collaborator_error_handler(request: Request, exc: CollaboratorError) -> JSONResponse:
    logger.error("Collaborator failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"error": str(exc)})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Configuration error: %s", exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "as_of": now_utc().isoformat(),
        "service": "token-sentiment-api"
    }


@app.post(
    "/analyze",
    response_model=AnalyzeResponse,
    responses={404: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)
async def analyze_token(
    body: AnalyzeRequest,
    x_client: XClient = Depends(get_x_client),
    llm_client: LLMClient = Depends(get_llm_client),
):
    """
    Analyze recent posts for a token and judge the requested trade.

    Args:
        body: Token, requested action and search options
        x_client: Search client (per request)
        llm_client: Model client (per request)

    Returns:
        AnalyzeResponse with the decision and the posts used as evidence
    """
    logger.info(f"Analyzing {body.action} for {body.token}")
    options = SearchOptions(
        max_posts=body.max_posts,
        official_only=body.official_only,
        from_handle=body.from_handle,
        lang=body.lang,
        crypto_context_only=body.crypto_context_only,
    )
    return await analyze(
        body.token,
        body.action,
        options,
        x_client=x_client,
        llm_client=llm_client,
    )


@app.get("/usage", response_model=UsageResponse, responses={502: {"model": ErrorResponse}})
async def get_usage(x_client: XClient = Depends(get_x_client)):
    """Current X API post-consumption usage."""
    return await x_client.fetch_usage()


if __name__ == "__main__":
    # For development
    import uvicorn
    uvicorn.run("tokenpulse.main:app", host="0.0.0.0", port=settings.PORT, reload=True)
