"""
Error taxonomy for the analysis pipeline.

Malformed model output is deliberately absent: it is absorbed by the
repair/fallback path in `services.decision` and never raised.
"""
from __future__ import annotations

from typing import Optional


class TokenPulseError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(TokenPulseError):
    """A collaborator could not be built, usually a missing credential."""


class NoResultsError(TokenPulseError):
    """No evidence was found for the token. Not a failure of any collaborator."""

    def __init__(self, message: str = "No recent posts found for this token. Try another symbol."):
        super().__init__(message)


class CollaboratorError(TokenPulseError):
    """An external collaborator (search provider or LLM) failed."""


class XApiError(CollaboratorError):
    """The social search API returned an error or could not be reached."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class LLMError(CollaboratorError):
    """The LLM provider call failed."""
