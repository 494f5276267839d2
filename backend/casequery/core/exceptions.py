"""
Error taxonomy for query resolution

Every error carries the message shown to the caller. Errors are raised by the
component that detects them and converted into a QueryResult at the first
boundary able to do so; none escapes QueryService.answer().
"""
from typing import Any, Dict, Optional


class CaseQueryError(Exception):
    """Base class for query resolution failures"""

    default_message = "An error occurred while processing your query. Please try again."

    def __init__(
        self,
        user_message: Optional[str] = None,
        detail: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.user_message = user_message or self.default_message
        self.detail = detail
        self.metadata = metadata or {}
        super().__init__(detail or self.user_message)


class ExtractionFailure(CaseQueryError):
    """A name required by the classified intent was not found in the query"""

    default_message = "No name specified in the query."


class NoMatchFound(CaseQueryError):
    """The entity was resolved but no rows matched"""

    default_message = "No matching cases were found."


class StoreFailure(CaseQueryError):
    """The case store could not execute a read"""

    default_message = "An error occurred while processing your query. Please try again."


class UnsafeQueryError(StoreFailure):
    """A generated query was rejected by the read-only guard"""


class AIUnavailable(CaseQueryError):
    """The LLM collaborator timed out, was rate limited or refused the request"""

    default_message = (
        "I'm sorry, the AI assistant is unavailable right now, so I couldn't "
        "interpret this question. Please try again later or rephrase it."
    )


class AmbiguousTimeframe(CaseQueryError):
    """A period phrase could not be turned into a year window"""

    default_message = (
        "I couldn't understand the timeframe. Please specify a year like "
        "\"2020\" or a period like \"last year\"."
    )
