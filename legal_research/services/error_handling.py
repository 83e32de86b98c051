"""
Error taxonomy for the legal research pipeline.

Gateway failures, search failures and parse failures are recovered close to
where they happen; only the classes below cross module boundaries.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(Enum):
    """Error categories for classification."""
    GATEWAY = "gateway"
    SEARCH = "search"
    PARSE = "parse"
    PIPELINE = "pipeline"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


class LegalResearchError(Exception):
    """Base class for all service errors."""

    category: ErrorCategory = ErrorCategory.PIPELINE

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "category": self.category.value,
            "message": self.message,
            "context": self.context,
        }


class LLMGatewayError(LegalResearchError):
    """A text-generation provider failed or could not be called.

    ``status_code`` is None for failures that never produced an HTTP
    response (missing credential, timeout, connection error).
    """

    category = ErrorCategory.GATEWAY

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        retryable: Optional[bool] = None,
    ):
        detail = f"{provider} invoke failed"
        if status_code is not None:
            detail += f": {status_code}"
        detail += f" - {message}"
        super().__init__(
            detail,
            context={"provider": provider, "status_code": status_code},
        )
        self.provider = provider
        self.status_code = status_code
        self.body = body
        if retryable is None:
            retryable = status_code is not None and (status_code == 429 or status_code >= 500)
        self.retryable = retryable


class SearchProviderError(LegalResearchError):
    """The web search provider returned an error for one query."""

    category = ErrorCategory.SEARCH

    def __init__(self, query: str, message: str, status_code: Optional[int] = None):
        super().__init__(
            f"Search failed for '{query}': {message}",
            context={"query": query, "status_code": status_code},
        )
        self.query = query
        self.status_code = status_code


class OutputParseError(LegalResearchError):
    """Model output could not be parsed as a JSON object."""

    category = ErrorCategory.PARSE

    def __init__(self, message: str, raw: str):
        super().__init__(message, context={"raw_length": len(raw or "")})
        self.raw = raw


class PipelineError(LegalResearchError):
    """Fatal failure of a pipeline run.

    Carries the log entries the failing stage wrote so the caller can
    complete the run's execution trace.
    """

    category = ErrorCategory.PIPELINE

    def __init__(
        self,
        message: str,
        agent: Optional[str] = None,
        logs: Optional[List[Any]] = None,
    ):
        super().__init__(message, context={"agent": agent})
        self.agent = agent
        self.logs = list(logs or [])


class CaseNotFoundError(LegalResearchError):
    """Raised when a case id has no stored case."""

    category = ErrorCategory.NOT_FOUND

    def __init__(self, case_id: int):
        super().__init__(f"Case {case_id} not found", context={"case_id": case_id})
        self.case_id = case_id


class CaseAlreadyProcessingError(LegalResearchError):
    """Raised when a case already has a run in flight."""

    category = ErrorCategory.CONFLICT

    def __init__(self, case_id: int):
        super().__init__(
            f"Case {case_id} is already being processed",
            context={"case_id": case_id},
        )
        self.case_id = case_id
