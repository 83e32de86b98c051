"""Shared fixtures: scripted providers, stub search and in-memory stores."""

from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from legal_research.agents import LegalResearchOrchestrator
from legal_research.core.config import Settings
from legal_research.llm import LLMGateway
from legal_research.llm.providers import BaseLLMProvider, LLMResult, ProviderConfig
from legal_research.services.case_lifecycle import CaseLifecycleController
from legal_research.services.case_service import CaseService
from legal_research.services.error_handling import LLMGatewayError, SearchProviderError
from legal_research.services.web_search import SearchHit

Responder = Callable[[List[Dict[str, Any]]], str]

GOOD_QUERIES = '{"queries": ["wrongful dismissal notice period", "unfair termination precedent", "labour code section 25F"]}'
GOOD_SYNTHESIS = (
    '```json\n{"precedents": ["Smith v Jones (2001)"], "statutes": ["Industrial Disputes Act s.25F"], '
    '"principles": ["notice is mandatory"], "arguments": ["dismissal without notice is void"]}\n```'
)
GOOD_VERDICT = (
    'Here is the verdict:\n{"summary": "Employee dismissed without notice.", '
    '"analysis": "Section 25F requires notice.", "recommendation": "File a claim for reinstatement.", '
    '"riskAssessment": "Low - statute is clear", "citations": ["s.25F"]}'
)


def stage_of(messages: List[Dict[str, Any]]) -> str:
    """Which pipeline stage sent these messages, from its system prompt."""
    system = next((m["content"] for m in messages if m["role"] == "system"), "")
    if "legal researcher" in system:
        return "researcher"
    if "Legal Associate" in system:
        return "associate"
    if "Senior Judge" in system:
        return "lawyer"
    return "unknown"


def scripted(**by_stage: Union[str, Exception]) -> Responder:
    """Responder answering per stage; exceptions are raised."""

    def respond(messages):
        reply = by_stage.get(stage_of(messages), "{}")
        if isinstance(reply, Exception):
            raise reply
        return reply

    return respond


class ScriptedProvider(BaseLLMProvider):
    """Provider whose replies come from a responder function."""

    def __init__(self, responder: Responder, name: str = "gemini", api_key: str = "test-key-123456"):
        super().__init__(ProviderConfig(name=name, api_key=api_key, model="scripted-1"))
        self.responder = responder
        self.calls: List[Dict[str, Any]] = []

    @property
    def provider_name(self) -> str:
        return self.config.name

    async def generate(self, messages, response_format=None, max_tokens=None) -> LLMResult:
        self.calls.append({"messages": messages, "response_format": response_format})
        text = self.responder(messages)
        return LLMResult(text=text, provider=self.provider_name, model=self.config.model)


class StubSearchClient:
    """Search client returning canned hits, optionally failing some queries."""

    def __init__(
        self,
        hits: Optional[List[SearchHit]] = None,
        failing: Optional[List[str]] = None,
        configured: bool = True,
    ):
        self.hits = hits or []
        self.failing = failing or []
        self.configured = configured
        self.queries: List[str] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def search(self, query: str, max_results: int = 3) -> List[SearchHit]:
        self.queries.append(query)
        if query in self.failing:
            raise SearchProviderError(query, "Internal error", status_code=500)
        return self.hits[:max_results]


def failing_responder(messages):
    raise LLMGatewayError("gemini", "upstream unavailable", status_code=500, body="boom")


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        gemini_api_key=None,
        groq_api_key=None,
        forge_api_key=None,
        tavily_api_key=None,
        llm_provider="auto",
        llm_max_retries=0,
        case_store_path=None,
    )


@pytest.fixture
def case_service() -> CaseService:
    return CaseService()


@pytest.fixture
def sample_hits() -> List[SearchHit]:
    return [
        SearchHit(
            title="Termination without notice held illegal",
            url="https://example.org/judgments/1",
            content="The court held that retrenchment without notice under section 25F is void ab initio. " * 3,
        ),
        SearchHit(
            title="Notice pay and reinstatement",
            url="https://example.org/judgments/2",
            content="Reinstatement with back wages was ordered where the employer skipped the notice period.",
        ),
    ]


@pytest.fixture
def build_controller(case_service, test_settings):
    """Factory wiring a controller around a scripted provider."""

    def build(responder: Responder, search_client=None):
        provider = ScriptedProvider(responder)
        gateway = LLMGateway(providers={"gemini": provider})
        orchestrator = LegalResearchOrchestrator(
            gateway, case_service, search_client=search_client, settings=test_settings
        )
        return CaseLifecycleController(case_service, orchestrator), provider

    return build
