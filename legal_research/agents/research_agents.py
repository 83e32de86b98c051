"""The three pipeline agents: web researcher, associate and lawyer."""

import json
from typing import List, Optional

import structlog

from .base_agent import BaseAgent, ExecutionContext
from ..core.config import Settings
from ..llm import LLMGateway
from ..models.schemas import AgentName
from ..services.error_handling import OutputParseError, SearchProviderError
from ..services.sanitizer import clamp_text, parse_json_object, sanitize
from ..services.web_search import SearchHit, WebSearchClient

logger = structlog.get_logger()

SEARCH_DISABLED = "Web Search Disabled (No API Key). Analysis will be based on internal knowledge."
NO_RESULTS = "No direct web results found. Relying on general legal knowledge."
SEARCH_FAILED = "Search failed. Proceeding with internal analysis."

# Outputs longer than this count as "found results" in the trace.
RESULTS_THRESHOLD = 200


def format_hits(hits: List[SearchHit]) -> str:
    """Render search hits as numbered sources."""
    return "\n\n".join(
        f"Source [{i}]: {hit.title}\nURL: {hit.url}\nContent: {hit.content}"
        for i, hit in enumerate(hits, 1)
    )


class WebResearcherAgent(BaseAgent):
    """Turns the query into search queries and gathers web sources."""

    agent_name = AgentName.WEB_RESEARCHER

    def __init__(
        self,
        gateway: LLMGateway,
        log_sink,
        search_client: Optional[WebSearchClient] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(gateway, log_sink, settings)
        self.search_client = search_client

    def get_system_prompt(self) -> str:
        return (
            "You are a legal researcher. Generate 3 specific search queries to find "
            "case law or statutes relevant to this situation."
        )

    def completion_reasoning(self, output: str) -> str:
        return "Found results" if len(output) > RESULTS_THRESHOLD else "Found no results"

    def fallback(self, error: str) -> str:
        return SEARCH_FAILED

    def parse_queries(self, raw_text: str, original_query: str) -> List[str]:
        """Extract search queries from model output.

        Falls back to the original query when the output is not a JSON object
        with a non-empty ``queries`` list.
        """
        try:
            data = parse_json_object(raw_text)
        except OutputParseError:
            logger.info("Query formulation unparseable, using original query")
            return [original_query]

        queries = data.get("queries")
        if not isinstance(queries, list):
            return [original_query]
        queries = [str(q).strip() for q in queries if str(q).strip()]
        return queries[:self.settings.max_search_queries] or [original_query]

    async def formulate_queries(self, context: ExecutionContext) -> List[str]:
        situation = (
            f"Query: {context.query}\n"
            f"Context: {context.description or 'No background provided.'}"
        )
        messages = [
            {"role": "system", "content": self.get_system_prompt()},
            {
                "role": "user",
                "content": (
                    "Situation:\n"
                    f"{clamp_text(situation, self.settings.search_prompt_char_limit)}\n\n"
                    'Return ONLY a JSON object: {"queries": ["string", "string"]}'
                ),
            },
        ]
        return self.parse_queries(await self._call_llm(messages), context.query)

    async def process(self, context: ExecutionContext, upstream: Optional[str]) -> str:
        queries = await self.formulate_queries(context)

        if self.search_client is None or not self.search_client.is_configured:
            return SEARCH_DISABLED

        hits: List[SearchHit] = []
        for query in queries[:self.settings.max_executed_queries]:
            try:
                hits.extend(await self.search_client.search(
                    query, max_results=self.settings.search_max_results
                ))
            except SearchProviderError as e:
                logger.warning("Search query failed", case_id=context.case_id, query=query, error=e.message)

        if not hits:
            return NO_RESULTS
        return format_hits(hits)


class AssociateAgent(BaseAgent):
    """Synthesizes case facts and research into precedents and statutes."""

    agent_name = AgentName.ASSOCIATE

    def get_system_prompt(self) -> str:
        return """You are a Legal Associate. Synthesize the Case Facts and Web Search Results.
Identify relevant statutes (e.g., Article 14, Contract Act) and precedents.

Return JSON: {"precedents": [], "statutes": [], "principles": [], "arguments": []}"""

    def started_input(self, context: ExecutionContext) -> str:
        return "Synthesizing facts and search results..."

    def completed_input(self, context: ExecutionContext) -> str:
        return "Synthesized Analysis"

    def completion_reasoning(self, output: str) -> str:
        return "Synthesis complete"

    def fallback(self, error: str) -> str:
        return json.dumps({"error": error, "arguments": ["Analysis failed"]})

    async def process(self, context: ExecutionContext, upstream: Optional[str]) -> str:
        case_input = (
            f"USER QUERY: {context.query}\n\n"
            f"CASE FACTS (Important):\n{context.description or 'None provided'}\n\n"
            f"WEB SEARCH RESULTS:\n{upstream or ''}"
        )
        messages = [
            {"role": "system", "content": self.get_system_prompt()},
            {"role": "user", "content": clamp_text(case_input, self.settings.prompt_char_limit)},
        ]
        return sanitize(await self._call_llm(messages))


class LawyerAgent(BaseAgent):
    """Drafts the final verdict. Its failure fails the run."""

    agent_name = AgentName.LAWYER
    fatal = True

    def get_system_prompt(self) -> str:
        return """You are a Senior Judge/Lawyer. Write a verdict based on the Facts and Synthesis.

OUTPUT FORMAT (JSON ONLY):
{
  "summary": "Brief summary of the case facts (2-3 sentences)",
  "analysis": "Legal reasoning applying statutes/precedents to the facts",
  "recommendation": "Clear advice for the client",
  "riskAssessment": "High/Medium/Low with reason",
  "citations": ["List specific sections/cases"]
}
Do NOT include markdown formatting."""

    def started_input(self, context: ExecutionContext) -> str:
        return "Drafting final verdict..."

    def completed_input(self, context: ExecutionContext) -> str:
        return "Verdict"

    def completion_reasoning(self, output: str) -> str:
        return "Verdict delivered"

    async def process(self, context: ExecutionContext, upstream: Optional[str]) -> str:
        case_input = (
            f"CASE FACTS: {context.description or 'N/A'}\n\n"
            f"ASSOCIATE SYNTHESIS:\n{upstream or ''}"
        )
        messages = [
            {"role": "system", "content": self.get_system_prompt()},
            {"role": "user", "content": clamp_text(case_input, self.settings.prompt_char_limit)},
        ]
        return sanitize(await self._call_llm(messages))
