"""Research orchestrator running the researcher, associate and lawyer stages in order."""

from typing import List, Optional

import structlog

from .base_agent import AgentLogSink, ExecutionContext
from .research_agents import AssociateAgent, LawyerAgent, WebResearcherAgent
from ..core.config import Settings, settings as default_settings
from ..llm import LLMGateway
from ..models.schemas import AgentAction, AgentLogEntry, AgentName, WorkflowResult
from ..services.error_handling import PipelineError
from ..services.metrics import pipeline_runs
from ..services.web_search import WebSearchClient

logger = structlog.get_logger()


class LegalResearchOrchestrator:
    """Runs one research pipeline per call.

    The stages never branch or repeat. Researcher and associate failures
    degrade to fallback text; a lawyer failure ends the run unsuccessfully.
    """

    def __init__(
        self,
        gateway: LLMGateway,
        log_sink: AgentLogSink,
        search_client: Optional[WebSearchClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.gateway = gateway
        self.log_sink = log_sink
        self.settings = settings or default_settings

        self.researcher = WebResearcherAgent(gateway, log_sink, search_client, self.settings)
        self.associate = AssociateAgent(gateway, log_sink, self.settings)
        self.lawyer = LawyerAgent(gateway, log_sink, self.settings)

    async def execute_workflow(
        self,
        case_id: int,
        query: str,
        description: Optional[str] = None,
    ) -> WorkflowResult:
        """Run the full pipeline for one case.

        Args:
            case_id: Case the trace rows belong to
            query: The user's research question
            description: Optional case facts

        Returns:
            WorkflowResult with the lawyer's verdict text on success
        """
        context = ExecutionContext(case_id=case_id, query=query, description=description)
        logs: List[AgentLogEntry] = []

        logger.info("Starting research workflow", case_id=case_id)
        try:
            logs.append(await self.log_sink.add_log(
                case_id, AgentName.LAWYER, AgentAction.INITIATED, input=query
            ))

            research = await self.researcher.run(context)
            logs.extend(research.logs)

            synthesis = await self.associate.run(context, research.output)
            logs.extend(synthesis.logs)

            verdict = await self.lawyer.run(context, synthesis.output)
            logs.extend(verdict.logs)
        except PipelineError as e:
            logs.extend(e.logs)
            pipeline_runs.labels(outcome="failed").inc()
            logger.error("Research workflow failed", case_id=case_id, agent=e.agent, error=e.message)
            return WorkflowResult(success=False, logs=logs, error=e.message)
        except Exception as e:
            pipeline_runs.labels(outcome="failed").inc()
            logger.error("Research workflow failed", case_id=case_id, error=str(e))
            return WorkflowResult(success=False, logs=logs, error=str(e))

        pipeline_runs.labels(outcome="succeeded").inc()
        logger.info(
            "Research workflow completed",
            case_id=case_id,
            researcher_failed=research.failed,
            associate_failed=synthesis.failed,
        )
        return WorkflowResult(
            success=True,
            result=verdict.output,
            synthesis=synthesis.output,
            logs=logs,
        )
