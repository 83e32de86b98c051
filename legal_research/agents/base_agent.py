"""Base agent class for the research pipeline stages."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import structlog

from ..core.config import Settings, settings as default_settings
from ..llm import LLMGateway
from ..llm.messages import Message
from ..models.schemas import AgentAction, AgentLogEntry, AgentName
from ..services.error_handling import PipelineError
from ..services.metrics import stage_duration

logger = structlog.get_logger()

JSON_RESPONSE = {"type": "json_object"}


class AgentLogSink(Protocol):
    """Append-only destination for execution trace rows."""

    async def add_log(
        self,
        case_id: int,
        agent_name: AgentName,
        action: AgentAction,
        input: Optional[str] = None,
        output: Optional[str] = None,
        reasoning: Optional[str] = None,
    ) -> AgentLogEntry:
        ...


@dataclass
class ExecutionContext:
    """Per-run inputs shared by every stage. Owned by one pipeline run."""
    case_id: int
    query: str
    description: Optional[str] = None


@dataclass
class StageOutcome:
    """What a stage hands to the next one, plus the log rows it wrote."""
    output: str
    logs: List[AgentLogEntry] = field(default_factory=list)
    failed: bool = False
    error: Optional[str] = None


class BaseAgent(ABC):
    """Base class for pipeline agents.

    ``run`` wraps ``process`` with the started/completed/failed trace. A
    failing non-fatal agent degrades to ``fallback``; a fatal agent raises
    PipelineError.
    """

    agent_name: AgentName
    fatal = False

    def __init__(
        self,
        gateway: LLMGateway,
        log_sink: AgentLogSink,
        settings: Optional[Settings] = None,
    ):
        self.gateway = gateway
        self.log_sink = log_sink
        self.settings = settings or default_settings

    @abstractmethod
    def get_system_prompt(self) -> str:
        """Get the instructions for this agent."""
        pass

    @abstractmethod
    async def process(self, context: ExecutionContext, upstream: Optional[str]) -> str:
        """Produce this stage's output from the context and the previous stage."""
        pass

    def started_input(self, context: ExecutionContext) -> str:
        return context.query

    def completed_input(self, context: ExecutionContext) -> str:
        return context.query

    def completion_reasoning(self, output: str) -> str:
        return "Stage complete"

    def fallback(self, error: str) -> str:
        """Output handed downstream after a failure.

        Non-fatal agents must override this. ``run`` never calls it for a
        fatal agent, which raises PipelineError instead.
        """
        raise NotImplementedError(f"{self.agent_name.value} has no fallback")

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if not cls.fatal and cls.fallback is BaseAgent.fallback:
            raise TypeError(f"{cls.__name__} is not fatal and must define fallback()")

    async def _log(
        self,
        context: ExecutionContext,
        action: AgentAction,
        input: Optional[str] = None,
        output: Optional[str] = None,
        reasoning: Optional[str] = None,
    ) -> AgentLogEntry:
        return await self.log_sink.add_log(
            context.case_id,
            self.agent_name,
            action,
            input=input,
            output=output,
            reasoning=reasoning,
        )

    async def _call_llm(
        self,
        messages: List[Message],
        response_format: Optional[Dict[str, Any]] = JSON_RESPONSE,
    ) -> str:
        result = await self.gateway.invoke(messages, response_format=response_format)
        return result.text or ""

    async def run(self, context: ExecutionContext, upstream: Optional[str] = None) -> StageOutcome:
        """Execute the stage once, recording it in the execution trace."""
        logs = [await self._log(context, AgentAction.STARTED, input=self.started_input(context))]
        start_time = time.time()

        try:
            output = await self.process(context, upstream)
        except Exception as e:
            message = str(e)
            stage_duration.labels(agent=self.agent_name.value, outcome="failed").observe(time.time() - start_time)
            logger.warning(
                "Agent stage failed",
                agent=self.agent_name.value,
                case_id=context.case_id,
                error=message,
                fatal=self.fatal,
            )
            logs.append(await self._log(
                context, AgentAction.FAILED, input=self.completed_input(context), reasoning=message
            ))
            if self.fatal:
                raise PipelineError(message, agent=self.agent_name.value, logs=logs) from e
            return StageOutcome(output=self.fallback(message), logs=logs, failed=True, error=message)

        stage_duration.labels(agent=self.agent_name.value, outcome="completed").observe(time.time() - start_time)
        logs.append(await self._log(
            context,
            AgentAction.COMPLETED,
            input=self.completed_input(context),
            output=output,
            reasoning=self.completion_reasoning(output),
        ))
        logger.info("Agent stage completed", agent=self.agent_name.value, case_id=context.case_id)
        return StageOutcome(output=output, logs=logs)
