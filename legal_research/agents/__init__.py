"""Research pipeline agents."""

from .base_agent import BaseAgent, ExecutionContext, StageOutcome
from .orchestrator import LegalResearchOrchestrator
from .research_agents import AssociateAgent, LawyerAgent, WebResearcherAgent

__all__ = [
    "BaseAgent",
    "ExecutionContext",
    "StageOutcome",
    "LegalResearchOrchestrator",
    "WebResearcherAgent",
    "AssociateAgent",
    "LawyerAgent",
]
