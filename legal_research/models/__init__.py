"""Data models for the Legal Research service."""

from .schemas import (
    AgentAction,
    AgentLogEntry,
    AgentLogView,
    AgentName,
    Case,
    CaseCreate,
    CaseCreated,
    CaseStatus,
    ExportFormat,
    ExportPayload,
    ResearchResult,
    Verdict,
    WorkflowResult,
)

__all__ = [
    "AgentAction",
    "AgentLogEntry",
    "AgentLogView",
    "AgentName",
    "Case",
    "CaseCreate",
    "CaseCreated",
    "CaseStatus",
    "ExportFormat",
    "ExportPayload",
    "ResearchResult",
    "Verdict",
    "WorkflowResult",
]
