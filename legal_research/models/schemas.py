"""Pydantic schemas for data validation and serialization."""

from typing import Any, List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum


PREVIEW_LENGTH = 100


class CaseStatus(str, Enum):
    """Lifecycle states of a research case."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class AgentName(str, Enum):
    """Pipeline agents, in execution order."""
    WEB_RESEARCHER = "WebResearcher"
    ASSOCIATE = "Associate"
    LAWYER = "Lawyer"


class AgentAction(str, Enum):
    """Actions recorded in the execution trace."""
    INITIATED = "initiated"
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


class ExportFormat(str, Enum):
    """Result export formats."""
    MARKDOWN = "markdown"
    JSON = "json"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ExportFormat":
        """Anything other than ``json`` exports as Markdown."""
        if value and value.strip().lower() == "json":
            return cls.JSON
        return cls.MARKDOWN


def preview(text: Optional[str], limit: int = PREVIEW_LENGTH) -> Optional[str]:
    """Shorten text for display, marking the cut with an ellipsis."""
    if text is None:
        return None
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class Case(BaseModel):
    """A submitted research query."""
    id: int
    user_id: int
    title: str
    description: Optional[str] = None
    query: str
    status: CaseStatus = CaseStatus.PENDING
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "user_id": 1,
                "title": "Wrongful termination",
                "description": "Employee dismissed without notice after 6 years.",
                "query": "Is dismissal without notice lawful?",
                "status": "pending",
                "created_at": "2025-01-01T00:00:00Z",
                "updated_at": "2025-01-01T00:00:00Z",
            }
        }
    )


class AgentLogEntry(BaseModel):
    """One append-only row of a case's execution trace."""
    id: int
    case_id: int
    agent_name: AgentName
    action: AgentAction
    input: Optional[str] = None
    output: Optional[str] = None
    reasoning: Optional[str] = None
    timestamp: datetime

    @property
    def input_preview(self) -> Optional[str]:
        return preview(self.input)

    @property
    def output_preview(self) -> Optional[str]:
        return preview(self.output)


class ResearchResult(BaseModel):
    """Persisted outcome of a successful pipeline run."""
    id: int
    case_id: int
    summary: Optional[str] = None
    findings: Optional[str] = None
    precedents: Optional[str] = None
    statutes: Optional[str] = None
    recommendation: Optional[str] = None
    created_at: datetime


class Verdict(BaseModel):
    """The Lawyer stage's structured five-field output.

    Models often return nested objects (a risk level with reasons, citation
    records), so the fields accept any JSON value.
    """
    summary: Any = None
    analysis: Any = None
    recommendation: Any = None
    riskAssessment: Any = None
    citations: List[Any] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")

    @field_validator("citations", mode="before")
    @classmethod
    def wrap_citations(cls, value):
        if value is None:
            return []
        return value if isinstance(value, list) else [value]


class WorkflowResult(BaseModel):
    """Outcome of one pipeline run."""
    success: bool
    result: Optional[str] = None
    synthesis: Optional[str] = None
    logs: List[AgentLogEntry] = Field(default_factory=list)
    error: Optional[str] = None


# API request/response models

class CaseCreate(BaseModel):
    """Request body for submitting a case."""
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    query: str = Field(..., min_length=1)


class CaseCreated(BaseModel):
    case_id: int


class AgentLogView(BaseModel):
    """Execution trace row with display previews."""
    id: int
    agent_name: AgentName
    action: AgentAction
    input: Optional[str] = None
    output: Optional[str] = None
    reasoning: Optional[str] = None
    input_preview: Optional[str] = None
    output_preview: Optional[str] = None
    timestamp: datetime

    @classmethod
    def from_entry(cls, entry: AgentLogEntry) -> "AgentLogView":
        return cls(
            id=entry.id,
            agent_name=entry.agent_name,
            action=entry.action,
            input=entry.input,
            output=entry.output,
            reasoning=entry.reasoning,
            input_preview=entry.input_preview,
            output_preview=entry.output_preview,
            timestamp=entry.timestamp,
        )


class ExportPayload(BaseModel):
    """A downloadable rendering of a case result."""
    filename: str
    mime: str
    content: str
