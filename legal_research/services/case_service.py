"""
Case Service - row store for cases, agent logs and results.

Keeps three in-memory tables keyed by integer ids and, when a persistence
file is configured, mirrors them to JSON after every write. Agent logs are
append-only and results are never overwritten; the newest result of a case
is the canonical one.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

import structlog

from ..models.schemas import (
    AgentAction,
    AgentLogEntry,
    AgentName,
    Case,
    CaseStatus,
    ResearchResult,
)

logger = structlog.get_logger()

DEMO_USER_ID = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CaseService:
    """Service class for case, log and result storage."""

    def __init__(self, persistence_file: Optional[Union[str, Path]] = None):
        self.cases: Dict[int, Case] = {}
        self.logs: Dict[int, List[AgentLogEntry]] = {}  # case_id -> entries
        self.results: Dict[int, List[ResearchResult]] = {}  # case_id -> results

        self._next_case_id = 1
        self._next_log_id = 1
        self._next_result_id = 1

        self.persistence_file = Path(persistence_file) if persistence_file else None
        self._load_persistence()

    def _load_persistence(self):
        """Load data from persistence file if it exists."""
        if not self.persistence_file or not self.persistence_file.exists():
            return
        with open(self.persistence_file, "r") as f:
            data = json.load(f)

        for raw in data.get("cases", []):
            case = Case.model_validate(raw)
            self.cases[case.id] = case
        for raw in data.get("logs", []):
            entry = AgentLogEntry.model_validate(raw)
            self.logs.setdefault(entry.case_id, []).append(entry)
        for raw in data.get("results", []):
            result = ResearchResult.model_validate(raw)
            self.results.setdefault(result.case_id, []).append(result)

        self._next_case_id = max(self.cases, default=0) + 1
        self._next_log_id = max(
            (e.id for entries in self.logs.values() for e in entries), default=0
        ) + 1
        self._next_result_id = max(
            (r.id for results in self.results.values() for r in results), default=0
        ) + 1
        logger.info("Loaded case store", path=str(self.persistence_file), cases=len(self.cases))

    def _save_persistence(self):
        """Save data to persistence file."""
        if not self.persistence_file:
            return
        self.persistence_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.persistence_file, "w") as f:
            json.dump({
                "cases": [c.model_dump(mode="json") for c in self.cases.values()],
                "logs": [e.model_dump(mode="json") for entries in self.logs.values() for e in entries],
                "results": [r.model_dump(mode="json") for results in self.results.values() for r in results],
            }, f, indent=2)

    async def ensure_demo_user(self) -> int:
        return DEMO_USER_ID

    # Cases

    async def create_case(
        self,
        user_id: int,
        title: str,
        description: Optional[str],
        query: str,
    ) -> Case:
        now = _utcnow()
        case = Case(
            id=self._next_case_id,
            user_id=user_id,
            title=title,
            description=description,
            query=query,
            status=CaseStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        self._next_case_id += 1
        self.cases[case.id] = case
        self._save_persistence()

        logger.info("Created case", case_id=case.id, title=title)
        return case

    async def get_case(self, case_id: int) -> Optional[Case]:
        return self.cases.get(case_id)

    async def list_cases(self, user_id: int) -> List[Case]:
        """Cases of one user, newest first."""
        cases = [c for c in self.cases.values() if c.user_id == user_id]
        cases.sort(key=lambda c: (c.created_at, c.id), reverse=True)
        return cases

    async def update_case_status(self, case_id: int, status: CaseStatus) -> Optional[Case]:
        case = self.cases.get(case_id)
        if case is None:
            return None
        updated = case.model_copy(update={"status": status, "updated_at": _utcnow()})
        self.cases[case_id] = updated
        self._save_persistence()

        logger.info("Case status changed", case_id=case_id, status=status.value)
        return updated

    # Agent logs

    async def add_log(
        self,
        case_id: int,
        agent_name: AgentName,
        action: AgentAction,
        input: Optional[str] = None,
        output: Optional[str] = None,
        reasoning: Optional[str] = None,
    ) -> AgentLogEntry:
        """Append one execution trace row."""
        entries = self.logs.setdefault(case_id, [])
        timestamp = _utcnow()
        if entries and timestamp < entries[-1].timestamp:
            # wall clock stepped backwards; keep the trace ordered
            timestamp = entries[-1].timestamp

        entry = AgentLogEntry(
            id=self._next_log_id,
            case_id=case_id,
            agent_name=agent_name,
            action=action,
            input=input,
            output=output,
            reasoning=reasoning,
            timestamp=timestamp,
        )
        self._next_log_id += 1
        entries.append(entry)
        self._save_persistence()
        return entry

    async def get_logs(self, case_id: int) -> List[AgentLogEntry]:
        return sorted(self.logs.get(case_id, []), key=lambda e: (e.timestamp, e.id))

    # Results

    async def create_result(
        self,
        case_id: int,
        summary: Optional[str],
        findings: Optional[str],
        precedents: Optional[str],
        statutes: Optional[str],
        recommendation: Optional[str],
    ) -> ResearchResult:
        result = ResearchResult(
            id=self._next_result_id,
            case_id=case_id,
            summary=summary,
            findings=findings,
            precedents=precedents,
            statutes=statutes,
            recommendation=recommendation,
            created_at=_utcnow(),
        )
        self._next_result_id += 1
        self.results.setdefault(case_id, []).append(result)
        self._save_persistence()

        logger.info(
            "Created result",
            case_id=case_id,
            summary_len=len(summary or ""),
            findings_len=len(findings or ""),
        )
        return result

    async def get_result(self, case_id: int) -> Optional[ResearchResult]:
        """Latest result of a case."""
        results = self.results.get(case_id)
        if not results:
            return None
        return max(results, key=lambda r: (r.created_at, r.id))
