"""
Case lifecycle controller.

Moves a case through pending -> processing -> completed/failed around one
pipeline run and persists the verdict as a Result. A completed status is only
written after its Result exists.
"""

import asyncio
import json
from typing import Any, Dict, Optional

import structlog

from .case_service import CaseService
from .error_handling import CaseAlreadyProcessingError, CaseNotFoundError, OutputParseError
from .sanitizer import parse_json_object
from ..models.schemas import Case, CaseStatus, ResearchResult, Verdict, WorkflowResult

logger = structlog.get_logger()


def fallback_verdict(raw: str) -> Verdict:
    """Diagnostic verdict stored when the lawyer output is not a JSON object."""
    return Verdict(
        summary="Automated parsing failed. See detailed analysis below.",
        analysis=raw,
        recommendation="Please review raw findings.",
        riskAssessment="Unknown",
        citations=[],
    )


def parse_verdict(raw: Optional[str]) -> Verdict:
    """Verdict from lawyer output; any JSON object is kept as-is."""
    raw = raw or ""
    try:
        return Verdict.model_validate(parse_json_object(raw))
    except OutputParseError as e:
        logger.warning("Verdict unparseable, storing raw fallback", error=e.message)
        return fallback_verdict(raw)


def as_text(value: Any) -> Optional[str]:
    """Column text for a verdict field; structured values are stored as JSON."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value)


def synthesis_lists(synthesis: Optional[str]) -> Dict[str, Optional[str]]:
    """Precedents and statutes from the associate synthesis, as JSON text."""
    extracted: Dict[str, Optional[str]] = {"precedents": None, "statutes": None}
    if not synthesis:
        return extracted
    try:
        data = parse_json_object(synthesis)
    except OutputParseError:
        return extracted
    for key in extracted:
        value = data.get(key)
        if isinstance(value, list):
            extracted[key] = json.dumps(value)
    return extracted


class CaseLifecycleController:
    """Submits cases and executes their research pipeline."""

    def __init__(self, case_service: CaseService, orchestrator):
        self.case_service = case_service
        self.orchestrator = orchestrator
        self._locks: Dict[int, asyncio.Lock] = {}

    def _lock_for(self, case_id: int) -> asyncio.Lock:
        lock = self._locks.get(case_id)
        if lock is None:
            lock = self._locks[case_id] = asyncio.Lock()
        return lock

    def is_processing(self, case_id: int) -> bool:
        lock = self._locks.get(case_id)
        return bool(lock and lock.locked())

    async def submit(self, title: str, description: Optional[str], query: str) -> int:
        """Create a pending case for the demo user and return its id."""
        user_id = await self.case_service.ensure_demo_user()
        case = await self.case_service.create_case(user_id, title, description, query)
        return case.id

    async def execute(self, case_id: int) -> WorkflowResult:
        """Run the pipeline for a case and record its outcome.

        Raises:
            CaseNotFoundError: no case with this id
            CaseAlreadyProcessingError: a run for this case is in flight
        """
        case = await self.case_service.get_case(case_id)
        if case is None:
            raise CaseNotFoundError(case_id)

        lock = self._lock_for(case_id)
        if lock.locked():
            raise CaseAlreadyProcessingError(case_id)

        try:
            async with lock:
                workflow = await self._run(case_id, case)
        finally:
            # concurrent callers are rejected, never queued, so nobody waits on it
            if not lock.locked() and self._locks.get(case_id) is lock:
                del self._locks[case_id]

        logger.info("Case executed", case_id=case_id, success=workflow.success)
        return workflow

    async def _run(self, case_id: int, case: Case) -> WorkflowResult:
        await self.case_service.update_case_status(case_id, CaseStatus.PROCESSING)
        try:
            workflow = await self.orchestrator.execute_workflow(
                case_id, case.query, case.description or None
            )
            if workflow.success:
                await self._store_result(case_id, workflow)
                await self.case_service.update_case_status(case_id, CaseStatus.COMPLETED)
            else:
                await self.case_service.update_case_status(case_id, CaseStatus.FAILED)
        except Exception:
            logger.error("Case execution aborted", case_id=case_id, exc_info=True)
            await self.case_service.update_case_status(case_id, CaseStatus.FAILED)
            raise
        return workflow

    async def _store_result(self, case_id: int, workflow: WorkflowResult) -> ResearchResult:
        verdict = parse_verdict(workflow.result)
        lists = synthesis_lists(workflow.synthesis)
        return await self.case_service.create_result(
            case_id,
            summary=as_text(verdict.summary),
            findings=verdict.model_dump_json(),
            precedents=lists["precedents"],
            statutes=lists["statutes"],
            recommendation=as_text(verdict.recommendation),
        )
