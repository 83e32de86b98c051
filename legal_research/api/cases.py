"""
Case API endpoints.

Submitting, listing and executing research cases, plus read access to a
case's execution trace, latest result and exports.
"""

from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from .dependencies import get_case_service, get_controller
from ..models.schemas import (
    AgentLogView,
    Case,
    CaseCreate,
    CaseCreated,
    ExportFormat,
    ExportPayload,
    ResearchResult,
    WorkflowResult,
)
from ..services.case_lifecycle import CaseLifecycleController
from ..services.case_service import CaseService
from ..services.error_handling import (
    CaseAlreadyProcessingError,
    CaseNotFoundError,
    LegalResearchError,
)
from ..services.export import export_result

logger = structlog.get_logger()
router = APIRouter()


async def _require_case(case_service: CaseService, case_id: int) -> Case:
    case = await case_service.get_case(case_id)
    if case is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Case not found")
    return case


@router.post(
    "",
    response_model=CaseCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a research case",
)
async def create_case(
    payload: CaseCreate,
    controller: CaseLifecycleController = Depends(get_controller),
) -> CaseCreated:
    case_id = await controller.submit(payload.title, payload.description, payload.query)
    return CaseCreated(case_id=case_id)


@router.get("", response_model=List[Case], summary="List the demo user's cases")
async def list_cases(case_service: CaseService = Depends(get_case_service)) -> List[Case]:
    user_id = await case_service.ensure_demo_user()
    return await case_service.list_cases(user_id)


@router.get("/{case_id}", response_model=Case, summary="Get a case")
async def get_case(
    case_id: int,
    case_service: CaseService = Depends(get_case_service),
) -> Case:
    return await _require_case(case_service, case_id)


@router.post(
    "/{case_id}/execute",
    response_model=WorkflowResult,
    summary="Run the research pipeline for a case",
)
async def execute_case(
    case_id: int,
    controller: CaseLifecycleController = Depends(get_controller),
) -> WorkflowResult:
    """Execute the case synchronously and return the pipeline outcome.

    A failed pipeline is still a 200 response with ``success=false``; the
    case status records the failure.
    """
    try:
        return await controller.execute(case_id)
    except CaseNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except CaseAlreadyProcessingError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except LegalResearchError as e:
        logger.error("Case execution failed", case_id=case_id, error=e.message)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.to_dict())


@router.get(
    "/{case_id}/logs",
    response_model=List[AgentLogView],
    summary="Execution trace of a case",
)
async def get_case_logs(
    case_id: int,
    case_service: CaseService = Depends(get_case_service),
) -> List[AgentLogView]:
    await _require_case(case_service, case_id)
    return [AgentLogView.from_entry(e) for e in await case_service.get_logs(case_id)]


@router.get(
    "/{case_id}/result",
    response_model=ResearchResult,
    summary="Latest result of a case",
)
async def get_case_result(
    case_id: int,
    case_service: CaseService = Depends(get_case_service),
) -> ResearchResult:
    await _require_case(case_service, case_id)
    result = await case_service.get_result(case_id)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No result for this case")
    return result


@router.get(
    "/{case_id}/export",
    response_model=ExportPayload,
    summary="Export the latest result as Markdown or JSON",
)
async def export_case(
    case_id: int,
    format: Optional[str] = Query("markdown", description="markdown or json"),
    case_service: CaseService = Depends(get_case_service),
) -> ExportPayload:
    case = await _require_case(case_service, case_id)
    result = await case_service.get_result(case_id)
    return export_result(case, result, ExportFormat.parse(format))
