"""FastAPI dependencies resolving the services held on app state."""

from fastapi import Request

from ..llm import LLMGateway
from ..services.case_lifecycle import CaseLifecycleController
from ..services.case_service import CaseService


def get_case_service(request: Request) -> CaseService:
    return request.app.state.case_service


def get_controller(request: Request) -> CaseLifecycleController:
    return request.app.state.controller


def get_gateway(request: Request) -> LLMGateway:
    return request.app.state.gateway
