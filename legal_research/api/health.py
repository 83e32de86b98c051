"""Health check API endpoints."""

from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Depends, Request

from .dependencies import get_gateway
from ..core.config import settings
from ..llm import LLMGateway, ProviderName

logger = structlog.get_logger()
router = APIRouter()

VERSION = "0.1.0"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get(
    "",
    summary="Health check",
    description="Basic health check endpoint",
)
async def health_check() -> Dict[str, str]:
    return {
        "status": "healthy",
        "timestamp": _now(),
        "service": settings.app_name,
        "version": VERSION,
    }


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if service is ready to handle requests",
)
async def readiness_check(
    request: Request,
    gateway: LLMGateway = Depends(get_gateway),
) -> Dict[str, Any]:
    """Readiness of the store, the text-generation providers and web search.

    Running without provider credentials is degraded, not unready: the demo
    provider still answers.
    """
    providers = gateway.get_provider_status()
    active = next((name for name, info in providers.items() if info["active"]), None)
    search_client = getattr(request.app.state, "search_client", None)

    ready_status = {
        "ready": getattr(request.app.state, "case_service", None) is not None,
        "timestamp": _now(),
        "checks": {
            "llm": {
                "status": "ready" if active and active != ProviderName.DEMO.value else "degraded",
                "active_provider": active,
                "providers": providers,
            },
            "web_search": {
                "status": "ready" if search_client and search_client.is_configured else "not_configured",
            },
        },
    }
    ready_status["degraded_mode"] = any(
        check["status"] != "ready" for check in ready_status["checks"].values()
    )
    if ready_status["degraded_mode"]:
        logger.info("Service running in degraded mode", active_provider=active)
    return ready_status


@router.get("/live", summary="Liveness check")
async def liveness_check() -> Dict[str, str]:
    return {"status": "alive", "timestamp": _now()}
