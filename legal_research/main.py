"""Main FastAPI application for the Legal Research service."""

import logging
import time
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram, make_asgi_app

from .agents import LegalResearchOrchestrator
from .api import cases, health
from .core.config import settings
from .llm import LLMGateway
from .services.case_lifecycle import CaseLifecycleController
from .services.case_service import CaseService
from .services.web_search import WebSearchClient

VERSION = "0.1.0"

logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Metrics
request_count = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)
request_duration = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration",
    ["method", "endpoint"]
)


def endpoint_label(request) -> str:
    """Route template for metrics labels, e.g. ``/api/v1/cases/{case_id}``.

    Requests that matched no route share one label.
    """
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def build_services(app: FastAPI) -> None:
    """Wire gateway, search client, store and controller onto app state.

    Anything already present on the state (e.g. injected by tests) is kept.
    """
    state = app.state
    if getattr(state, "gateway", None) is None:
        state.gateway = LLMGateway.from_settings(settings)
    if getattr(state, "search_client", None) is None:
        state.search_client = WebSearchClient(
            api_key=settings.tavily_api_key,
            base_url=settings.tavily_base_url,
            timeout=settings.search_timeout,
        )
    if getattr(state, "case_service", None) is None:
        state.case_service = CaseService(settings.case_store_path)
    if getattr(state, "controller", None) is None:
        orchestrator = LegalResearchOrchestrator(
            state.gateway,
            state.case_service,
            search_client=state.search_client,
            settings=settings,
        )
        state.controller = CaseLifecycleController(state.case_service, orchestrator)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Legal Research service", version=VERSION, env=settings.app_env)
    build_services(app)

    providers = app.state.gateway.get_provider_status()
    active = next((name for name, info in providers.items() if info["active"]), None)
    if active == "demo":
        logger.warning("No LLM provider configured - running with demo verdicts")
    else:
        logger.info("LLM provider selected", provider=active)
    if not app.state.search_client.is_configured:
        logger.warning("Tavily API key not set - web search disabled")

    yield

    logger.info("Shutting down Legal Research service")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Legal Research Service",
        description="Three-stage AI legal research pipeline: web research, synthesis and verdict",
        version=VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler."""
        logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    @app.middleware("http")
    async def log_requests(request, call_next):
        """Log all requests and collect metrics."""
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time
        endpoint = endpoint_label(request)

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration=duration,
        )
        request_count.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
        ).inc()
        request_duration.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)
        return response

    app.include_router(
        cases.router,
        prefix=f"{settings.api_prefix}/cases",
        tags=["cases"],
    )
    app.include_router(
        health.router,
        prefix=f"{settings.api_prefix}/health",
        tags=["health"],
    )

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.app_name,
            "version": VERSION,
            "status": "running",
            "docs": "/docs",
            "health": f"{settings.api_prefix}/health",
        }

    # Mount Prometheus metrics endpoint
    if settings.enable_metrics:
        app.mount("/metrics", make_asgi_app())

    return app


app = create_app()


def run():
    """Run the application."""
    uvicorn.run(
        "legal_research.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
