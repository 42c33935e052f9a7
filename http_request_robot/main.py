"""
HTTP Request Robot - FastAPI Application Entry Point

Workflow robot that executes a configured HTTP request, maps values out of
the response and reports them back to the workflow engine.
"""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .database import SessionLocal, init_db
from .exceptions import register_exception_handlers
from .logging_config import configure_logging, get_logger
from .routers import execute, lifecycle
from .services.callback_sender import CallbackSender
from .services.orchestrator import ExecutionOrchestrator
from .services.quota_service import QuotaService
from .services.token_manager import TokenManager
from .services.token_store import SqlTokenStore
from .services.ttl_cache import TTLCache


logger = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)

    # Startup: Initialize database and long-lived collaborators
    init_db()
    client = httpx.AsyncClient()
    token_manager = TokenManager(
        store=SqlTokenStore(SessionLocal),
        client=client,
        token_url=settings.oauth_token_url,
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        buffer_seconds=settings.token_expiry_buffer_seconds,
        default_lifetime_seconds=settings.default_token_lifetime_seconds,
        timeout=settings.oauth_timeout_seconds,
    )
    quota_service = QuotaService(SessionLocal, TTLCache(settings.quota_cache_ttl_seconds))

    app.state.session_factory = SessionLocal
    app.state.token_manager = token_manager
    app.state.orchestrator = ExecutionOrchestrator(
        settings=settings,
        client=client,
        callback_sender=CallbackSender(client, timeout=settings.callback_timeout_seconds),
        token_manager=token_manager,
        quota_service=quota_service,
    )
    logger.info("HTTP Request Robot started", callback_credentials=settings.callback_credentials)
    yield
    # Shutdown: close pooled connections
    await client.aclose()


app = FastAPI(
    title="HTTP Request Robot",
    description="Workflow robot executing configurable HTTP requests",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)

# The settings UI is served inside the portal, on another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register global exception handlers
register_exception_handlers(app)


@app.get("/")
async def root():
    """Root endpoint returning service information."""
    return {
        "name": "HTTP Request Robot",
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Register routers
app.include_router(execute.router)
app.include_router(lifecycle.router)
