import os
import subprocess
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config.logger import app_logger, log_request_start, log_request_end, log_request_error
from app.config.settings import settings
from app.db.memory_store import InMemoryAuditStore
from app.db.supabase_db import SupabaseAuditStore
from app.middleware.audit_logger import AuditLogMiddleware
from app.services.container import build_audit_services
from app.utils.supabase_client import create_supabase_admin_client
from app.api.audit.router import router as audit_router


_git_sha_cache: Optional[str] = None


def get_git_sha() -> str:
    """Get the current Git commit SHA (cached to avoid blocking)."""
    global _git_sha_cache
    if _git_sha_cache is not None:
        return _git_sha_cache

    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            check=True,
            timeout=1.0
        )
        _git_sha_cache = result.stdout.strip()[:8]
        return _git_sha_cache
    except (subprocess.CalledProcessError, FileNotFoundError, subprocess.TimeoutExpired):
        _git_sha_cache = "local-dev"
        return _git_sha_cache


async def create_audit_store():
    """Build the audit store: Supabase when configured, in-memory otherwise."""
    if not settings.supabase_configured:
        app_logger.warning("SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not set")
        app_logger.warning("Falling back to in-memory audit store; entries will not survive a restart")
        return InMemoryAuditStore()

    client = await create_supabase_admin_client()
    app_logger.info("Using Supabase REST API (HTTPS) for audit log storage")
    return SupabaseAuditStore(client, timeout=settings.AUDIT_STORE_TIMEOUT_SECONDS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager for startup and shutdown events."""
    app_logger.info("Evidence Audit Trail API starting up")

    store = await create_audit_store()
    app.state.audit_services = build_audit_services(store, settings)

    is_ok, message = await store.ping(settings.AUDIT_LOG_TABLE)
    if is_ok:
        app_logger.info(f"Audit store connection: {message}")
    else:
        app_logger.warning(f"Audit store connection issue: {message}")
        app_logger.warning("Audit writes will fall back to logs/audit_fallback.log until the store recovers")

    app_logger.info("Application initialized successfully")

    yield

    app_logger.info("Evidence Audit Trail API shutting down")
    writer = app.state.audit_services.writer
    if writer.pending:
        app_logger.info(f"Waiting for {writer.pending} in-flight audit write(s)")
        await writer.drain(timeout=settings.AUDIT_SHUTDOWN_DRAIN_SECONDS)
    app_logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Writer is resolved from app.state.audit_services per request.
app.add_middleware(AuditLogMiddleware)


# Logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests with timing information using Loguru."""
    start_time = datetime.now()

    log_request_start(request)

    try:
        response = await call_next(request)

        process_time = (datetime.now() - start_time).total_seconds()
        log_request_end(request, response.status_code, process_time)

        return response

    except Exception as e:
        process_time = (datetime.now() - start_time).total_seconds()
        log_request_error(request, e, process_time)
        raise


@app.get("/", tags=["health"])
async def root():
    """Root endpoint with basic API information."""
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "status": "operational",
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/status", tags=["health"])
async def status():
    """Status endpoint with build information for CI/CD monitoring."""
    build_number = os.getenv("BUILD_NUMBER", "local-dev")
    git_sha = os.getenv("GIT_SHA", os.getenv("GITHUB_SHA", get_git_sha()))
    environment = os.getenv("ENVIRONMENT", os.getenv("ENV", "development"))

    return {
        "status": "ok",
        "build": build_number,
        "sha": git_sha,
        "env": environment
    }


@app.get("/health/db", tags=["health"])
async def health_db(request: Request):
    """Audit store health endpoint."""
    services = getattr(request.app.state, "audit_services", None)
    if services is None:
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "db": "unavailable", "message": "Audit store not initialized"}
        )

    is_ok, message = await services.store.ping(settings.AUDIT_LOG_TABLE)
    if not is_ok:
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "db": "unavailable", "message": message}
        )
    return {"status": "ok", "db": "available", "message": message}


app.include_router(audit_router)


if __name__ == "__main__":
    import uvicorn

    app_logger.info("Starting Evidence Audit Trail API server")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_config=None  # Use our custom logger
    )
