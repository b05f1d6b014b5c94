from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from backoffice.config import settings
from backoffice.api.v1.router import api_router
from backoffice.core.exceptions import WorkflowError
from backoffice.database import init_db, async_session_factory
from backoffice.jobs.scheduler import start_scheduler, shutdown_scheduler


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
    - Create missing tables
    - Start background scheduler (overdue sweep)
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    if settings.SCHEDULER_ENABLED:
        start_scheduler()

    yield

    shutdown_scheduler()
    logger.info(f"{settings.APP_NAME} stopped")


API_DESCRIPTION = """
Back-office workflow engine: orders, invoices and payments on the sales
side; recipes, production orders and batches on the manufacturing side;
purchase requests and raw-material receipts on the buy side.

### Acting user

Authentication happens upstream. Pass the acting user's id in the
`X-User-Id` header; it is recorded on documents and stock movements.

### Error Codes

| Code | Description |
|------|-------------|
| 400 | Validation failed (unknown ids, non-positive quantities, negative price) |
| 404 | Resource doesn't exist |
| 409 | Operation not allowed in the entity's current status |
| 422 | Stock or recipe rule violated (insufficient material, negative stock, no recipe) |
| 500 | Internal error; retry the request |
"""

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


def _error_body(request: Request, message: str, error_type: str) -> dict:
    return {
        "error": message,
        "type": error_type,
        "path": str(request.url.path),
        "method": request.method,
    }


@app.exception_handler(WorkflowError)
async def workflow_exception_handler(request: Request, exc: WorkflowError):
    """Business-rule failures: the request's transaction was rolled back as a whole."""
    content = _error_body(request, exc.message, type(exc).__name__)
    if exc.details is not None:
        content["details"] = exc.details
    logger.info(f"{request.method} {request.url.path} rejected: {type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Unexpected failures surface as a generic 500 with a retry suggestion."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    content = _error_body(
        request,
        "An unexpected error occurred. Please retry the request.",
        type(exc).__name__,
    )
    return JSONResponse(status_code=500, content=content)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
