"""FastAPI application factory and startup configuration.

Every error leaves the service as the same envelope:
``{"success": false, "data": null, "message": ..., "errors": [...], "trace_id": ...}``
with the status code carrying the error kind (400/401/403/404/500).
"""
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.core.exceptions import AppException, DependencyError
from app.core.logging import setup_logging, get_logger, set_correlation_id
from app.api.v1.properties import router as properties_router
from app.api.responses import error_body, ok

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown events."""
    setup_logging()
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)

    if not settings.cloudinary_configured:
        logger.warning(
            "Cloudinary credentials missing — image uploads will fail. "
            "Set CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET."
        )

    yield

    from app.database import engine
    await engine.dispose()
    logger.info("Shutting down %s", settings.app_name)


def _validation_messages(exc: RequestValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        messages.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return messages


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Real estate listings backend — search, geo lookups and agent-owned property management.",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.middleware("http")
    async def add_trace_id(request: Request, call_next):
        request.state.trace_id = str(uuid4())
        set_correlation_id(request.state.trace_id)
        response = await call_next(request)
        response.headers["X-Trace-Id"] = request.state.trace_id
        return response

    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        trace_id = getattr(request.state, "trace_id", None)
        logger.exception("Unhandled exception [trace_id=%s]", trace_id, exc_info=exc)
        return JSONResponse(status_code=500, content=error_body("Internal server error", request))

    @application.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        if isinstance(exc, DependencyError):
            logger.error("Dependency failure: %s (%s)", exc.message, exc.detail)
        errors = exc.detail if isinstance(exc.detail, list) else None
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, request, errors))

    @application.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        messages = _validation_messages(exc)
        return JSONResponse(
            status_code=400,
            content=error_body("Validation failed: " + "; ".join(messages), request, messages),
        )

    @application.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail), request),
            headers=getattr(exc, "headers", None),
        )

    application.include_router(properties_router, prefix="/api/v1/properties", tags=["properties"])

    @application.get("/health", tags=["system"])
    async def health_check(request: Request):
        from sqlalchemy import text
        from app.database import async_session_factory

        db_status = "ok"
        try:
            async with async_session_factory() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            logger.warning("Health check database probe failed: %s", e)
            db_status = "error"

        return ok(
            {
                "status": "healthy" if db_status == "ok" else "unhealthy",
                "version": settings.app_version,
                "database": db_status,
            },
            "Health check completed",
            request,
        )

    return application


app = create_app()
