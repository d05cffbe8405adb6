import logging
import time
import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from testscope.api.routes import api_router
from testscope.api.routes.health import APP_VERSION
from testscope.config.settings import settings
from testscope.core.dependencies import container
from testscope.core.exceptions import InvalidPullRequestUrl, UpstreamUnavailable, to_http_exception


def configure_logging() -> None:
    """JSON log lines on stdout; request-scoped fields come from contextvars."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, settings.log_level.upper(), logging.INFO))
    renderer = structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


configure_logging()
logger = structlog.get_logger()


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(UpstreamUnavailable)
    @app.exception_handler(InvalidPullRequestUrl)
    async def upstream_error(request: Request, exc: Exception):
        http_exc = to_http_exception(exc)
        logger.warning("Upstream call failed", path=request.url.path, status_code=http_exc.status_code, error=str(exc))
        return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "Internal server error", "timestamp": time.time()})


def create_app() -> FastAPI:
    """Build the Test Scope Companion application"""
    app = FastAPI(
        title="Test Scope Companion API",
        description="Relevance-scored test scope selection from Jira, Bitbucket and TestRail",
        version=APP_VERSION,
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        started = time.perf_counter()
        with structlog.contextvars.bound_contextvars(request_id=request_id, method=request.method):
            logger.info("Request received", path=request.url.path)
            response = await call_next(request)
            logger.info(
                "Request handled",
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
        response.headers["X-Request-ID"] = request_id
        return response

    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()


@app.on_event("startup")
async def load_traceability():
    table = container.traceability()
    logger.info(
        "Test Scope Companion ready",
        environment=settings.environment,
        traceability_components=len(table.components),
        caching_enabled=settings.enable_caching,
    )


@app.on_event("shutdown")
async def stop_cache_sweeper():
    container.shutdown()
    logger.info("Test Scope Companion stopped")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
