"""FastAPI application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pagecite.api.dependencies import get_cached_config
from pagecite.api.middleware import ExceptionHandlerMiddleware, RequestLoggingMiddleware
from pagecite.api.routes import router as api_router
from pagecite.core.di_container import container as di_container
from pagecite.core.exceptions import AppError, RateLimitedError
from pagecite.core.logging import setup_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    config = get_cached_config()

    setup_logging(
        log_level=config.log_level,
        json_format=not config.debug,
        log_to_file=config.log_to_file,
        log_dir=config.log_dir,
    )

    di_container.wire(modules=["pagecite.api.routes"])

    logger.info(
        "application_starting",
        app_name=config.app_name,
        upstream_provider=config.upstream.provider,
        upstream_model=config.upstream.model,
        vector_store_configured=bool(config.upstream.vector_store_id),
    )

    rate_limiter = di_container.rate_limiter()
    await rate_limiter.start()

    catalog = di_container.catalog()
    logger.info(
        "container_initialized",
        upstream=type(di_container.upstream()).__name__,
        corpus_documents=catalog.document_names(),
    )

    yield

    await rate_limiter.stop()
    di_container.unwire()
    logger.info("application_shutting_down")


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render application errors with their own status code."""
    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    if exc.status_code >= 500:
        logger.error("request_error", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as 400."""
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request",
                "details": jsonable_encoder(exc.errors()),
            }
        },
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    config = get_cached_config()

    app = FastAPI(
        title=config.app_name,
        description="Page-cited streaming answers over a paginated document corpus",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Retry-After"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ExceptionHandlerMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/")
    async def root():
        return {
            "name": config.app_name,
            "version": "0.1.0",
            "docs": "/docs",
            "health": "/api/v1/health",
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    config = get_cached_config()
    uvicorn.run(
        "pagecite.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
    )
