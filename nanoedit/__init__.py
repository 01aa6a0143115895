"""FastAPI application factory"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException

from nanoedit.config import settings
from nanoedit.config_validator import config_validator
from nanoedit.http_client import close_http_client


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration; release the provider client on shutdown"""
    config_validator.check_and_exit_on_errors()

    yield

    await close_http_client()


def create_app() -> FastAPI:
    """Create the FastAPI application"""

    app = FastAPI(
        title="Nano Banana Image Editing API",
        version="1.0.0",
        lifespan=lifespan,
        debug=getattr(settings, "DEBUG", False),
    )

    # Configure structured logging
    from nanoedit.logging import configure_logging
    configure_logging()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["X-Request-ID"],
    )

    # Request logging
    from nanoedit.middleware.request_logger import RequestLoggerMiddleware
    app.add_middleware(RequestLoggerMiddleware)

    from nanoedit.middleware.exception_handlers import (
        exception_handler_middleware,
        http_exception_handler,
        validation_exception_handler,
    )
    from nanoedit.middleware.rate_limiter import rate_limit_middleware

    app.middleware("http")(exception_handler_middleware)
    app.middleware("http")(rate_limit_middleware)

    # Exception handlers
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(
        RequestValidationError, validation_exception_handler
    )

    # Initialize Celery
    from nanoedit.celery_utils import create_celery
    app.celery_app = create_celery()

    # Register routers via API module
    from nanoedit.api import register_routers
    register_routers(app)

    return app
