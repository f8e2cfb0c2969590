"""FastAPI application entrypoint for the studio manager."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .api.v1.router import api_router
from .core.config import get_settings
from .core.exceptions import StoreError
from .core.logging import setup_logging
from .jobs import register_scheduler

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Instantiate and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(title="Studio Manager API", version="0.1.0")

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        error = StoreError(str(exc))
        logger.error("database error", extra={"path": request.url.path}, exc_info=exc)
        return JSONResponse(status_code=error.status_code, content={"detail": error.detail})

    app.include_router(api_router, prefix="/api/v1")
    register_scheduler(app)
    return app


app = create_app()
