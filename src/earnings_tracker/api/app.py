"""FastAPI application factory."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from earnings_tracker.api.models import ErrorOut
from earnings_tracker.api.routes import router as session_router
from earnings_tracker.app_logging import configure_logging
from earnings_tracker.containers import AppContainer
from earnings_tracker.errors import EarningsTrackerError, ValidationError


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    app = FastAPI(title="Earnings Tracker")
    app.state.container = container

    app.include_router(session_router)

    @app.exception_handler(EarningsTrackerError)
    async def handle_tracker_error(
        request: Request, exc: EarningsTrackerError
    ) -> JSONResponse:
        logger.info(
            "Request rejected",
            extra={"path": request.url.path, "error": exc.code},
        )
        return _error_response(exc.status_code, exc.code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "Invalid request")
        detail = f"{location}: {message}" if location else message
        return _error_response(
            status.HTTP_400_BAD_REQUEST, ValidationError.code, detail
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app


def _error_response(status_code: int, code: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorOut(error=code, detail=detail).model_dump(),
    )
