import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sentry_sdk import capture_exception

from app.exceptions import MarketError

logger = structlog.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


async def market_error_handler(request: Request, exc: MarketError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.message)
        capture_exception(exc)
    return _error(exc.status_code, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    logger.info("Invalid request", path=request.url.path, errors=len(errors))
    if errors:
        field = ".".join(str(part) for part in errors[0].get("loc", ())[1:])
        message = f"Invalid {field}" if field else "Invalid input"
    else:
        message = "Invalid input"
    return _error(400, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path)
    capture_exception(exc)
    return _error(500, "Internal server error")


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(MarketError, market_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
