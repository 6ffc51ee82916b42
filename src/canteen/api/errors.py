"""HTTP translation of domain errors."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

from canteen.errors import CanteenError, OrderIntegrityError

logger = structlog.get_logger(__name__)

# Result kinds returned by services that do not raise
RESULT_STATUS_CODES = {
    "ValidationError": 400,
    "OwnershipError": 403,
    "IntegrityError": 422,
    "InvalidTransition": 409,
    "ConcurrencyConflict": 409,
    "VelocityLimitExceeded": 429,
    "PersistenceFailure": 503,
}


def error_body(kind, message):
    return {"error": {"kind": kind, "message": message}}


async def canteen_error_handler(request: Request, exc: CanteenError):
    if isinstance(exc, OrderIntegrityError):
        logger.error("Integrity failure", path=request.url.path, detail=exc.message, **exc.context)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.kind, exc.public_message))


async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"error": exc.messages})


async def not_found_handler(request: Request, exc: ObjectNotFoundError):
    return JSONResponse(status_code=404, content={"error": "Not found"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CanteenError, canteen_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
