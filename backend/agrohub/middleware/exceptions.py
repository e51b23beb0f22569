"""Custom exceptions and handlers for consistent error responses.

Two response shapes are produced:

  - isolation errors (auth missing, ownership denied, store failure)
    render the flat body the frontends already parse:
        {"error": "Acesso negado: fazenda não pertence ao usuário"}

  - every other application error renders the structured body:
        {"error": {"code": "RESOURCE_NOT_FOUND", "message": "...", "details": {...}}}
"""

import logging
import traceback
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AgroHubException(Exception):
    """Base exception for AgroHub application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)


class BusinessLogicError(AgroHubException):
    """Exception for business logic violations."""

    def __init__(self, message: str, error_code: str = "BUSINESS_LOGIC_ERROR"):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=error_code,
        )


class ResourceNotFoundError(AgroHubException):
    """Resource missing, or outside the caller's tenant (route-handler posture)."""

    def __init__(self, resource: str, message: str | None = None):
        super().__init__(
            message=message or f"{resource} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
        )


# ── Tenant isolation taxonomy ───────────────────────────────

MSG_UNAUTHENTICATED = "Usuário não autenticado"
MSG_FARM_DENIED = "Acesso negado: fazenda não pertence ao usuário"
MSG_FIELD_DENIED = "Acesso negado: campo não pertence ao usuário"
MSG_IMPERSONATION = "Não é possível criar recursos para outro usuário"
MSG_INTERNAL = "Erro interno do servidor"


class IsolationError(AgroHubException):
    """Raised by the tenant isolation layer; rendered as {"error": message}."""


class AuthenticationMissing(IsolationError):
    def __init__(self):
        super().__init__(
            message=MSG_UNAUTHENTICATED,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTHENTICATION_MISSING",
        )


class OwnershipDenied(IsolationError):
    """Resource not owned by the caller.

    Also used when the resource does not exist, so responses never reveal
    whether an id belongs to another tenant.
    """

    def __init__(self, message: str = MSG_FARM_DENIED):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="OWNERSHIP_DENIED",
        )


class ImpersonationDenied(IsolationError):
    def __init__(self):
        super().__init__(
            message=MSG_IMPERSONATION,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="IMPERSONATION_DENIED",
        )


class StoreFailure(IsolationError):
    """The backing store failed while an ownership question was being answered."""

    def __init__(self, detail: str = "ownership lookup failed"):
        self.detail = detail
        super().__init__(
            message=MSG_INTERNAL,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="STORE_FAILURE",
        )


class ResolutionError(StoreFailure):
    """Owned-id set could not be computed. Never coerce to an empty set."""


# ── Response helpers ────────────────────────────────────────

def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    content = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if details:
        content["error"]["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content,
    )


async def isolation_exception_handler(
    request: Request,
    exc: IsolationError,
) -> JSONResponse:
    """Flat {"error": "..."} body; StoreFailure details stay in the log."""
    if isinstance(exc, StoreFailure):
        logger.error(
            f"Isolation check failed on {request.url.path}: {exc.detail}",
            extra={"path": request.url.path, "method": request.method},
        )
    else:
        logger.info(
            f"Isolation denied: {exc.error_code}",
            extra={"path": request.url.path, "method": request.method},
        )

    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def agrohub_exception_handler(
    request: Request,
    exc: AgroHubException,
) -> JSONResponse:
    logger.warning(
        f"AgroHub exception: {exc.error_code} - {exc.message}",
        extra={
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            f"HTTP {exc.status_code}: {exc.detail}",
            extra={
                "path": request.url.path,
                "method": request.method,
            },
        )

    response = create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    logger.warning(
        f"Validation error on {request.url.path}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


async def database_exception_handler(
    request: Request,
    exc: IntegrityError,
) -> JSONResponse:
    """Unique / foreign key / not-null violations."""
    error_msg = str(exc.orig) if hasattr(exc, "orig") else str(exc)
    logger.error(
        f"Database integrity error on {request.url.path}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    if "unique" in error_msg.lower():
        message = "A record with this value already exists"
        error_code = "DUPLICATE_RECORD"
    elif "foreign key" in error_msg.lower():
        message = "Referenced record does not exist"
        error_code = "FOREIGN_KEY_VIOLATION"
    elif "not null" in error_msg.lower():
        message = "Required field is missing"
        error_code = "NULL_VALUE_NOT_ALLOWED"
    else:
        message = "Database constraint violation"
        error_code = "INTEGRITY_ERROR"

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message=message,
        error_code=error_code,
    )


async def operational_exception_handler(
    request: Request,
    exc: OperationalError,
) -> JSONResponse:
    logger.error(
        f"Database operational error on {request.url.path}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        message="Database temporarily unavailable. Please try again.",
        error_code="DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    logger.error(
        f"Unhandled exception on {request.url.path}: {type(exc).__name__}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "traceback": traceback.format_exc(),
        },
        exc_info=True,
    )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(IsolationError, isolation_exception_handler)
    app.add_exception_handler(AgroHubException, agrohub_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, database_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
