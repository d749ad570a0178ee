"""
Error responses for the quotes API.

Every failure is rendered as a JSON object carrying an ``error`` message
(what the UI displays) plus a machine-readable ``code``, the HTTP
``status`` and a ``trace_id`` matching the request's X-Request-ID header.

Taxonomy:
- ConfigurationError: required external credentials are missing (500)
- ValidationError: missing required fields or malformed JSON (400)
- NotFoundError: no record for the requested key (404)
- DownstreamError: data store, storage or webhook failure (500)
"""

from typing import Optional, Dict, Any, List
from enum import Enum
from pydantic import BaseModel
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import traceback

logger = logging.getLogger(__name__)


def _get_trace_id() -> str:
    """Request ID of the current request, or a fresh one outside a request."""
    from shopquotes.middleware.request_context import get_request_id, new_request_id
    request_id = get_request_id()
    return request_id if request_id != "-" else new_request_id()


class ErrorCode(str, Enum):
    """Standardized error codes."""

    # Validation
    VALIDATION_ERROR = "VAL_001"
    INVALID_JSON = "VAL_002"
    MISSING_FIELD = "VAL_003"
    TOTAL_MISMATCH = "VAL_004"

    # Resource
    NOT_FOUND = "RES_001"

    # External services
    CONFIGURATION_MISSING = "CFG_001"
    DATABASE_ERROR = "EXT_001"
    STORAGE_ERROR = "EXT_002"
    WEBHOOK_ERROR = "EXT_003"

    # Server
    PDF_RENDER_ERROR = "SRV_001"
    INTERNAL_ERROR = "SRV_002"


class ErrorBody(BaseModel):
    """JSON error body returned for every failed request."""

    error: str
    code: str
    status: int
    trace_id: str
    errors: Optional[List[Dict[str, Any]]] = None
    url: Optional[str] = None


class ShopQuotesException(HTTPException):
    """
    Base exception for the API.

    Usage:
        raise ShopQuotesException(
            status_code=404,
            code=ErrorCode.NOT_FOUND,
            detail="Orçamento não encontrado",
        )
    """

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        detail: str,
        errors: Optional[List[Dict[str, Any]]] = None,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code
        self.errors = errors
        self.extra = extra or {}
        self.trace_id = _get_trace_id()
        super().__init__(status_code=status_code, detail=detail, headers=headers)

    def to_body(self) -> ErrorBody:
        return ErrorBody(
            error=self.detail,
            code=self.code.value,
            status=self.status_code,
            trace_id=self.trace_id,
            errors=self.errors,
            **self.extra,
        )


class ConfigurationError(ShopQuotesException):
    """Required configuration absent (500)."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=500,
            code=ErrorCode.CONFIGURATION_MISSING,
            detail=detail,
        )


class ValidationError(ShopQuotesException):
    """Invalid request payload (400)."""

    def __init__(
        self,
        detail: str,
        errors: Optional[List[Dict[str, Any]]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            status_code=400,
            code=code,
            detail=detail,
            errors=errors,
        )


class NotFoundError(ShopQuotesException):
    """Resource not found (404)."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=404,
            code=ErrorCode.NOT_FOUND,
            detail=detail,
        )


class DownstreamError(ShopQuotesException):
    """Data store, storage or webhook failure (500), downstream message appended."""

    def __init__(
        self,
        message: str,
        downstream_detail: Optional[str] = None,
        code: ErrorCode = ErrorCode.DATABASE_ERROR,
        extra: Optional[Dict[str, Any]] = None,
    ):
        detail = f"{message} {downstream_detail}".strip() if downstream_detail else message
        super().__init__(
            status_code=500,
            code=code,
            detail=detail,
            extra=extra,
        )


class PdfRenderError(Exception):
    """Raised by the PDF renderer when the document cannot be produced."""


# Exception handlers for FastAPI

def create_error_response(
    status_code: int,
    code: ErrorCode,
    detail: str,
    errors: Optional[List[Dict[str, Any]]] = None,
    trace_id: Optional[str] = None,
) -> JSONResponse:
    body = ErrorBody(
        error=detail,
        code=code.value,
        status=status_code,
        trace_id=trace_id or _get_trace_id(),
        errors=errors,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
    )


async def shopquotes_exception_handler(
    request: Request,
    exc: ShopQuotesException,
) -> JSONResponse:
    logger.warning(
        f"{exc.code.value} - {exc.detail}",
        extra={
            "trace_id": exc.trace_id,
            "status_code": exc.status_code,
            "path": request.url.path,
        }
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_body().model_dump(exclude_none=True),
        headers=exc.headers,
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Render plain HTTPExceptions (routing 404/405 and friends) in the same shape."""
    code_map = {
        400: ErrorCode.VALIDATION_ERROR,
        404: ErrorCode.NOT_FOUND,
        422: ErrorCode.VALIDATION_ERROR,
    }
    return create_error_response(
        status_code=exc.status_code,
        code=code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR),
        detail=str(exc.detail),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Missing fields and malformed JSON are client errors (400)."""
    errors = []
    malformed = False
    for error in exc.errors():
        if error["type"] == "json_invalid":
            malformed = True
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })

    if malformed:
        return create_error_response(
            status_code=400,
            code=ErrorCode.INVALID_JSON,
            detail="JSON inválido",
            errors=errors,
        )

    fields = ", ".join(e["field"].removeprefix("body.") for e in errors)
    return create_error_response(
        status_code=400,
        code=ErrorCode.MISSING_FIELD,
        detail=f"Dados obrigatórios ausentes ou inválidos: {fields}",
        errors=errors,
    )


def make_generic_exception_handler(debug: bool):
    """Build the catch-all handler; internal details are exposed only in debug."""

    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        trace_id = _get_trace_id()
        logger.error(
            f"Unhandled exception: {type(exc).__name__}",
            extra={"trace_id": trace_id, "path": request.url.path},
        )
        logger.error(traceback.format_exc())

        detail = str(exc) if debug else "Erro inesperado no servidor"
        return create_error_response(
            status_code=500,
            code=ErrorCode.INTERNAL_ERROR,
            detail=detail,
            trace_id=trace_id,
        )

    return generic_exception_handler
