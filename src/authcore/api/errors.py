"""Exception handlers rendering errors as ``{detail, code, request_id}``."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from authcore.api.middleware import get_request_id
from authcore.errors import ERROR_INFOS, AppError, ErrorCode
from authcore.schemas import ErrorResponse

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None) or get_request_id()


def error_response(
    request: Request,
    status_code: int,
    detail: str,
    code: str | None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(detail=detail, code=code, request_id=_request_id(request))
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return ERROR_INFOS[ErrorCode.VALIDATION_ERROR].message
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid value")
    return f"{field}: {message}" if field else message


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code.value} on {request.method} {request.url.path}: {exc.details}")
    return error_response(request, exc.status_code, exc.message, exc.code, exc.headers or None)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    info = ERROR_INFOS[ErrorCode.VALIDATION_ERROR]
    return error_response(request, info.status, _describe_validation_error(exc), info.code)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = ERROR_INFOS[ErrorCode.NOT_FOUND].code if exc.status_code == 404 else None
    return error_response(
        request, exc.status_code, str(exc.detail), code, getattr(exc, "headers", None)
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    info = ERROR_INFOS[ErrorCode.INTERNAL_ERROR]
    return error_response(request, info.status, info.message, info.code)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)
