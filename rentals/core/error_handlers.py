"""
Traducción de excepciones a respuestas HTTP con el sobre
{ "error": { "code", "message" } }.
"""
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from rentals.utils.exceptions import RentalSystemException, InternalError
from rentals.utils.logging import get_logger

logger = get_logger("rentals.error_handler")

_HTTP_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    status.HTTP_409_CONFLICT: "CONFLICT",
}


def error_body(code: str, message: str, details: Optional[Any] = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"error": error}


async def rental_exception_handler(request: Request, exc: RentalSystemException) -> JSONResponse:
    if isinstance(exc, InternalError) or exc.status_code >= 500:
        # Los detalles del almacenamiento quedan en el log, nunca en la respuesta
        logger.error(f"{request.method} {request.url.path} -> {exc.error_code}: {exc.message} {exc.details}")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body("INTERNAL_SERVER_ERROR", "Error interno del servidor")
        )

    logger.warning(f"{request.method} {request.url.path} -> HTTP {exc.status_code} {exc.error_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.error_code, exc.message))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    validation_errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "path", "query")),
            "message": err.get("msg"),
            "code": err.get("type"),
        }
        for err in exc.errors()
    ]
    logger.warning(f"{request.method} {request.url.path} -> datos inválidos: {validation_errors}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder(error_body(
            "VALIDATION_ERROR",
            "Los datos proporcionados no son válidos",
            validation_errors
        ))
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, str(exc.detail)),
        headers=getattr(exc, "headers", None)
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Error interno no manejado en {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("INTERNAL_SERVER_ERROR", "Error interno del servidor")
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RentalSystemException, rental_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
