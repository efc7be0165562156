# insegnami/core/error_handlers.py
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
import logging

from .exceptions import InsegnamiException, Internal

logger = logging.getLogger(__name__)

async def insegnami_exception_handler(request: Request, exc: InsegnamiException):
    """Handle domain exceptions"""
    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__}: {exc.message} - Path: {request.url.path}")
    else:
        logger.info(f"{exc.__class__.__name__}: {exc.message} - Path: {request.url.path}")
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Schema violations are reported as 400 with the offending fields"""
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "reason": "validation_error", "details": details}
    )

async def http_exception_handler(request: Request, exc: HTTPException):
    """Keep framework errors in the same {error} shape"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "reason": "http_error"},
        headers=getattr(exc, "headers", None)
    )

async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.exception(f"Unexpected error: {exc} - Path: {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=Internal().to_dict()
    )

def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(InsegnamiException, insegnami_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
