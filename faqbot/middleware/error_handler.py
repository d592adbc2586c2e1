"""
Global exception handler middleware and request-validation handler.
"""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from loguru import logger


async def global_exception_handler(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as exc:
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal server error",
                "type": type(exc).__name__,
            },
        )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Validation failed on {request.method} {request.url.path}: {len(exc.errors())} errors")
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "Validation failed",
            "details": jsonable_encoder(exc.errors()),
        },
    )
