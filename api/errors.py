from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from utils.errors import ContextCommitException, InternalError, ValidationError
from utils.logger import logger


def error_response(exc: ContextCommitException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def register_error_handlers(app: FastAPI) -> None:
    """Renders every failure as {"error": {"kind", "reason", "detail"}}."""

    @app.exception_handler(ContextCommitException)
    async def handle_known_error(request: Request, exc: ContextCommitException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed ({exc.kind}): {exc.detail}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected ({exc.kind}/{exc.reason}): {exc.detail}")
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(ValidationError(_describe_validation_errors(exc), reason="invalid_request"))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
        return error_response(InternalError("Internal server error"))
