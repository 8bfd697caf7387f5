"""Exception handlers rendering every error as ``{"error": <message>}``."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from ..exceptions import AgentDeskError
from ..models.conversation import ErrorResponse
from ..utils.logger import get_app_logger

# OpenAPI documentation of the error body, shared by every router
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    404: {"model": ErrorResponse, "description": "Conversation or file not found"},
    500: {"model": ErrorResponse, "description": "Provisioning or sandbox failure"},
}


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": _describe_validation_error(exc)})


async def agentdesk_exception_handler(request: Request, exc: AgentDeskError) -> JSONResponse:
    get_app_logger().error(f"Error in {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": str(exc) or "Internal server error"})


def register_exception_handlers(app: FastAPI) -> None:
    """Install the error handlers on an application."""
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(AgentDeskError, agentdesk_exception_handler)
