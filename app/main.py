"""
FastAPI application entrypoint for the QuickBooks connection service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import handle_oauth_callback, router as api_router
from app.core.config import get_settings
from app.core.logging import configure_logging

logger = logging.getLogger(__name__)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    content: dict = {"success": False}
    if isinstance(exc.detail, dict):
        content.update(exc.detail)
    elif exc.status_code == HTTPStatus.NOT_FOUND and exc.detail == "Not Found":
        content["error"] = "Route not found"
    else:
        content["error"] = exc.detail
    return JSONResponse(content=content, status_code=exc.status_code, headers=exc.headers)


async def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'][1:]) or 'body'}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(
        content={"success": False, "error": f"Invalid request: {problems}"},
        status_code=HTTPStatus.BAD_REQUEST,
    )


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="QuickBooks Rule Connector",
        version="0.1.0",
        description="OAuth2 connection and token lifecycle API for QuickBooks Online companies.",
    )
    app.include_router(api_router, prefix="/api")
    # Short callback path for QuickBooks apps registered with ``<host>/callback``.
    app.add_api_route(
        "/callback",
        handle_oauth_callback,
        methods=["GET"],
        name="oauth_callback_root",
        include_in_schema=False,
    )
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)

    if not settings.quickbooks.is_configured:
        logger.warning(
            "QuickBooks OAuth client id/secret not configured; "
            "set QUICKBOOKS_CLIENT_ID and QUICKBOOKS_CLIENT_SECRET"
        )
    else:
        logger.info(
            "QuickBooks OAuth configured for %s environment", settings.quickbooks.environment
        )
    return app


app = create_app()

__all__ = ["app", "create_app"]
