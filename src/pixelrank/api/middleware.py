"""Middleware: API key authentication and error-to-response mapping."""

from __future__ import annotations

import logging
import secrets
from http import HTTPStatus
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from pixelrank.errors import (
    EmptyScoresError,
    ImageTooLargeError,
    InferenceBusyError,
    InferenceError,
    InvalidImageError,
    ModelLoadError,
    PixelRankError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI

    from pixelrank.config import Settings

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

# Most specific classes first; ImageTooLargeError subclasses InvalidImageError.
_ERROR_STATUS: list[tuple[type[PixelRankError], int]] = [
    (ImageTooLargeError, HTTPStatus.REQUEST_ENTITY_TOO_LARGE),
    (InvalidImageError, HTTPStatus.BAD_REQUEST),
    (EmptyScoresError, HTTPStatus.UNPROCESSABLE_ENTITY),
    (InferenceError, HTTPStatus.INTERNAL_SERVER_ERROR),
    (ModelLoadError, HTTPStatus.SERVICE_UNAVAILABLE),
    (InferenceBusyError, HTTPStatus.SERVICE_UNAVAILABLE),
]


def _get_settings_from_request(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


async def verify_api_key(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> None:
    """Check the Bearer token against the configured API key.

    If no API key is configured (PIXELRANK_API_KEY not set), all requests pass.
    If configured, requests must include 'Authorization: Bearer <key>'.
    """
    settings = _get_settings_from_request(request)
    if settings.api_key is None:
        return

    if credentials is None or not secrets.compare_digest(credentials.credentials.encode(), settings.api_key.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )


def status_for_error(exc: PixelRankError) -> int:
    """Return the HTTP status code for a pipeline error."""
    for error_cls, code in _ERROR_STATUS:
        if isinstance(exc, error_cls):
            return int(code)
    return int(HTTPStatus.INTERNAL_SERVER_ERROR)


async def pixelrank_error_handler(request: Request, exc: PixelRankError) -> JSONResponse:
    """Convert a pipeline error into a JSON ``{"detail": ...}`` response."""
    code = status_for_error(exc)
    if isinstance(exc, InferenceError):
        logger.error("Inference failed for %s %s", request.method, request.url.path, exc_info=exc)
    else:
        logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content={"detail": str(exc)})


def register_error_handlers(app: FastAPI) -> None:
    """Install the exception handlers on ``app``."""
    app.add_exception_handler(PixelRankError, pixelrank_error_handler)  # type: ignore[arg-type]
