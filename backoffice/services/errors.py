"""Domain exception hierarchy for the back-office service.

Services and stores raise these; ``setup_exception_handlers`` maps them to
HTTP responses with the same ``{"detail": ...}`` body HTTPException uses.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BackofficeError(Exception):
    """Base exception for all back-office errors."""

    status_code = 500


class InvalidInputError(BackofficeError):
    """Raised when a value breaks a business rule (non-positive amount, bad period...)."""

    status_code = 400


class NotFoundError(BackofficeError):
    """Raised when a referenced client, payment, agent or user does not exist."""

    status_code = 404


class PermissionDeniedError(BackofficeError):
    """Raised when the caller may not touch the requested record."""

    status_code = 403


class ConflictError(BackofficeError):
    """Raised when the record is in a state that forbids the operation."""

    status_code = 409


class StaleWriteError(ConflictError):
    """Raised when a conditional update matched no row because the version moved on."""


class ConfigurationError(BackofficeError):
    """Raised when configuration is invalid or missing."""


def setup_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(BackofficeError)
    async def backoffice_error_handler(request: Request, exc: BackofficeError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.info("%s %s rejected (%s): %s", request.method, request.url.path,
                        type(exc).__name__, exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})
