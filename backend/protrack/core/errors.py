"""Domain exceptions and their HTTP rendering.

Every exception carries the status code and a stable ``error_code`` so the
operator UI can react to the condition (for example, telling the operator
which platform owns a dossier) instead of parsing messages.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger


class ProtrackError(Exception):
    """Base class for recoverable domain errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        error_code: str = "PROTRACK_ERROR",
        extra: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.extra = extra or {}
        super().__init__(message)


class DossierNotFound(ProtrackError):
    def __init__(self, search_term: str):
        super().__init__(
            f'Dossier "{search_term}" not found.',
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="DOSSIER_NOT_FOUND",
            extra={"search_term": search_term},
        )
        self.search_term = search_term


class CrossPlatformAccessDenied(ProtrackError):
    """The dossier exists, but belongs to a platform the caller is not assigned to."""

    def __init__(self, search_term: str, owning_platform: str):
        super().__init__(
            f"ACCESS DENIED: Dossier belongs to {owning_platform}.",
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="CROSS_PLATFORM_ACCESS_DENIED",
            extra={"search_term": search_term, "owning_platform": owning_platform},
        )
        self.search_term = search_term
        self.owning_platform = owning_platform


class PlatformAccessDenied(ProtrackError):
    def __init__(self, platform: str):
        super().__init__(
            f"You are not assigned to platform {platform}.",
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="PLATFORM_ACCESS_DENIED",
            extra={"platform": platform},
        )


class PermissionDenied(ProtrackError):
    def __init__(self, message: str = "Permission denied"):
        super().__init__(
            message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="PERMISSION_DENIED",
        )


class ProductionLogNotFound(ProtrackError):
    def __init__(self, log_id: str):
        super().__init__(
            "Production log not found.",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="PRODUCTION_LOG_NOT_FOUND",
            extra={"id": log_id},
        )


class DossierAlreadyExists(ProtrackError):
    def __init__(self, file_number: str):
        super().__init__(
            f'Dossier "{file_number}" already exists.',
            status_code=status.HTTP_409_CONFLICT,
            error_code="DOSSIER_ALREADY_EXISTS",
            extra={"file_number": file_number},
        )


class LogValidationError(ProtrackError):
    """Submission rejected before any write; the operator corrects and resubmits."""

    def __init__(self, errors: list[dict[str, str]]):
        super().__init__(
            "Production log is invalid.",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_ERROR",
            extra={"errors": errors},
        )
        self.errors = errors


class LedgerUpdateFailed(ProtrackError):
    """The remaining-count ledger could not be adjusted.

    Never surfaces as an HTTP error: the log write that triggered it is kept
    and the failure is reported as a warning alongside it.
    """

    def __init__(self, file_number: str, reason: str):
        super().__init__(
            f"Ledger for dossier {file_number} was not updated: {reason}",
            status_code=status.HTTP_200_OK,
            error_code="LEDGER_UPDATE_FAILED",
            extra={"file_number": file_number, "reason": reason},
        )
        self.file_number = file_number
        self.reason = reason


async def protrack_error_handler(request: Request, exc: ProtrackError) -> JSONResponse:
    logger.bind(
        error_code=exc.error_code,
        status=exc.status_code,
        path=str(request.url.path),
    ).info("domain_error")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error_code": exc.error_code, **exc.extra},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ProtrackError, protrack_error_handler)  # type: ignore[arg-type]
