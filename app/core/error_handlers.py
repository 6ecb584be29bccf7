"""
Error Handlers - Award Assessment Platform
app/core/error_handlers.py

Translates domain and repository exceptions into ErrorResponse bodies.
Services raise; this module is the only place that picks HTTP status codes.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.exceptions import (
    AssessmentException,
    ConflictException,
    DatabaseConnectionException,
    EntityNotFoundException,
    InvalidScoreException,
    PermissionDeniedException,
    RepositoryException,
    StateViolationException,
    SubmissionValidationException,
)
from app.models.common import ErrorResponse

logger = structlog.get_logger(__name__)


#  Request validation messages

FIELD_MESSAGES = {
    "question_id": {
        "missing": "Question ID is required",
        "int_parsing": "Question ID must be a valid integer",
    },
    "group_id": {
        "missing": "Group ID is required",
        "int_parsing": "Group ID must be a valid integer",
    },
    "session_id": {
        "int_parsing": "Session ID must be a valid integer",
    },
    "comment": {
        "missing": "Comment text is required",
        "string_too_short": "Comment must not be empty",
        "string_too_long": "Comment must not exceed 5000 characters",
    },
    "stage": {
        "enum": "Stage must be one of: admin_validation, jury_scoring",
    },
    "decision": {
        "enum": "Decision must be one of: approve, request_revision, pass_to_jury, reject",
    },
    "target_status": {
        "missing": "Target status is required",
        "enum": "Target status must be a valid session status",
    },
    "scores": {
        "missing": "Scores for every rubric dimension are required",
    },
    "answers": {
        "too_short": "At least one answer is required",
    },
    "auto_save_version": {
        "greater_than_equal": "Auto-save version must be at least 1",
    },
    "name": {
        "missing": "Category name is required",
        "string_too_short": "Category name must not be empty",
        "string_too_long": "Category name must not exceed 255 characters",
    },
    "weight": {
        "greater_than_equal": "Weight must be greater than or equal to 0",
    },
    "x-user-id": {
        "missing": "X-User-Id header is required",
        "int_parsing": "X-User-Id header must be an integer",
    },
    "x-user-role": {
        "missing": "X-User-Role header is required",
        "enum": "X-User-Role must be one of: PESERTA, ADMIN, SUPERADMIN, JURI",
    },
}

DEFAULT_MESSAGES = {
    "missing": "Field '{field}' is required",
    "string_too_short": "Field '{field}' is too short",
    "string_too_long": "Field '{field}' is too long",
    "too_short": "Field '{field}' has too few items",
    "less_than_equal": "Field '{field}' exceeds maximum allowed value",
    "greater_than_equal": "Field '{field}' is below minimum allowed value",
    "string_type": "Field '{field}' must be a string",
    "int_type": "Field '{field}' must be an integer",
    "int_parsing": "Field '{field}' must be a valid integer",
    "float_parsing": "Field '{field}' must be a number",
    "enum": "Field '{field}' has an invalid value",
    "union_tag_invalid": "Field '{field}' has an unknown value kind",
    "value_error": "Field '{field}' is invalid",
    "json_invalid": "Malformed JSON request body",
    "extra_forbidden": "Unknown field '{field}' is not allowed",
}


def get_validation_message(field: str, error_type: str) -> str:
    leaf = field.rsplit(".", 1)[-1] if field else field
    for name in (field, leaf):
        if name in FIELD_MESSAGES:
            for key, message in FIELD_MESSAGES[name].items():
                if key in error_type:
                    return message

    for key, template in DEFAULT_MESSAGES.items():
        if key in error_type:
            return template.format(field=field)

    return f"Invalid value for field '{field}'"


def error_body(error_code: str, message: str, details: Optional[dict] = None) -> Dict[str, Any]:
    return ErrorResponse(
        error_code=error_code,
        message=message,
        details=details,
        timestamp=datetime.now(timezone.utc),
    ).model_dump(mode="json")


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()

    if not errors:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=error_body("VALIDATION_ERROR", "Request validation failed"),
        )

    err = errors[0]
    error_type = err.get("type", "")
    loc = err.get("loc", [])

    if "json_invalid" in error_type:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body("INVALID_REQUEST", "Malformed JSON request body"),
        )

    field = ".".join(str(l) for l in loc if l not in ("body", "query", "path", "header"))
    message = get_validation_message(field, error_type)

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body(
            "VALIDATION_ERROR",
            message,
            {"field": field, "type": error_type} if field else None,
        ),
    )


#  Domain exceptions

_STATUS_BY_EXCEPTION = [
    (StateViolationException, status.HTTP_409_CONFLICT),
    (InvalidScoreException, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (SubmissionValidationException, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (PermissionDeniedException, status.HTTP_403_FORBIDDEN),
]


async def assessment_exception_handler(request: Request, exc: AssessmentException):
    status_code = status.HTTP_400_BAD_REQUEST
    for exc_type, code in _STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            status_code = code
            break
    logger.info(
        "request_rejected",
        path=request.url.path,
        error_code=exc.error_code,
        status_code=status_code,
        message=str(exc),
    )
    return JSONResponse(
        status_code=status_code,
        content=error_body(exc.error_code, str(exc), exc.details()),
    )


async def repository_exception_handler(request: Request, exc: RepositoryException):
    if isinstance(exc, EntityNotFoundException):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=error_body(
                f"{exc.entity_type.upper()}_NOT_FOUND",
                str(exc),
                {"entity_type": exc.entity_type, "entity_id": str(exc.entity_id)},
            ),
        )
    if isinstance(exc, ConflictException):
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=error_body("CONFLICT", exc.message),
        )
    if isinstance(exc, DatabaseConnectionException):
        logger.error("database_unavailable", path=request.url.path, error=exc.message)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=error_body("SERVICE_UNAVAILABLE", "Database is temporarily unavailable"),
        )
    logger.error("repository_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("INTERNAL_SERVER_ERROR", "Unexpected server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(AssessmentException, assessment_exception_handler)
    app.add_exception_handler(RepositoryException, repository_exception_handler)


#  OpenAPI response docs

_EXAMPLES = {
    400: ("Invalid request", "INVALID_REQUEST", "Malformed JSON request body"),
    403: ("Permission denied", "PERMISSION_DENIED", "Role PESERTA cannot review the admin_validation stage"),
    404: ("Not found", "SESSION_NOT_FOUND", "Session with ID 42 not found"),
    409: ("Conflict", "STATE_VIOLATION", "Cannot submit session 42 while it is 'approved'"),
    422: ("Validation error", "VALIDATION_ERROR", "Question ID is required"),
    503: ("Database unavailable", "SERVICE_UNAVAILABLE", "Database is temporarily unavailable"),
}


def error_responses(*codes: int) -> Dict[int, Dict[str, Any]]:
    """``responses=`` mapping with ErrorResponse examples for route decorators."""
    docs = {}
    for code in codes:
        description, error_code, message = _EXAMPLES[code]
        docs[code] = {
            "model": ErrorResponse,
            "description": description,
            "content": {
                "application/json": {
                    "example": {
                        "error_code": error_code,
                        "message": message,
                        "details": None,
                        "timestamp": "2026-01-28T12:00:00Z",
                    }
                }
            },
        }
    return docs
