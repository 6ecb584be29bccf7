"""
Custom Exceptions - Award Assessment Platform
app/core/exceptions.py

Custom exception classes for repository and assessment operations.
"""

from typing import Any, List, Optional


class RepositoryException(Exception):
    """Base exception for repository operations."""

    pass


class EntityNotFoundException(RepositoryException):
    """Entity not found in database."""

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with ID {entity_id} not found")


class ConflictException(RepositoryException):
    """Write conflicts with existing state (duplicate name, upsert race)."""

    def __init__(self, message: str = "Conflicting write"):
        self.message = message
        super().__init__(message)


class DuplicateEntityException(ConflictException):
    """Duplicate entity violation."""

    def __init__(self, message: str = "Entity already exists"):
        super().__init__(message)


class DatabaseConnectionException(RepositoryException):
    """Database connection failure."""

    def __init__(self, message: str = "Database connection failed"):
        self.message = message
        super().__init__(message)


class ForeignKeyViolationException(RepositoryException):
    """Foreign key constraint violation."""

    def __init__(self, message: str = "Foreign key constraint violation"):
        self.message = message
        super().__init__(message)


class AssessmentException(Exception):
    """Base exception for assessment lifecycle and scoring rules."""

    error_code = "ASSESSMENT_ERROR"

    def details(self) -> Optional[dict]:
        return None


class StateViolationException(AssessmentException):
    """Action attempted while the session status does not allow it."""

    error_code = "STATE_VIOLATION"

    def __init__(self, session_id: Any, status: str, action: str):
        self.session_id = session_id
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} session {session_id} while it is '{status}'"
        )

    def details(self) -> dict:
        return {"session_id": str(self.session_id), "status": self.status, "action": self.action}


class InvalidScoreException(AssessmentException):
    """Score outside the declared scale. Never clamped."""

    error_code = "INVALID_SCORE"

    def __init__(self, field: str, value: Any, lower: float, upper: float):
        self.field = field
        self.value = value
        self.lower = lower
        self.upper = upper
        super().__init__(f"Score for '{field}' must be between {lower} and {upper}, got {value}")

    def details(self) -> dict:
        return {"field": self.field, "value": self.value, "min": self.lower, "max": self.upper}


class SubmissionValidationException(AssessmentException):
    """Required questions left unanswered at submit time."""

    error_code = "SUBMISSION_INCOMPLETE"

    def __init__(self, missing_question_ids: List[int], message: Optional[str] = None):
        self.missing_question_ids = list(missing_question_ids)
        super().__init__(
            message or f"{len(self.missing_question_ids)} required question(s) are not answered"
        )

    def details(self) -> dict:
        return {"missing_question_ids": self.missing_question_ids}


class PermissionDeniedException(AssessmentException):
    """Actor role does not allow the requested operation."""

    error_code = "PERMISSION_DENIED"

    def __init__(self, message: str = "Operation not permitted for this role"):
        self.message = message
        super().__init__(message)
