"""
Core Package - Award Assessment Platform
app/core/__init__.py

Core infrastructure: exceptions, actor context, dependencies, error handlers.
"""

from app.core.exceptions import (
    AssessmentException,
    ConflictException,
    DatabaseConnectionException,
    DuplicateEntityException,
    EntityNotFoundException,
    ForeignKeyViolationException,
    InvalidScoreException,
    PermissionDeniedException,
    RepositoryException,
    StateViolationException,
    SubmissionValidationException,
)

__all__ = [
    "AssessmentException",
    "ConflictException",
    "DatabaseConnectionException",
    "DuplicateEntityException",
    "EntityNotFoundException",
    "ForeignKeyViolationException",
    "InvalidScoreException",
    "PermissionDeniedException",
    "RepositoryException",
    "StateViolationException",
    "SubmissionValidationException",
]
