"""
Repositories Package - Award Assessment Platform
app/repositories/__init__.py

Data access layer for Snowflake database operations.
"""

from app.repositories.base import BaseRepository
from app.repositories.category_repository import CategoryRepository
from app.repositories.question_repository import QuestionRepository
from app.repositories.ranking_repository import RankingRepository
from app.repositories.response_repository import ResponseRepository
from app.repositories.review_repository import ReviewRepository
from app.repositories.session_repository import SessionRepository

__all__ = [
    "BaseRepository",
    "CategoryRepository",
    "QuestionRepository",
    "RankingRepository",
    "ResponseRepository",
    "ReviewRepository",
    "SessionRepository",
]
