"""
Dependencies - Award Assessment Platform
app/core/dependencies.py

FastAPI dependency injection for repositories and services.
"""

from functools import lru_cache

from app.config import settings
from app.repositories.category_repository import CategoryRepository
from app.repositories.question_repository import QuestionRepository
from app.repositories.ranking_repository import RankingRepository
from app.repositories.response_repository import ResponseRepository
from app.repositories.review_repository import ReviewRepository
from app.repositories.session_repository import SessionRepository
from app.scoring.ranking_calculator import RankingCalculator
from app.services.cache import get_cache
from app.services.ranking_service import RankingService
from app.services.response_service import ResponseService
from app.services.review_service import ReviewService
from app.services.session_service import SessionService


@lru_cache()
def get_session_repository() -> SessionRepository:
    """Get cached SessionRepository instance."""
    return SessionRepository()


@lru_cache()
def get_question_repository() -> QuestionRepository:
    """Get cached QuestionRepository instance."""
    return QuestionRepository()


@lru_cache()
def get_category_repository() -> CategoryRepository:
    """Get cached CategoryRepository instance."""
    return CategoryRepository()


@lru_cache()
def get_response_repository() -> ResponseRepository:
    """Get cached ResponseRepository instance."""
    return ResponseRepository()


@lru_cache()
def get_review_repository() -> ReviewRepository:
    """Get cached ReviewRepository instance."""
    return ReviewRepository()


@lru_cache()
def get_ranking_repository() -> RankingRepository:
    """Get cached RankingRepository instance."""
    return RankingRepository()


@lru_cache()
def get_session_service() -> SessionService:
    return SessionService(
        sessions=get_session_repository(),
        questions=get_question_repository(),
        responses=get_response_repository(),
        reviews=get_review_repository(),
        categories=get_category_repository(),
    )


@lru_cache()
def get_response_service() -> ResponseService:
    return ResponseService(get_session_service(), get_response_repository())


@lru_cache()
def get_review_service() -> ReviewService:
    return ReviewService(get_session_service(), get_review_repository())


@lru_cache()
def get_ranking_service() -> RankingService:
    """Ranking service with the rubric scale and weights from settings."""
    calculator = RankingCalculator(
        weights=settings.rubric_weights,
        min_score=settings.RUBRIC_MIN_SCORE,
        max_score=settings.RUBRIC_MAX_SCORE,
    )
    return RankingService(get_session_service(), get_ranking_repository(), calculator, get_cache)
