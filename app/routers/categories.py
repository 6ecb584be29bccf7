"""
Categories Router - Award Assessment Platform
app/routers/categories.py

Scoring categories (weight and expected range per scored question).
"""

from typing import List

import structlog
from fastapi import APIRouter, Depends, status

from app.core.actor import Actor, get_actor
from app.core.dependencies import get_category_repository
from app.core.error_handlers import error_responses
from app.models.question import Category, CategoryCreate, CategoryUpdate
from app.repositories.category_repository import CategoryRepository

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/categories", tags=["Categories"])


@router.get(
    "",
    response_model=List[Category],
    responses=error_responses(503),
    summary="List scoring categories",
)
def list_categories(
    repo: CategoryRepository = Depends(get_category_repository),
) -> List[Category]:
    return repo.list_all()


@router.post(
    "",
    response_model=Category,
    status_code=status.HTTP_201_CREATED,
    responses=error_responses(400, 403, 409, 422, 503),
    summary="Create a scoring category",
)
def create_category(
    payload: CategoryCreate,
    actor: Actor = Depends(get_actor),
    repo: CategoryRepository = Depends(get_category_repository),
) -> Category:
    actor.require_admin("create categories")
    category = repo.create(payload)
    logger.info("category_created", category_id=category.id, name=category.name)
    return category


@router.patch(
    "/{category_id}",
    response_model=Category,
    responses=error_responses(400, 403, 404, 409, 422, 503),
    summary="Update a scoring category",
)
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    actor: Actor = Depends(get_actor),
    repo: CategoryRepository = Depends(get_category_repository),
) -> Category:
    actor.require_admin("update categories")
    category = repo.update(category_id, payload)
    logger.info("category_updated", category_id=category_id)
    return category
