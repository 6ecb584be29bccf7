"""
Category Repository - Award Assessment Platform
app/repositories/category_repository.py

Data access layer for scoring categories.

Table: CATEGORIES
    ID INT PRIMARY KEY (sequence CATEGORY_SEQ), NAME VARCHAR(255) UNIQUE,
    DESCRIPTION VARCHAR(1000), WEIGHT FLOAT, MIN_VALUE FLOAT, MAX_VALUE FLOAT,
    SCORE_TYPE VARCHAR(20), CREATED_AT TIMESTAMP_TZ
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

from app.core.exceptions import DuplicateEntityException, EntityNotFoundException
from app.models.enumerations import ScoreType
from app.models.question import Category, CategoryCreate, CategoryUpdate
from app.repositories.base import BaseRepository

logger = structlog.get_logger(__name__)

_COLUMNS = "ID, NAME, DESCRIPTION, WEIGHT, MIN_VALUE, MAX_VALUE, SCORE_TYPE, CREATED_AT"


class CategoryRepository(BaseRepository):
    """Repository for Category CRUD operations."""

    TABLE_NAME = "CATEGORIES"
    SEQUENCE = "CATEGORY_SEQ"

    def create(self, data: CategoryCreate) -> Category:
        """
        Create a category.

        Raises:
            DuplicateEntityException: a category with the same name
                (case-insensitive) exists
        """
        if self.get_by_name(data.name) is not None:
            raise DuplicateEntityException(f"Category '{data.name}' already exists")

        category_id = self.next_id(self.SEQUENCE)
        now = datetime.now(timezone.utc)
        sql = """
            INSERT INTO CATEGORIES (ID, NAME, DESCRIPTION, WEIGHT, MIN_VALUE,
                                    MAX_VALUE, SCORE_TYPE, CREATED_AT)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
        """
        params = (
            category_id,
            data.name,
            data.description,
            data.weight,
            data.min_value,
            data.max_value,
            data.score_type.value,
            now,
        )
        self.execute_query(sql, params, commit=True)
        logger.info("category_created", category_id=category_id, name=data.name)
        return self.get_by_id(category_id)

    def get_by_id(self, category_id: int) -> Optional[Category]:
        sql = f"SELECT {_COLUMNS} FROM CATEGORIES WHERE ID = %s"
        row = self.execute_query(sql, (category_id,), fetch_one=True)
        return self._row_to_category(row) if row else None

    def get_by_name(self, name: str) -> Optional[Category]:
        sql = f"SELECT {_COLUMNS} FROM CATEGORIES WHERE LOWER(NAME) = LOWER(%s)"
        row = self.execute_query(sql, (name.strip(),), fetch_one=True)
        return self._row_to_category(row) if row else None

    def list_all(self) -> List[Category]:
        sql = f"SELECT {_COLUMNS} FROM CATEGORIES ORDER BY NAME"
        rows = self.execute_query(sql, fetch_all=True) or []
        return [self._row_to_category(row) for row in rows]

    def get_many(self, category_ids: List[int]) -> Dict[int, Category]:
        """Categories keyed by id for the given ids (missing ids are skipped)."""
        ids = sorted({c for c in category_ids if c is not None})
        if not ids:
            return {}
        placeholders = ", ".join(["%s"] * len(ids))
        sql = f"SELECT {_COLUMNS} FROM CATEGORIES WHERE ID IN ({placeholders})"
        rows = self.execute_query(sql, tuple(ids), fetch_all=True) or []
        return {row["ID"]: self._row_to_category(row) for row in rows}

    def update(self, category_id: int, data: CategoryUpdate) -> Category:
        """
        Partially update a category.

        Raises:
            EntityNotFoundException: unknown category
            DuplicateEntityException: renamed onto an existing name
        """
        current = self.get_by_id(category_id)
        if current is None:
            raise EntityNotFoundException("Category", category_id)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return current

        if "name" in changes:
            clash = self.get_by_name(changes["name"])
            if clash is not None and clash.id != category_id:
                raise DuplicateEntityException(f"Category '{changes['name']}' already exists")
        if "score_type" in changes:
            changes["score_type"] = ScoreType(changes["score_type"]).value

        sql, params = self.build_update_query(self.TABLE_NAME, changes, "ID", category_id)
        self.execute_query(sql, tuple(params), commit=True)
        return self.get_by_id(category_id)

    def _row_to_category(self, row: Dict[str, Any]) -> Category:
        """Convert Snowflake row to Category."""
        return Category(
            id=row["ID"],
            name=row["NAME"],
            description=row.get("DESCRIPTION"),
            weight=float(row["WEIGHT"]),
            min_value=float(row["MIN_VALUE"]),
            max_value=float(row["MAX_VALUE"]),
            score_type=ScoreType(row["SCORE_TYPE"]),
            created_at=self.normalize_timestamp(row["CREATED_AT"]),
        )
