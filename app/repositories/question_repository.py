"""
Question Repository - Award Assessment Platform
app/repositories/question_repository.py

Read access to the question catalog.

Table: QUESTIONS
    ID INT PRIMARY KEY, GROUP_ID INT, TEXT VARCHAR, DESCRIPTION VARCHAR,
    INPUT_TYPE VARCHAR(30), IS_REQUIRED BOOLEAN, OPTIONS VARIANT (JSON list),
    SECTION_TITLE VARCHAR, SUBSECTION VARCHAR, ORDER_NUMBER INT,
    CATEGORY_ID INT REFERENCES CATEGORIES(ID), NEEDS_URL BOOLEAN
"""

import json
from typing import Any, Dict, List, Optional

from app.models.enumerations import InputType
from app.models.question import Question, QuestionOption
from app.repositories.base import BaseRepository

_COLUMNS = """
    ID, GROUP_ID, TEXT, DESCRIPTION, INPUT_TYPE, IS_REQUIRED, OPTIONS,
    SECTION_TITLE, SUBSECTION, ORDER_NUMBER, CATEGORY_ID, NEEDS_URL
"""


class QuestionRepository(BaseRepository):
    """Repository for catalog questions."""

    TABLE_NAME = "QUESTIONS"

    def list_by_group(self, group_id: int) -> List[Question]:
        """
        Questions of one group questionnaire in display order.

        Args:
            group_id: Group (nomination) identifier

        Returns:
            Questions ordered by ORDER_NUMBER, then ID
        """
        sql = f"""
            SELECT {_COLUMNS}
            FROM QUESTIONS
            WHERE GROUP_ID = %s
            ORDER BY ORDER_NUMBER, ID
        """
        rows = self.execute_query(sql, (group_id,), fetch_all=True) or []
        return [self._row_to_question(row) for row in rows]

    def get_by_id(self, question_id: int) -> Optional[Question]:
        sql = f"SELECT {_COLUMNS} FROM QUESTIONS WHERE ID = %s"
        row = self.execute_query(sql, (question_id,), fetch_one=True)
        return self._row_to_question(row) if row else None

    def _row_to_question(self, row: Dict[str, Any]) -> Question:
        """Convert Snowflake row to Question."""
        options = row.get("OPTIONS") or []
        if isinstance(options, str):
            options = json.loads(options)
        return Question(
            id=row["ID"],
            group_id=row["GROUP_ID"],
            text=row["TEXT"],
            description=row.get("DESCRIPTION"),
            input_type=InputType(row["INPUT_TYPE"]),
            is_required=bool(row["IS_REQUIRED"]),
            options=[QuestionOption(**{k.lower(): v for k, v in o.items()}) for o in options],
            section_title=row.get("SECTION_TITLE") or "",
            subsection=row.get("SUBSECTION"),
            order_number=row.get("ORDER_NUMBER") or 0,
            category_id=row.get("CATEGORY_ID"),
            needs_url=bool(row.get("NEEDS_URL")),
        )
